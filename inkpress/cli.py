"""Command-line interface for Inkpress.

Commands:
- new: Scaffold a new Inkpress project.
- build: Build the site into the output directory.
- serve: Run development server with live reload.
- post: Create a new dated post.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .utils import slugify

logger = logging.getLogger(__name__)

# Path to the starter project copied by `inkpress new`
_TEMPLATES_DIR = Path(__file__).parent / "templates" / "default"


@click.group(name="inkpress")
@click.version_option(version=__version__, prog_name="inkpress")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """Inkpress static publishing pipeline."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Inkpress project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Inkpress site created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished content")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        result = build_site(project_root, include_drafts=drafts)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from None

    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")
    if result.failures:
        click.echo(
            click.style(f"{len(result.failures)} unit(s) failed:", fg="red", bold=True),
            err=True,
        )
        for failure in result.failures:
            click.echo(
                click.style(f"  File: {failure.display_path(project_root)}", fg="yellow"),
                err=True,
            )
            click.echo(f"  Error: {failure.kind}: {failure.message}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides inkpress.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides inkpress.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
@click.argument("title", required=False)
@click.option("--layout", default="post", show_default=True, help="Layout for the post")
def post(title: str | None, layout: str):
    """Create a new dated post in _posts/."""
    project_root = Path.cwd()
    from .build import load_config

    config = load_config(project_root)
    source_dir = project_root / str(config.get("source_dir") or "site")
    if not source_dir.exists():
        raise click.ClickException(
            f"No {source_dir.name}/ directory found. Run this command from an Inkpress project root."
        )

    if title is None:
        title = questionary.text(
            "Post title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()
    slug = slugify(title)
    if not title or slug == "index":
        raise click.ClickException("Post title must contain letters or digits")

    posts_dir = source_dir / "_posts"
    existing = _get_existing_slugs(posts_dir)
    if slug in existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[slug].name}"
        )

    filename = f"{datetime.now().strftime('%Y-%m-%d')}-{slug}.md"
    target_path = posts_dir / filename
    posts_dir.mkdir(parents=True, exist_ok=True)
    header = yaml.safe_dump(
        {"layout": layout, "title": title}, sort_keys=False, allow_unicode=True
    )
    target_path.write_text(f"---\n{header}---\n\n", encoding="utf-8")
    click.echo(f"Created {_display_path(target_path, project_root)}")


def _display_path(path: Path, project_root: Path) -> str:
    try:
        return str(path.relative_to(project_root))
    except ValueError:
        return str(path)


def _get_existing_slugs(folder: Path) -> dict[str, Path]:
    """Map the slug of every post in a folder to its file."""
    slugs: dict[str, Path] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file():
                slugs[slugify(f.stem)] = f
    return slugs


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the starter project into a new directory.

    Args:
        root: Root directory for the new project.
    """
    for src_path in sorted(_TEMPLATES_DIR.rglob("*")):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_TEMPLATES_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    # Date the sample post so it shows up first on a fresh site.
    posts_dir = root / "site" / "_posts"
    sample = posts_dir / "hello-world.md"
    if sample.exists():
        sample.rename(posts_dir / f"{datetime.now().strftime('%Y-%m-%d')}-hello-world.md")

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("INKPRESS_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run([git_bin, "init"], cwd=root, check=True, capture_output=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        # Non-fatal: user can run git init manually
        logger.info("git init failed in %s: %s", root, exc)
