"""Site building for Inkpress.

This module runs the publishing pipeline for every content unit:
load -> parse front matter -> render body -> compose layout -> write.
A unit that fails at any step is recorded as a BuildFailure and left out of
the output; the remaining units are still published.

Key functions:
- build_site: Build the entire site.
- load_config: Load site configuration from inkpress.yaml.
- load_data: Load extra site data from YAML files in the data directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from .assembler import SiteAssembler
from .assets import AssetPipeline
from .collections import PageCollection
from .content import ContentLoader, FileContentLoader, RenderedPage
from .errors import ContentError
from .feeds import create_default_feed_registry
from .layouts import TemplateComposer
from .permalinks import DEFAULT_POST_PERMALINK, PermalinkResolver, output_path_for
from .renderers import RendererRegistry, default_renderer_registry
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "inkpress.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "",
    "url": "",
    "source_dir": "site",
    "output_dir": "output",
    "default_layout": "default",
    "post_permalink": DEFAULT_POST_PERMALINK,
    "expand_variables": True,
    "exclude": [],
    "port": 4000,
    "ws_port": None,
}


@dataclass(frozen=True)
class BuildFailure:
    """A content unit that could not be published.

    Attributes:
        source_path: Path to the unit's source file.
        error: The error raised for it.
    """

    source_path: Path
    error: ContentError

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def kind(self) -> str:
        return type(self.error).__name__

    def display_path(self, project_root: Path) -> str:
        """Source path relative to the project root when it lies inside it."""
        try:
            return self.source_path.relative_to(project_root).as_posix()
        except ValueError:
            return str(self.source_path)


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        pages: Pages written to the output directory.
        failures: Units left out of the output, ordered by source path.
        output_dir: Directory where the site was built.
        site: Site context the layouts were rendered with.
    """

    pages: list[RenderedPage]
    failures: list[BuildFailure]
    output_dir: Path
    site: dict[str, Any]

    @property
    def ok(self) -> bool:
        return not self.failures


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from inkpress.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = project_root / CONFIG_FILENAME
    config = dict(DEFAULT_CONFIG)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if isinstance(loaded, dict):
            config.update(loaded)
        else:
            logger.warning("Ignoring %s: expected a mapping", config_path)
    return config


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    ``data/site.yaml`` is merged at the top level; any other file is exposed
    under its stem (``data/nav.yaml`` becomes ``site.nav``).

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing merged data from all YAML files.
    """
    data_dir = project_root / "data"
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.glob("*.yaml")):
        with open(path, encoding="utf-8") as f:
            payload = yaml.safe_load(f)
        if payload is None:
            continue
        if path.name == "site.yaml":
            if isinstance(payload, dict):
                data.update(payload)
            else:
                logger.warning("Ignoring %s: expected a mapping", path)
        else:
            data[path.stem] = payload
    return data


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
    site_url: str | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to publish drafts and unpublished units.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write the build here instead of config output_dir.
        site_url: Override the configured site url (the dev server uses localhost).

    Returns:
        BuildResult with written pages and per-unit failures.

    Raises:
        FileNotFoundError: If the source directory does not exist.
    """
    config = load_config(project_root)
    if site_url is not None:
        config["url"] = site_url
    source_dir = project_root / str(config.get("source_dir") or "site")
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Expected source directory at {source_dir}")

    configured_output = project_root / str(config.get("output_dir") or "output")
    output_dir = output_dir_override or configured_output
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    site: dict[str, Any] = {**config, **load_data(project_root)}

    exclude = list(config.get("exclude") or [])
    if source_dir.resolve() == project_root.resolve():
        exclude += [CONFIG_FILENAME, "data/*"]
    file_loader = FileContentLoader(
        source_dir, exclude=exclude, skip_dirs=[configured_output, output_dir]
    )
    units, load_errors = ContentLoader(source_dir, file_loader).load(include_drafts)
    failures = [BuildFailure(e.source_path, e) for e in load_errors]

    composer = TemplateComposer(source_dir, site, config.get("default_layout"))
    resolver = PermalinkResolver(str(config.get("post_permalink") or ""))
    planned: list[RenderedPage] = []
    for unit in units:
        url = resolver.resolve(unit)
        planned.append(
            RenderedPage(unit=unit, url=url, path=output_path_for(url), content="")
        )

    assembler = SiteAssembler(output_dir)
    writable, collisions = assembler.plan(planned)
    failures.extend(BuildFailure(e.source_path, e) for e in collisions)

    # Bodies can list other pages, so the collections exist before rendering.
    _publish_collections(site, writable)
    expand = bool(config.get("expand_variables", True))
    rendered: list[RenderedPage] = []
    for page in writable:
        try:
            rendered.append(_render_page(page, composer, default_renderer_registry, expand))
        except ContentError as exc:
            failures.append(BuildFailure(page.unit.source_path, exc))

    _publish_collections(site, rendered)
    composed: list[RenderedPage] = []
    for page in rendered:
        try:
            composed.append(replace(page, html=composer.compose(page)))
        except ContentError as exc:
            failures.append(BuildFailure(page.unit.source_path, exc))

    assembler.write(composed)
    reserved = [page.path for page in composed]
    reserved += AssetPipeline(source_dir, output_dir).run(
        file_loader.iter_static_files(), reserved=reserved
    )
    create_default_feed_registry().generate_all(output_dir, composed, site, reserved=reserved)

    failures.sort(key=lambda f: str(f.source_path))
    for failure in failures:
        logger.warning("%s: %s", failure.source_path, failure.message)
    logger.info(
        "Built %d pages into %s (%d failed)", len(composed), output_dir, len(failures)
    )
    return BuildResult(pages=composed, failures=failures, output_dir=output_dir, site=site)


def _publish_collections(site: dict[str, Any], pages: list[RenderedPage]) -> None:
    """Expose pages to templates as ``site.posts``, ``site.pages`` and ``site.tags``."""
    collection = PageCollection(pages)
    site["posts"] = collection.posts()
    site["pages"] = collection.pages()
    site["tags"] = collection.tags()


def _render_page(
    page: RenderedPage,
    composer: TemplateComposer,
    registry: RendererRegistry,
    expand: bool = True,
) -> RenderedPage:
    """Render a page's body to HTML, expanding template variables first."""
    unit = page.unit
    body = unit.body
    if expand:
        body = composer.expand_variables(body, composer.page_context(page), unit.source_path)
    renderer = registry.get_renderer(unit.source_path)
    content, toc = renderer.render(body)
    return replace(page, content=content, toc=toc)
