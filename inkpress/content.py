"""Content loading for Inkpress.

This module discovers content files in the source directory and turns each
one into an immutable ContentUnit: its metadata mapping and its raw body.

Key classes:
- ContentUnit: A page or post as read from disk.
- RenderedPage: The HTML derived from one ContentUnit and where it goes.
- FileContentLoader: Discovers content and static files.
- ContentLoader: Reads every content file, collecting per-file failures.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .errors import ContentError, MalformedContentError
from .frontmatter import parse_frontmatter
from .permalinks import validate_permalink
from .renderers import Heading, RendererRegistry, default_renderer_registry
from .utils import coerce_datetime, extract_date_from_name, slugify, titleize

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"


@dataclass(frozen=True)
class ContentUnit:
    """A page or post: front matter metadata plus the raw body.

    Attributes:
        source_path: Path to the source file.
        rel_path: Path relative to the source directory.
        kind: "page", "post" or "draft".
        metadata: Read-only front matter mapping.
        body: Body text following the front matter, unmodified.
        date: Publication date, from front matter or the filename.
    """

    source_path: Path
    rel_path: Path
    kind: str
    metadata: Mapping[str, Any]
    body: str
    date: datetime | None = None

    @property
    def layout(self) -> str | None:
        return self.metadata.get("layout")

    @property
    def permalink(self) -> str | None:
        return self.metadata.get("permalink")

    @property
    def feature_img(self) -> str | None:
        return self.metadata.get("feature-img")

    @property
    def title(self) -> str:
        """Title from front matter, else the first level-1 heading, else the filename."""
        title = self.metadata.get("title")
        if title:
            return title
        for line in self.body.splitlines():
            stripped = line.strip()
            if stripped.startswith("# "):
                return stripped[2:].strip()
        return titleize(self.rel_path.name)

    @property
    def slug(self) -> str:
        return slugify(self.rel_path.stem)

    @property
    def description(self) -> str:
        return str(self.metadata.get("description") or "")

    @property
    def tags(self) -> list[str]:
        tags = self.metadata.get("tags") or []
        if isinstance(tags, str):
            return tags.split()
        return [str(tag) for tag in tags]

    @property
    def draft(self) -> bool:
        return self.kind == "draft" or self.metadata.get("published") is False


@dataclass(frozen=True)
class RenderedPage:
    """HTML derived from a ContentUnit.

    Attributes:
        unit: The unit this page was rendered from.
        url: Public URL path, e.g. "/about/".
        path: Output file path relative to the output directory.
        content: Rendered body HTML.
        toc: Headings found in the body.
        html: Final HTML after layout composition.
    """

    unit: ContentUnit
    url: str
    path: Path
    content: str
    toc: list[Heading] = field(default_factory=list)
    html: str = ""

    @property
    def title(self) -> str:
        return self.unit.title

    @property
    def date(self) -> datetime | None:
        return self.unit.date


class FileContentLoader:
    """Discovers content and static files under a source directory.

    Attributes:
        source_dir: Directory containing site content.
        exclude: Glob patterns (relative, POSIX-style) to ignore.
        skip_dirs: Absolute directories to ignore entirely, such as the output.
    """

    def __init__(
        self,
        source_dir: Path,
        exclude: Iterable[str] = (),
        skip_dirs: Iterable[Path] = (),
        renderer_registry: RendererRegistry | None = None,
    ):
        self.source_dir = source_dir
        self.exclude = list(exclude)
        self.skip_dirs = [Path(p).resolve() for p in skip_dirs]
        self.renderer_registry = renderer_registry or default_renderer_registry

    def _walk(self, include_drafts: bool) -> list[tuple[Path, Path]]:
        entries = []
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.source_dir)
            if self._is_skipped(path, rel, include_drafts):
                continue
            entries.append((path, rel))
        return entries

    def _is_skipped(self, path: Path, rel: Path, include_drafts: bool) -> bool:
        if rel.name.startswith((".", "_")):
            return True
        dirs = rel.parts[:-1]
        for index, part in enumerate(dirs):
            if part.startswith("."):
                return True
            if not part.startswith("_"):
                continue
            if index == 0 and part == POSTS_DIR:
                continue
            if index == 0 and part == DRAFTS_DIR and include_drafts:
                continue
            return True
        posix = rel.as_posix()
        if any(fnmatch.fnmatch(posix, pattern) for pattern in self.exclude):
            return True
        resolved = path.resolve()
        return any(resolved.is_relative_to(skip) for skip in self.skip_dirs)

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """List content files in sorted order.

        Args:
            include_drafts: Whether to include files under ``_drafts``.

        Returns:
            List of paths to content files.
        """
        return [
            path
            for path, _ in self._walk(include_drafts)
            if self.renderer_registry.can_render(path)
        ]

    def iter_static_files(self) -> list[Path]:
        """List files that are copied through as static assets."""
        return [
            path
            for path, rel in self._walk(include_drafts=False)
            if not self.renderer_registry.can_render(path)
            and rel.parts[0] not in (POSTS_DIR, DRAFTS_DIR)
        ]


class ContentLoader:
    """Reads content files into ContentUnits.

    A file that cannot be read is reported and skipped; it never stops the
    remaining files from loading.
    """

    def __init__(self, source_dir: Path, file_loader: FileContentLoader | None = None):
        self.source_dir = source_dir
        self.file_loader = file_loader or FileContentLoader(source_dir)

    def load(
        self, include_drafts: bool = False
    ) -> tuple[list[ContentUnit], list[ContentError]]:
        """Load all content files.

        Args:
            include_drafts: Whether to include drafts and unpublished units.

        Returns:
            Tuple of (loaded units, errors for units that failed to load).
        """
        units: list[ContentUnit] = []
        failures: list[ContentError] = []
        for path in self.file_loader.iter_files(include_drafts):
            try:
                unit = self.load_unit(path)
            except ContentError as exc:
                logger.debug("Failed to load %s: %s", path, exc.message)
                failures.append(exc)
                continue
            if unit.draft and not include_drafts:
                logger.debug("Skipping unpublished %s", path)
                continue
            units.append(unit)
        return units, failures

    def load_unit(self, path: Path) -> ContentUnit:
        """Read one content file.

        Args:
            path: Path to the source file.

        Returns:
            ContentUnit for the file.

        Raises:
            MalformedContentError: If the file cannot be decoded, its front
                matter is malformed, its permalink is invalid, or a post has
                no date.
        """
        rel = path.relative_to(self.source_dir)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedContentError(path, f"File is not valid UTF-8: {exc}") from exc

        metadata, body = parse_frontmatter(text, path)
        if "permalink" in metadata:
            validate_permalink(metadata["permalink"], path)

        kind = "page"
        if rel.parts[0] == POSTS_DIR:
            kind = "post"
        elif rel.parts[0] == DRAFTS_DIR:
            kind = "draft"

        return ContentUnit(
            source_path=path,
            rel_path=rel,
            kind=kind,
            metadata=MappingProxyType(metadata),
            body=body,
            date=self._resolve_date(path, kind, metadata),
        )

    def _resolve_date(
        self, path: Path, kind: str, metadata: dict[str, Any]
    ) -> datetime | None:
        if "date" in metadata:
            date = coerce_datetime(metadata["date"])
            if date is None:
                raise MalformedContentError(
                    path, f"Front matter date is not a date: {metadata['date']!r}"
                )
            return date
        date = extract_date_from_name(path.stem)
        if date is not None:
            return date
        if kind == "post":
            raise MalformedContentError(
                path, "Posts need a YYYY-MM-DD- filename prefix or a 'date' key"
            )
        if kind == "draft":
            return datetime.fromtimestamp(path.stat().st_mtime)
        return None
