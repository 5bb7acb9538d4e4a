"""Permalink resolution for Inkpress.

Works out the public URL of a content unit and the file that URL maps to in
the output directory.

Key pieces:
- validate_permalink: Check a declared permalink is a safe output path.
- PermalinkResolver: URL for a unit, explicit or derived.
- output_path_for: Relative output file for a URL.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from .errors import InvalidPermalinkError
from .utils import is_html, slugify

if TYPE_CHECKING:
    from .content import ContentUnit

DEFAULT_POST_PERMALINK = "/:year/:month/:day/:title/"

PLACEHOLDER_RE = re.compile(r":(year|month|day|title|slug)\b")


def validate_permalink(value: str, source_path: Path) -> str:
    """Check that a permalink can be used as an output location.

    Args:
        value: Declared permalink.
        source_path: Unit the permalink belongs to, for error reporting.

    Returns:
        The permalink, unchanged.

    Raises:
        InvalidPermalinkError: If the permalink is not an absolute, clean,
            slash-separated path.
    """
    if not value.startswith("/"):
        raise InvalidPermalinkError(source_path, f"Permalink must start with '/': {value!r}")
    if "://" in value or any(char in value for char in "\\?#\x00"):
        raise InvalidPermalinkError(source_path, f"Permalink is not a plain path: {value!r}")
    segments = value.split("/")
    if any(segment in (".", "..") for segment in segments):
        raise InvalidPermalinkError(
            source_path, f"Permalink may not contain '.' or '..' segments: {value!r}"
        )
    if any(segment != segment.strip() for segment in segments):
        raise InvalidPermalinkError(
            source_path, f"Permalink segments may not have surrounding spaces: {value!r}"
        )
    return value


def output_path_for(url: str) -> Path:
    """Map a URL to a file path relative to the output directory.

    Examples:
        >>> output_path_for("/about/").as_posix()
        'about/index.html'
        >>> output_path_for("/feed.xml").as_posix()
        'feed.xml'
    """
    stripped = url.strip("/")
    if not stripped:
        return Path("index.html")
    relative = PurePosixPath(stripped)
    if url.endswith("/") or not relative.suffix:
        relative = relative / "index.html"
    return Path(*relative.parts)


class PermalinkResolver:
    """Resolves the public URL of content units.

    Attributes:
        post_pattern: Pattern used for posts without an explicit permalink.
    """

    def __init__(self, post_pattern: str = DEFAULT_POST_PERMALINK):
        self.post_pattern = post_pattern or DEFAULT_POST_PERMALINK

    def resolve(self, unit: ContentUnit) -> str:
        """Return the URL for a unit.

        An explicit permalink wins. Posts and drafts otherwise use the post
        pattern; pages use their location in the source tree.
        """
        if unit.permalink:
            return unit.permalink
        if unit.kind in ("post", "draft"):
            return self._expand_pattern(unit)
        return self._page_url(unit)

    def _expand_pattern(self, unit: ContentUnit) -> str:
        date = unit.date
        values = {
            "year": f"{date.year:04d}" if date else "",
            "month": f"{date.month:02d}" if date else "",
            "day": f"{date.day:02d}" if date else "",
            "title": unit.slug,
            "slug": unit.slug,
        }
        url = PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], self.post_pattern)
        url = re.sub(r"/{2,}", "/", url)
        return url if url.startswith("/") else f"/{url}"

    def _page_url(self, unit: ContentUnit) -> str:
        rel = unit.rel_path
        segments = list(PurePosixPath(rel.as_posix()).parent.parts)
        if is_html(rel):
            # HTML pages keep their filename, so 404.html stays 404.html.
            return "/" + "/".join(segments + [rel.name])
        slug = slugify(rel.stem)
        if slug != "index":
            segments.append(slug)
        path = "/".join(segments)
        return f"/{path}/" if path else "/"
