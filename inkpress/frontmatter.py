"""Front matter parsing for Inkpress.

A content unit starts with a YAML block between ``---`` delimiter lines,
followed by the body. The split is lossless: the four parts returned by
``split_frontmatter`` join back into the exact input text.
"""

from __future__ import annotations

import re
from collections.abc import Hashable
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from .errors import MalformedContentError

OPENING_RE = re.compile(r"\A(?:\ufeff)?---[ \t]*\r?\n")
CLOSING_RE = re.compile(r"^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)", re.MULTILINE)

# Keys whose values must be plain strings.
STRING_KEYS = ("layout", "title", "permalink", "feature-img")

_UNKNOWN_SOURCE = Path("<string>")


class FrontmatterSplit(NamedTuple):
    """Raw pieces of a content unit; ``"".join(split)`` is the original text."""

    opening: str
    block: str
    closing: str
    body: str

    @property
    def has_frontmatter(self) -> bool:
        return bool(self.opening)


class _UniqueKeyLoader(yaml.SafeLoader):
    """Safe loader that rejects repeated keys instead of keeping the last one."""

    def construct_mapping(self, node, deep=False):
        seen: set = set()
        for key_node, _ in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key {key!r}",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def split_frontmatter(text: str, source_path: Path | None = None) -> FrontmatterSplit:
    """Split text into opening delimiter, YAML block, closing delimiter and body.

    Args:
        text: Raw file content.
        source_path: Path used when reporting errors.

    Returns:
        FrontmatterSplit. Without an opening delimiter the whole text is body.

    Raises:
        MalformedContentError: If the opening delimiter is never closed.
    """
    opening = OPENING_RE.match(text)
    if not opening:
        return FrontmatterSplit("", "", "", text)
    closing = CLOSING_RE.search(text, opening.end())
    if not closing:
        raise MalformedContentError(
            source_path or _UNKNOWN_SOURCE,
            "Front matter opened with '---' is never closed",
        )
    return FrontmatterSplit(
        opening=opening.group(0),
        block=text[opening.end() : closing.start()],
        closing=closing.group(0),
        body=text[closing.end() :],
    )


def load_metadata(block: str, source_path: Path | None = None) -> dict[str, Any]:
    """Parse a YAML front matter block into a metadata mapping.

    Args:
        block: YAML text between the delimiters.
        source_path: Path used when reporting errors.

    Returns:
        Dictionary of metadata. Well-known keys hold strings or are absent.

    Raises:
        MalformedContentError: On invalid YAML, a non-mapping block, duplicate
            keys, or a well-known key holding a list or mapping.
    """
    path = source_path or _UNKNOWN_SOURCE
    try:
        data = yaml.load(block, Loader=_UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise MalformedContentError(path, f"Invalid front matter: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedContentError(
            path, f"Front matter must be a mapping, got {type(data).__name__}"
        )
    metadata = {str(key): value for key, value in data.items()}
    for key in STRING_KEYS:
        if key not in metadata:
            continue
        value = metadata[key]
        if value is None:
            del metadata[key]
        elif isinstance(value, (list, dict)):
            raise MalformedContentError(path, f"Front matter key '{key}' must be a string")
        elif not isinstance(value, str):
            metadata[key] = str(value)
    return metadata


def parse_frontmatter(
    text: str, source_path: Path | None = None
) -> tuple[dict[str, Any], str]:
    """Split text into its metadata mapping and its unmodified body.

    Args:
        text: Raw file content.
        source_path: Path used when reporting errors.

    Returns:
        Tuple of (metadata dict, remaining body).
    """
    split = split_frontmatter(text, source_path)
    if not split.has_frontmatter:
        return {}, split.body
    return load_metadata(split.block, source_path), split.body
