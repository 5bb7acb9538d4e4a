"""Utility functions for Inkpress.

String and path helpers shared by the loader, permalink resolver and CLI.

Key functions:
    slugify: Convert filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from filename prefix.
    strip_date_prefix: Drop a YYYY-MM-DD- prefix from a filename stem.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML file.
    ensure_clean_dir: Ensure a directory exists and is empty.
    clashes_with: Check an output path against paths already written.
"""

from __future__ import annotations

import re
import shutil
from collections.abc import Collection
from datetime import date, datetime
from pathlib import Path, PurePosixPath

MARKDOWN_SUFFIXES = {".md", ".markdown"}


def strip_date_prefix(name: str) -> str:
    """Remove a leading YYYY-MM-DD- prefix from a filename stem.

    Args:
        name: Filename stem.

    Returns:
        The stem without its date prefix, or unchanged if there is none.
    """
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return name


def slugify(name: str) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug.
    """
    cleaned = strip_date_prefix(name)
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2016-03-02-optionals-in-swift.md")
        'Optionals In Swift'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def coerce_datetime(value: object) -> datetime | None:
    """Turn a front matter date value into a datetime.

    YAML yields ``date`` or ``datetime`` objects for unquoted dates; quoted
    values are parsed as ISO 8601.

    Returns:
        A datetime, or None if the value cannot be read as a date.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file."""
    return path.suffix.lower() in {".html", ".htm"}


def output_key(path: Path) -> str:
    """Case-folded POSIX form of an output path, for comparing claims."""
    return path.as_posix().lower()


def clashes_with(path: Path, claimed: Collection[str]) -> bool:
    """Check whether writing a file at ``path`` clashes with claimed outputs.

    A clash is the same path, a claimed file where ``path`` needs a
    directory, or a claimed file inside the directory ``path`` would be.

    Args:
        path: Output path relative to the output directory.
        claimed: Keys from ``output_key`` of paths already written.

    Returns:
        True if the file cannot be written without breaking a claim.
    """
    key = output_key(path)
    if key in claimed:
        return True
    if any(parent.as_posix() in claimed for parent in PurePosixPath(key).parents):
        return True
    prefix = f"{key}/"
    return any(other.startswith(prefix) for other in claimed)
