"""Error types raised while publishing a content unit.

Every error carries the source file it was raised for, so the build can
record it against that unit and carry on with the rest of the batch.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class ContentError(Exception):
    """Error tied to a single content unit.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
    """

    def __init__(self, source_path: Path, message: str):
        self.source_path = source_path
        self.message = message
        super().__init__(f"{source_path}: {message}")


class MalformedContentError(ContentError):
    """The front matter block is unclosed, invalid, or otherwise unusable."""


class InvalidPermalinkError(MalformedContentError):
    """A declared permalink is not a usable output path."""


class LayoutError(ContentError):
    """A layout could not be applied to a unit."""


class LayoutNotFoundError(LayoutError):
    """The layout named by a unit (or the default layout) does not exist."""

    def __init__(self, source_path: Path, layout: str | None, message: str | None = None):
        self.layout = layout
        super().__init__(source_path, message or f"Layout not found: {layout!r}")


class RenderError(ContentError):
    """A template failed while composing a unit."""


class OutputCollisionError(ContentError):
    """Two or more units resolve to the same output path.

    Attributes:
        output_path: The contested path, relative to the output directory.
        claimants: Source paths of the other units claiming it.
    """

    def __init__(self, source_path: Path, output_path: Path, claimants: Iterable[Path]):
        self.output_path = output_path
        self.claimants = list(claimants)
        others = ", ".join(str(p) for p in self.claimants)
        super().__init__(
            source_path,
            f"Output path {output_path.as_posix()} is also claimed by {others}",
        )
