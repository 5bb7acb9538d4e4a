"""Protocol definitions for Inkpress.

These protocols describe the pluggable pieces of the pipeline so custom
implementations can be registered alongside the built-in ones.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .renderers import Heading


@runtime_checkable
class ContentRenderer(Protocol):
    """Renders the body of one kind of content file to HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file.

        Args:
            path: Path to the source file.

        Returns:
            True if this renderer can process the file.
        """
        ...

    @abstractmethod
    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render a body to HTML.

        Args:
            content: Body text, front matter already removed.

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class AssetProcessor(Protocol):
    """Processes one kind of static asset."""

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset file.

        Args:
            source: Source asset path.
            dest: Destination path for processed asset.

        Returns:
            True if processing was successful.
        """
        ...

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...
