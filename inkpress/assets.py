"""Static asset processing for Inkpress.

Files in the source tree that are not content (images, stylesheets, scripts,
fonts) are copied to the same relative path in the output directory. Each
file goes through the highest-priority processor that accepts it.

Key classes:
- ImageProcessor: Re-saves images optimized with Pillow.
- JSProcessor: Minifies JavaScript with rjsmin.
- StaticAssetProcessor: Copies anything else unchanged.
- AssetProcessorRegistry: Picks the processor for a file.
- AssetPipeline: Runs the registry over a list of files.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rjsmin import jsmin

from .protocols import AssetProcessor
from .utils import clashes_with, output_key

logger = logging.getLogger(__name__)


class BaseAssetProcessor(ABC):
    """Base class for asset processors."""

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset."""
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

    def ensure_dest_dir(self, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)


class ImageProcessor(BaseAssetProcessor):
    """Optimizes PNG, JPEG and WebP images; unreadable images are copied as-is."""

    SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp"}

    @property
    def priority(self) -> int:
        return 100

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() in self.SUPPORTED_EXTENSIONS

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        try:
            with Image.open(source) as img:
                img.save(dest, format=img.format, optimize=True)
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning("Could not optimize %s (%s); copying unchanged", source, exc)
            shutil.copy2(source, dest)
        return True


class JSProcessor(BaseAssetProcessor):
    """Minifies JavaScript files."""

    @property
    def priority(self) -> int:
        return 80

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == ".js" and not path.name.endswith(".min.js")

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        with open(source, encoding="utf-8") as f_in:
            minified = jsmin(f_in.read())
        with open(dest, "w", encoding="utf-8") as f_out:
            f_out.write(minified)
        return True


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies files without modification; the fallback for every other asset."""

    @property
    def priority(self) -> int:
        return 0

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> bool:
        self.ensure_dest_dir(dest)
        shutil.copy2(source, dest)
        return True


class AssetProcessorRegistry:
    """Registry of asset processors, kept sorted by priority (highest first)."""

    def __init__(self):
        self._processors: list[AssetProcessor] = []

    def register(self, processor: AssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> AssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> bool:
        """Process an asset using the appropriate processor.

        Returns:
            True if processing was successful, False if no processor found.
        """
        processor = self.get_processor(source)
        if processor:
            return processor.process(source, dest)
        return False


def create_default_registry() -> AssetProcessorRegistry:
    registry = AssetProcessorRegistry()
    registry.register(ImageProcessor())
    registry.register(JSProcessor())
    registry.register(StaticAssetProcessor())
    return registry


class AssetPipeline:
    """Copies static files from the source tree into the output directory.

    Attributes:
        source_dir: Directory the files are taken from.
        output_dir: Directory where processed files are written.
        processor_registry: Registry of asset processors.
    """

    def __init__(
        self,
        source_dir: Path,
        output_dir: Path,
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.source_dir = source_dir
        self.output_dir = output_dir
        self.processor_registry = processor_registry or create_default_registry()

    def run(self, files: Iterable[Path], reserved: Iterable[Path] = ()) -> list[Path]:
        """Process static files.

        Args:
            files: Absolute paths of static files under ``source_dir``.
            reserved: Output paths (relative) already written by pages. Files
                that clash with them are skipped.

        Returns:
            Relative output paths of the files that were written.
        """
        taken = {output_key(p) for p in reserved}
        written: list[Path] = []
        for item in files:
            rel = item.relative_to(self.source_dir)
            if clashes_with(rel, taken):
                logger.warning("Skipping static file %s: it clashes with page output", item)
                continue
            if self.processor_registry.process(item, self.output_dir / rel):
                written.append(rel)
        return written
