"""Site assembly for Inkpress.

Writes composed pages to the output directory, one file per page, after
checking that no two pages claim the same output path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from .content import RenderedPage
from .errors import OutputCollisionError
from .utils import output_key

logger = logging.getLogger(__name__)


class SiteAssembler:
    """Writes rendered pages to their output locations.

    Attributes:
        output_dir: Base output directory.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def plan(
        self, pages: Iterable[RenderedPage]
    ) -> tuple[list[RenderedPage], list[OutputCollisionError]]:
        """Split pages into those safe to write and those that collide.

        Pages collide when they claim the same output path, or when one
        page's output file sits where another page needs a directory
        (``/notes.txt`` and ``/notes.txt/``). Every colliding page gets an
        OutputCollisionError and none of them is written.

        Args:
            pages: Pages in build order.

        Returns:
            Tuple of (writable pages, collision errors).
        """
        claims: dict[str, list[RenderedPage]] = {}
        for page in pages:
            claims.setdefault(output_key(page.path), []).append(page)

        rivals: dict[str, set[str]] = {key: set() for key in claims}
        for key in claims:
            for parent in PurePosixPath(key).parents:
                parent_key = parent.as_posix()
                if parent_key in claims:
                    rivals[key].add(parent_key)
                    rivals[parent_key].add(key)

        writable: list[RenderedPage] = []
        collisions: list[OutputCollisionError] = []
        for key, group in claims.items():
            if len(group) == 1 and not rivals[key]:
                writable.append(group[0])
                continue
            nested = [p for other in sorted(rivals[key]) for p in claims[other]]
            for page in group:
                others = [p.unit.source_path for p in group + nested if p is not page]
                collisions.append(
                    OutputCollisionError(page.unit.source_path, page.path, others)
                )
        return writable, collisions

    def write(self, pages: Iterable[RenderedPage]) -> list[Path]:
        """Write pages to the output directory, replacing existing files.

        Args:
            pages: Pages with composed HTML.

        Returns:
            Paths of the files written.
        """
        written: list[Path] = []
        for page in pages:
            target = self.output_dir / page.path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(page.html, encoding="utf-8")
            logger.debug("Wrote %s -> %s", page.unit.source_path, target)
            written.append(target)
        return written
