from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime

from .content import RenderedPage


class PageCollection(Sequence[RenderedPage]):
    """Lightweight helper for working with lists of pages in layouts and code."""

    def __init__(self, pages: Iterable[RenderedPage]):
        self._pages = list(pages)

    def __iter__(self) -> Iterator[RenderedPage]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PageCollection(self._pages[item])
        return self._pages[item]

    def of_kind(self, kind: str) -> PageCollection:
        return PageCollection(p for p in self._pages if p.unit.kind == kind)

    def posts(self) -> PageCollection:
        """Posts and drafts, newest first."""
        return PageCollection(
            p for p in self._pages if p.unit.kind in ("post", "draft")
        ).sorted()

    def pages(self) -> PageCollection:
        return self.of_kind("page")

    def with_tag(self, tag: str) -> PageCollection:
        return PageCollection(p for p in self._pages if tag in p.unit.tags)

    def tags(self) -> dict[str, PageCollection]:
        """Map each tag to the pages carrying it, tags in alphabetical order."""
        index: dict[str, list[RenderedPage]] = {}
        for page in self._pages:
            for tag in page.unit.tags:
                index.setdefault(tag, []).append(page)
        return {tag: PageCollection(index[tag]) for tag in sorted(index)}

    def sorted(self, reverse: bool = True) -> PageCollection:
        """Sort by date, then by URL so equal dates stay in a stable order.

        Undated pages sort as the oldest.

        Args:
            reverse: If True (default), newest first.
        """

        def sort_key(p: RenderedPage):
            return (p.date or datetime.min, p.url)

        return PageCollection(sorted(self._pages, key=sort_key, reverse=reverse))

    def latest(self, count: int = 5) -> PageCollection:
        return self.sorted()[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"
