"""Feed generation for Inkpress.

Generates ``sitemap.xml`` for all pages and an RSS 2.0 ``feed.xml`` for posts.
Both need the site ``url`` to build absolute links and are skipped without it.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates the RSS feed of posts.
    FeedRegistry: Registry for managing feed generators.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .collections import PageCollection
from .content import RenderedPage
from .html_utils import escape_html, join_root_url
from .utils import clashes_with, output_key

logger = logging.getLogger(__name__)

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


def _base_url(site: dict[str, Any]) -> str:
    return str(site.get("url") or "").rstrip("/")


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(self, pages: Iterable[RenderedPage], site: dict[str, Any]) -> str | None:
        """Generate feed content from pages.

        Returns:
            Feed content as a string, or None if the feed cannot be generated
            (e.g., no site url configured).
        """
        ...

    def write(
        self, output_dir: Path, pages: Iterable[RenderedPage], site: dict[str, Any]
    ) -> bool:
        """Generate and write the feed.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(pages, site)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: Iterable[RenderedPage], site: dict[str, Any]) -> str | None:
        base_url = _base_url(site)
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.url):
            loc = escape_html(join_root_url(base_url, page.url))
            if page.date:
                lastmod = page.date.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of posts, newest first."""

    def __init__(self, limit: int = 20):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, pages: Iterable[RenderedPage], site: dict[str, Any]) -> str | None:
        base_url = _base_url(site)
        if not base_url:
            return None
        title = escape_html(str(site.get("title") or "Inkpress Feed"))

        items = []
        for page in PageCollection(pages).posts()[: self.limit]:
            link = escape_html(join_root_url(base_url, page.url))
            description = escape_html(page.unit.description or page.title)
            pub_date = page.date.strftime(RFC822_FORMAT) if page.date else ""
            items.append(
                f"<item><title>{escape_html(page.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid><description>{description}</description>"
                f"<pubDate>{pub_date}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RFC822_FORMAT)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape_html(base_url)}/</link>",
            f"<description>{title}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        pages: Iterable[RenderedPage],
        site: dict[str, Any],
        reserved: Iterable[Path] = (),
    ) -> list[str]:
        """Generate all registered feeds.

        Args:
            output_dir: Directory to write feed files to.
            pages: Pages written by the build.
            site: Site context, providing ``url`` and ``title``.
            reserved: Output paths already written; feeds never overwrite them.

        Returns:
            List of filenames that were generated.
        """
        pages_list = list(pages)
        taken = {output_key(p) for p in reserved}
        generated = []
        for generator in self._generators:
            if clashes_with(Path(generator.filename), taken):
                logger.warning("Skipping %s: it clashes with page output", generator.filename)
                continue
            if generator.write(output_dir, pages_list, site):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
