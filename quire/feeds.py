"""Feed generation for Quire.

This module generates sitemap.xml and an RSS 2.0 feed from the pages of
a build. Both need an absolute base URL, so nothing is generated unless
``base_url`` is configured.

Classes:
    FeedGenerator: Abstract base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates rss.xml.
    FeedRegistry: Runs every registered generator.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any
from xml.sax.saxutils import escape

from .collections import PageCollection, sortable_date
from .errors import WriteError
from .renderer import RenderedPage

if TYPE_CHECKING:
    from .content import Document
    from .protocols import PageWriter


def _base_url(config: Mapping[str, Any]) -> str:
    return str(config.get("base_url") or "").rstrip("/")


def _rfc822(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(self, pages: Iterable[Document], config: Mapping[str, Any]) -> str | None:
        """Generate feed content from pages.

        Args:
            pages: Documents that were published in this build.
            config: Site configuration containing ``base_url``.

        Returns:
            Feed content, or None when the feed cannot be generated.
        """
        ...

    def write(
        self, writer: PageWriter, pages: Iterable[Document], config: Mapping[str, Any]
    ) -> bool:
        """Generate the feed and write it through a PageWriter.

        Returns:
            True if the feed was written, False if skipped.

        Raises:
            WriteError: If the feed file cannot be written.
        """
        content = self.generate(pages, config)
        if content is None:
            return False
        writer.emit(RenderedPage(PurePosixPath(self.filename), content.encode("utf-8")))
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing every published page."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: Iterable[Document], config: Mapping[str, Any]) -> str | None:
        base_url = _base_url(config)
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.url):
            loc = escape(f"{base_url}{page.url}")
            lastmod = page.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of published non-section pages, newest first.

    Uses ``title`` from the configuration for the channel title. The
    channel date is the newest item's date, so the feed is stable across
    rebuilds of unchanged content.
    """

    def __init__(self, limit: int = 20):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, pages: Iterable[Document], config: Mapping[str, Any]) -> str | None:
        base_url = _base_url(config)
        if not base_url:
            return None
        title = escape(str(config.get("title") or "Quire Feed"))
        entries = [p for p in PageCollection(pages).published().sorted() if not p.is_section]
        entries = entries[: self.limit]

        items = []
        for page in entries:
            link = escape(f"{base_url}{page.url}")
            description = escape(page.description or page.title)
            items.append(
                f"<item><title>{escape(page.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid><description>{description}</description>"
                f"<pubDate>{_rfc822(page.date)}</pubDate></item>"
            )

        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{title}</description>",
        ]
        if entries:
            newest = max(entries, key=lambda p: sortable_date(p.date))
            rss.append(f"<lastBuildDate>{_rfc822(newest.date)}</lastBuildDate>")
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing feed generators.

    Attributes:
        errors: Feeds that failed to write in the most recent run.
    """

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []
        self.errors: list[WriteError] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, writer: PageWriter, pages: Iterable[Document], config: Mapping[str, Any]
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            Filenames that were written.
        """
        pages_list = list(pages)
        self.errors = []
        generated = []
        for generator in self._generators:
            try:
                if generator.write(writer, pages_list, config):
                    generated.append(generator.filename)
            except WriteError as exc:
                self.errors.append(exc)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
