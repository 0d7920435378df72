"""Feed generation for Quire.

Generates ``sitemap.xml`` and an RSS 2.0 ``feed.xml`` from composed pages.
Both need an absolute site URL, so they are skipped when ``url`` is not
configured.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates RSS feed files.
    FeedRegistry: Registry for managing feed generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from markupsafe import escape

from .config import SiteConfig

if TYPE_CHECKING:
    from .compose import Page

RFC822 = "%a, %d %b %Y %H:%M:%S +0000"


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        ...

    @abstractmethod
    def generate(self, pages: Iterable[Page], config: SiteConfig) -> str | None:
        """Generate feed content from pages.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...

    def write(self, output_dir: Path, pages: Iterable[Page], config: SiteConfig) -> bool:
        """Generate and write the feed; returns False if skipped."""
        content = self.generate(pages, config)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Lists every page with its canonical URL and, for posts, the post date."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages: Iterable[Page], config: SiteConfig) -> str | None:
        if not config.url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in pages:
            loc = escape(config.absolute_url(page.url))
            if page.seo.published_time is not None:
                lastmod = page.seo.published_time.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """RSS 2.0 feed of post pages, newest first."""

    def __init__(self, limit: int = 20):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, pages: Iterable[Page], config: SiteConfig) -> str | None:
        if not config.url:
            return None
        posts = [p for p in pages if p.kind == "post" and p.seo.published_time is not None]
        posts.sort(key=lambda p: p.seo.published_time, reverse=True)

        items = []
        for page in posts[: self.limit]:
            link = escape(config.absolute_url(page.url))
            items.append(
                f"<item><title>{escape(page.seo.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape(page.seo.description or page.seo.title)}</description>"
                f"<pubDate>{page.seo.published_time.strftime(RFC822)}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RFC822)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(config.title or 'Quire Feed')}</title>",
            f"<link>{escape(config.absolute_url('/'))}</link>",
            f"<description>{escape(config.description)}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


class FeedRegistry:
    """Runs every registered feed generator during a build."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, pages: Iterable[Page], config: SiteConfig
    ) -> list[str]:
        """Generate all registered feeds and return the filenames written."""
        pages_list = list(pages)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, pages_list, config):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
