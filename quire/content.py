"""Content loading for Quire.

This module discovers post files, parses their front-matter and builds
immutable ContentItem objects with a derived permalink.

Key classes:
- ContentItem: Frozen dataclass representing one post.
- FileContentLoader: Discovers post files in a directory.
- PermalinkDeriver: Expands the permalink pattern for a post.
- ContentLoader: Parses discovered files into ContentItems, skipping bad ones.

A post that fails to parse is logged, recorded in the run report and
skipped; it never stops the remaining posts from loading.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .config import SiteConfig
from .errors import ParseError
from .frontmatter import parse_date, split_frontmatter
from .utils import (
    extract_date_from_name,
    is_content_file,
    normalize_url,
    slugify,
    strip_date_prefix,
)

if TYPE_CHECKING:
    from .report import RunReport

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("title", "date", "layout")
_PERMALINK_TOKEN_RE = re.compile(r":(year|month|day|i_month|i_day|short_year|title|slug|categories)")


@dataclass(frozen=True)
class ContentItem:
    """A post loaded from disk.

    Attributes:
        source_path: Path of the post file relative to the posts directory.
        frontmatter: Read-only front-matter mapping in file order, with
            config defaults filled in and ``date`` normalised.
        body: Raw body text after the front-matter block.
        slug: URL-friendly slug.
        date: Publication date (timezone-aware, UTC).
        permalink: Site-relative URL of the post page.
    """

    source_path: Path
    frontmatter: Mapping[str, Any]
    body: str
    slug: str
    date: datetime
    permalink: str

    @property
    def title(self) -> str:
        return str(self.frontmatter["title"])

    @property
    def layout(self) -> str:
        return str(self.frontmatter["layout"])

    @property
    def tags(self) -> list[str]:
        return _as_list(self.frontmatter.get("tags"))

    @property
    def categories(self) -> list[str]:
        return _as_list(self.frontmatter.get("categories"))

    @property
    def url(self) -> str:
        return self.permalink

    @property
    def excerpt(self) -> str:
        """Front-matter excerpt, else the first plain paragraph of the body."""
        if self.frontmatter.get("excerpt"):
            return str(self.frontmatter["excerpt"])
        return first_paragraph(self.body)

    def get(self, key: str, default: Any = None) -> Any:
        return self.frontmatter.get(key, default)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


class FileContentLoader:
    """Discovers post files in a directory.

    Attributes:
        posts_dir: Directory containing posts.
    """

    def __init__(self, posts_dir: Path):
        self.posts_dir = posts_dir

    def iter_files(self) -> list[Path]:
        """Return post files sorted by their relative path.

        Files in directories starting with ``_`` or ``.`` are skipped.
        """
        if not self.posts_dir.is_dir():
            return []
        files: list[Path] = []
        for path in self.posts_dir.rglob("*"):
            if path.is_dir():
                continue
            rel = path.relative_to(self.posts_dir)
            if any(part.startswith(("_", ".")) for part in rel.parts[:-1]):
                continue
            if is_content_file(path):
                files.append(path)
        return sorted(files, key=lambda p: p.relative_to(self.posts_dir).as_posix())


class PermalinkDeriver:
    """Expands a permalink pattern such as ``/:year/:month/:day/:title/``.

    Supported tokens: ``:year``, ``:month``, ``:day``, ``:i_month``,
    ``:i_day``, ``:short_year``, ``:title``, ``:slug`` and ``:categories``.
    """

    def __init__(self, pattern: str):
        self.pattern = pattern

    def derive(self, slug: str, date: datetime, categories: list[str]) -> str:
        values = {
            "year": f"{date.year:04d}",
            "month": f"{date.month:02d}",
            "day": f"{date.day:02d}",
            "i_month": str(date.month),
            "i_day": str(date.day),
            "short_year": f"{date.year % 100:02d}",
            "title": slug,
            "slug": slug,
            "categories": "/".join(slugify(c) for c in categories),
        }
        expanded = _PERMALINK_TOKEN_RE.sub(lambda m: values[m.group(1)], self.pattern)
        return normalize_url(expanded)


class ContentLoader:
    """Parses post files into ContentItems.

    Attributes:
        config: Site configuration supplying front-matter defaults and the
            permalink pattern.
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self._permalinks = PermalinkDeriver(config.permalink)

    def load(self, source_dir: Path, report: RunReport | None = None) -> list[ContentItem]:
        """Load every post in a directory.

        Malformed posts are logged and recorded in ``report`` as ParseError
        failures; they do not stop the others.

        Args:
            source_dir: Directory of post files.
            report: Optional run report to record outcomes in.

        Returns:
            ContentItems sorted by relative filename, then by date.
        """
        items: list[ContentItem] = []
        for path in FileContentLoader(source_dir).iter_files():
            rel = path.relative_to(source_dir)
            try:
                item = self.load_file(path, rel)
            except ParseError as exc:
                logger.warning("Skipping %s: %s", rel.as_posix(), exc.message)
                if report is not None:
                    report.record_failure(rel.as_posix(), exc)
                continue
            if report is not None:
                report.record_loaded(rel.as_posix())
            items.append(item)
        items.sort(key=lambda i: (i.source_path.as_posix(), i.date))
        logger.info("Loaded %d posts from %s", len(items), source_dir)
        return items

    def load_file(self, path: Path, rel: Path) -> ContentItem:
        """Parse one post file.

        Args:
            path: Absolute path of the file.
            rel: Path relative to the posts directory, used as identity.

        Raises:
            ParseError: On malformed front-matter, a missing required key or
                an invalid date.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseError(rel, f"could not read file: {exc}", exc) from exc
        return self.parse(raw, rel)

    def parse(self, raw: str, rel: Path) -> ContentItem:
        """Build a ContentItem from raw file text."""
        own, body = split_frontmatter(raw, rel)

        frontmatter = dict(own)
        for key, value in self.config.defaults.items():
            frontmatter.setdefault(key, value)

        if "date" not in frontmatter:
            filename_date = extract_date_from_name(rel.stem)
            if filename_date is not None:
                frontmatter["date"] = filename_date

        missing = [key for key in REQUIRED_KEYS if frontmatter.get(key) in (None, "")]
        if missing:
            raise ParseError(rel, f"missing required front-matter key(s): {', '.join(missing)}")

        # The permalink uses the calendar date in the post's own offset.
        local_date = parse_date(frontmatter["date"], rel, keep_offset=True)
        date = local_date.astimezone(timezone.utc)
        frontmatter["date"] = date

        slug = slugify(str(frontmatter.get("slug") or strip_date_prefix(rel.stem)))
        try:
            if frontmatter.get("permalink"):
                permalink = normalize_url(str(frontmatter["permalink"]))
            else:
                permalink = self._permalinks.derive(
                    slug, local_date, _as_list(frontmatter.get("categories"))
                )
        except ValueError as exc:
            raise ParseError(rel, f"invalid permalink: {exc}", exc) from exc

        return ContentItem(
            source_path=rel,
            frontmatter=MappingProxyType(frontmatter),
            body=body,
            slug=slug,
            date=date,
            permalink=permalink,
        )


def first_paragraph(text: str) -> str:
    """Return the first paragraph of a Markdown body as collapsed plain text.

    Headings, images, code fences and horizontal rules are skipped.
    """
    for para in (p.strip() for p in text.split("\n\n")):
        if not para or para.startswith(("#", "![", "```", "~~~", "---", "<")):
            continue
        return " ".join(para.split())
    return ""
