"""Page composition for Quire.

The composer turns loaded posts into output pages in three steps:

1. Per-post pages: each post's layout chain is resolved and its output
   path claimed, then its body is rendered to HTML and wrapped by every
   layout in the chain. Posts are independent, so rendering can run on a
   thread pool.
2. Listing pages: the posts that composed successfully are ordered newest
   first and paginated through the pagination layout.
3. SEO: every page carries a SeoMetadata block derived from front-matter
   with SiteConfig fallbacks.

Posts that fail are excluded from the output, from ``site.posts`` and from
the listings, and returned as errors; the run report, when given, is only written from the calling thread.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import TemplateError
from markupsafe import Markup

from .collections import PostCollection, listing_order
from .config import SiteConfig
from .content import ContentItem
from .errors import OutputConflictError, QuireError, RenderError, UnresolvedReferenceError
from .pagination import Paginator, page_count, page_url, paginate
from .protocols import LayoutResolver
from .renderers import RendererRegistry
from .report import RunReport
from .seo import SeoMetadata, render_seo_tags, seo_for_item, seo_for_listing
from .templates import Template
from .utils import url_to_output_path

logger = logging.getLogger(__name__)

PAGINATION_SOURCE = "<pagination>"
RENDER_ERRORS = (TemplateError, TypeError, ValueError, AttributeError)


@dataclass(frozen=True)
class Page:
    """A rendered output page.

    Attributes:
        url: Site-relative URL.
        output_path: File path relative to the output directory.
        body: Fully rendered HTML.
        seo: SEO metadata embedded in the page.
        kind: ``post`` or ``listing``.
        source: Source path of the post, None for listings.
        paginator: Pagination state, listings only.
    """

    url: str
    output_path: Path
    body: str
    seo: SeoMetadata
    kind: str
    source: str | None = None
    paginator: Paginator | None = None


@dataclass
class CompositionResult:
    """Pages produced by a composition run and the posts that failed.

    Attributes:
        pages: Post pages in listing order followed by listing pages.
        errors: Item-local errors, in source order.
    """

    pages: list[Page] = field(default_factory=list)
    errors: list[QuireError] = field(default_factory=list)

    @property
    def post_pages(self) -> list[Page]:
        return [p for p in self.pages if p.kind == "post"]

    @property
    def listing_pages(self) -> list[Page]:
        return [p for p in self.pages if p.kind == "listing"]


class PageComposer:
    """Combines posts, resolved layouts and SiteConfig into pages.

    Attributes:
        resolver: Template registry used for layout chains.
        config: Site configuration.
        renderers: Body renderers.
        workers: Threads used for per-post rendering.
    """

    def __init__(
        self,
        resolver: LayoutResolver,
        config: SiteConfig,
        renderers: RendererRegistry | None = None,
        workers: int | None = None,
    ):
        self.resolver = resolver
        self.config = config
        self.renderers = renderers or RendererRegistry()
        self.workers = max(1, workers or config.workers)

    def compose(
        self, items: Sequence[ContentItem], report: RunReport | None = None
    ) -> CompositionResult:
        """Compose post pages, listing pages and their SEO metadata.

        Posts whose layout chain does not resolve, whose output path is
        already taken, or whose rendering fails are left out of every page,
        including ``site.posts`` and the listings.

        Args:
            items: Loaded posts, in source order.
            report: Optional run report; each post advances to RESOLVED and
                COMPOSED, or to FAILED. Listing failures are recorded as run
                errors.

        Returns:
            CompositionResult with pages and errors.
        """
        result = CompositionResult()

        candidates: list[tuple[ContentItem, tuple[Template, ...]]] = []
        for item in items:
            source = item.source_path.as_posix()
            try:
                chain = self.resolver.resolve_chain(item.layout, source)
            except UnresolvedReferenceError as exc:
                self._fail(result, report, source, exc)
                continue
            if report is not None:
                report.record_resolved(source)
            candidates.append((item, chain))

        listing_chain = None
        if candidates:
            try:
                listing_chain = self.resolver.resolve_chain(
                    self.config.paginate_layout, PAGINATION_SOURCE
                )
            except UnresolvedReferenceError as exc:
                self._fail_run(result, report, exc)
        candidates = self._claim_output_paths(candidates, listing_chain is not None, result, report)

        # A post that fails to render must not appear in site.posts, so the
        # survivors are rendered again against the reduced collection.
        composed: list[tuple[ContentItem, Page]] = []
        while candidates:
            site = self._site_context([item for item, _ in candidates])
            outcomes = self._render_all(candidates, site)
            survivors = []
            for entry, outcome in zip(candidates, outcomes):
                if isinstance(outcome, QuireError):
                    self._fail(result, report, entry[0].source_path.as_posix(), outcome)
                else:
                    survivors.append(entry)
            if len(survivors) == len(candidates):
                composed = [(item, page) for (item, _), page in zip(candidates, outcomes)]
                break
            candidates = survivors

        if report is not None:
            for item, _ in composed:
                report.record_composed(item.source_path.as_posix())

        ordered = listing_order(item for item, _ in composed)
        pages_by_source = {item.source_path.as_posix(): page for item, page in composed}
        result.pages.extend(pages_by_source[item.source_path.as_posix()] for item in ordered)

        if listing_chain is not None and ordered:
            try:
                result.pages.extend(
                    self.compose_listings(ordered, self._site_context(ordered), listing_chain)
                )
            except QuireError as exc:
                self._fail_run(result, report, exc)

        logger.info(
            "Composed %d post pages and %d listing pages (%d errors)",
            len(result.post_pages),
            len(result.listing_pages),
            len(result.errors),
        )
        return result

    def _claim_output_paths(
        self,
        candidates: list[tuple[ContentItem, tuple[Template, ...]]],
        with_listings: bool,
        result: CompositionResult,
        report: RunReport | None,
    ) -> list[tuple[ContentItem, tuple[Template, ...]]]:
        """Drop posts whose output path another page already claims.

        The first post in source order keeps a contested path; listing pages
        keep theirs over any post.
        """
        claimed: dict[Path, str] = {}
        kept = []
        for item, chain in sorted(candidates, key=lambda c: c[0].source_path.as_posix()):
            source = item.source_path.as_posix()
            path = url_to_output_path(item.permalink)
            owner = claimed.get(path)
            if owner is not None:
                error = OutputConflictError(
                    source, f"output path '{path.as_posix()}' is already used by {owner}"
                )
                self._fail(result, report, source, error)
                continue
            claimed[path] = source
            kept.append((item, chain))

        if not with_listings:
            return kept
        listing_paths = {
            url_to_output_path(page_url(number, self.config.paginate_path)): number
            for number in range(1, page_count(len(kept), self.config.paginate) + 1)
        }
        remaining = []
        for item, chain in kept:
            source = item.source_path.as_posix()
            number = listing_paths.get(url_to_output_path(item.permalink))
            if number is not None:
                error = OutputConflictError(
                    source,
                    f"output path '{url_to_output_path(item.permalink).as_posix()}' "
                    f"is used by listing page {number}",
                )
                self._fail(result, report, source, error)
                continue
            remaining.append((item, chain))
        return remaining

    def _fail(
        self,
        result: CompositionResult,
        report: RunReport | None,
        source: str,
        error: QuireError,
    ) -> None:
        logger.warning("Skipping %s: %s", source, error.message)
        result.errors.append(error)
        if report is not None:
            report.record_failure(source, error)

    def _fail_run(
        self, result: CompositionResult, report: RunReport | None, error: QuireError
    ) -> None:
        logger.warning("No listing pages: %s", error.message)
        result.errors.append(error)
        if report is not None:
            report.record_run_error(error)

    def _render_all(
        self,
        resolved: list[tuple[ContentItem, tuple[Template, ...]]],
        site: dict[str, Any],
    ) -> list[Page | QuireError]:
        def work(entry: tuple[ContentItem, tuple[Template, ...]]) -> Page | QuireError:
            item, chain = entry
            try:
                return self.compose_item(item, chain, site)
            except QuireError as exc:
                return exc

        if self.workers == 1 or len(resolved) < 2:
            return [work(entry) for entry in resolved]
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            return list(executor.map(work, resolved))

    def _site_context(self, items: Sequence[ContentItem]) -> dict[str, Any]:
        posts = PostCollection(items).sorted()
        site = self.config.as_context()
        site["posts"] = posts
        site["tags"] = posts.tags()
        return site

    def compose_item(
        self,
        item: ContentItem,
        chain: tuple[Template, ...] | None = None,
        site: dict[str, Any] | None = None,
    ) -> Page:
        """Render one post through its layout chain.

        Args:
            item: The post.
            chain: Pre-resolved layout chain; resolved here when omitted.
            site: Shared ``site`` context; built from this post alone when
                omitted.

        Raises:
            UnresolvedReferenceError: If the layout chain does not resolve.
            RenderError: If a template fails while rendering.
        """
        source = item.source_path.as_posix()
        if chain is None:
            chain = self.resolver.resolve_chain(item.layout, source)
        if site is None:
            site = self._site_context([item])
        seo = self.derive_seo(item)
        page_context = dict(item.frontmatter)
        page_context.update(
            url=item.permalink,
            slug=item.slug,
            date=item.date,
            path=source,
            excerpt=item.excerpt,
            tags=item.tags,
            categories=item.categories,
        )
        context = {
            "site": site,
            "page": page_context,
            "seo": render_seo_tags(seo),
            "paginator": None,
        }
        body_html = self.renderers.render(item.source_path, item.body)
        try:
            rendered = self.resolver.render_chain(chain, Markup(body_html), context)
        except RENDER_ERRORS as exc:
            raise RenderError(source, _format_error_message(exc), exc) from exc
        return Page(
            url=item.permalink,
            output_path=url_to_output_path(item.permalink),
            body=rendered,
            seo=seo,
            kind="post",
            source=source,
        )

    def compose_listings(
        self,
        ordered: Sequence[ContentItem],
        site: dict[str, Any] | None = None,
        chain: tuple[Template, ...] | None = None,
    ) -> list[Page]:
        """Render paginated listing pages.

        Args:
            ordered: Successfully composed posts in listing order.
            site: Shared ``site`` context.
            chain: Pre-resolved pagination layout chain.

        Raises:
            UnresolvedReferenceError: If the pagination layout is missing.
            RenderError: If a template fails while rendering.
        """
        paginators = paginate(ordered, self.config.paginate, self.config.paginate_path)
        if not paginators:
            return []
        if chain is None:
            chain = self.resolver.resolve_chain(self.config.paginate_layout, PAGINATION_SOURCE)
        if site is None:
            site = self._site_context(ordered)
        pages: list[Page] = []
        for paginator in paginators:
            seo = seo_for_listing(paginator, self.config)
            context = {
                "site": site,
                "page": {"title": seo.title, "url": paginator.url},
                "seo": render_seo_tags(seo),
                "paginator": paginator,
            }
            try:
                rendered = self.resolver.render_chain(chain, Markup(""), context)
            except RENDER_ERRORS as exc:
                raise RenderError(PAGINATION_SOURCE, _format_error_message(exc), exc) from exc
            pages.append(
                Page(
                    url=paginator.url,
                    output_path=url_to_output_path(paginator.url),
                    body=rendered,
                    seo=seo,
                    kind="listing",
                    paginator=paginator,
                )
            )
        return pages

    def derive_seo(self, item: ContentItem) -> SeoMetadata:
        return seo_for_item(item, self.config)


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly error message."""
    error_type = type(exc).__name__
    lineno = getattr(exc, "lineno", None)
    where = f" on line {lineno}" if lineno else ""
    if error_type == "UndefinedError":
        return f"Undefined variable{where}: {exc}"
    return f"{error_type}{where}: {exc}"
