"""SEO metadata for Quire pages.

Every page gets a SeoMetadata block. Values set in a post's front-matter
always win; SiteConfig values are only used when the post leaves a field
out. The block is rendered as ``<title>``, description, canonical, Open
Graph and Twitter tags plus a JSON-LD script, available to layouts as
``{{ seo }}``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from jinja2 import Environment
from markupsafe import Markup

from .config import SiteConfig
from .content import ContentItem
from .pagination import Paginator


@dataclass(frozen=True)
class SeoMetadata:
    title: str
    site_name: str
    description: str
    canonical_url: str
    image: str
    author: str
    type: str
    published_time: datetime | None
    twitter_username: str
    locale: str

    @property
    def page_title(self) -> str:
        """Text for the ``<title>`` element."""
        if self.site_name and self.title and self.title != self.site_name:
            return f"{self.title} | {self.site_name}"
        return self.title or self.site_name

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["page_title"] = self.page_title
        return data


def _text(value: Any, key: str = "name") -> str:
    """Front-matter values may be plain strings or mappings like {name: ...}."""
    if value is None:
        return ""
    if isinstance(value, dict):
        value = value.get(key) or ""
    return str(value).strip()


def _pick(content_value: Any, default: str, key: str = "name") -> str:
    text = _text(content_value, key)
    return text if text else default


def _absolute(config: SiteConfig, value: str) -> str:
    if not value or value.startswith(("http://", "https://", "//")):
        return value
    return config.absolute_url(value)


def seo_for_item(item: ContentItem, config: SiteConfig) -> SeoMetadata:
    """Derive SEO metadata for a post, falling back to SiteConfig defaults."""
    front = item.frontmatter
    return SeoMetadata(
        title=_pick(front.get("title"), config.title),
        site_name=config.title,
        description=_pick(front.get("description"), config.description),
        canonical_url=_absolute(config, _pick(front.get("canonical_url"), item.permalink)),
        image=_absolute(config, _pick(front.get("image"), config.image, key="path")),
        author=_pick(front.get("author"), config.author),
        type="article",
        published_time=item.date,
        twitter_username=_pick(front.get("twitter_username"), config.twitter_username),
        locale=_pick(front.get("locale"), config.locale),
    )


def seo_for_listing(paginator: Paginator, config: SiteConfig) -> SeoMetadata:
    """Derive SEO metadata for a listing page from SiteConfig alone."""
    title = config.title
    if paginator.page > 1:
        title = f"Page {paginator.page} of {paginator.total_pages}"
    return SeoMetadata(
        title=title,
        site_name=config.title,
        description=config.description,
        canonical_url=_absolute(config, paginator.url),
        image=_absolute(config, config.image),
        author=config.author,
        type="website",
        published_time=None,
        twitter_username=config.twitter_username,
        locale=config.locale,
    )


_SEO_TEMPLATE = """\
<!-- Begin SEO tags -->
<title>{{ seo.page_title }}</title>
<meta property="og:title" content="{{ seo.title }}" />
{%- if seo.author %}
<meta name="author" content="{{ seo.author }}" />
{%- endif %}
<meta property="og:locale" content="{{ seo.locale }}" />
{%- if seo.description %}
<meta name="description" content="{{ seo.description }}" />
<meta property="og:description" content="{{ seo.description }}" />
{%- endif %}
{%- if seo.canonical_url %}
<link rel="canonical" href="{{ seo.canonical_url }}" />
<meta property="og:url" content="{{ seo.canonical_url }}" />
{%- endif %}
{%- if seo.site_name %}
<meta property="og:site_name" content="{{ seo.site_name }}" />
{%- endif %}
{%- if seo.image %}
<meta property="og:image" content="{{ seo.image }}" />
{%- endif %}
<meta property="og:type" content="{{ seo.type }}" />
{%- if seo.published_time %}
<meta property="article:published_time" content="{{ seo.published_time.isoformat() }}" />
{%- endif %}
<meta name="twitter:card" content="{{ 'summary_large_image' if seo.image else 'summary' }}" />
<meta property="twitter:title" content="{{ seo.title }}" />
{%- if seo.twitter_username %}
<meta name="twitter:site" content="@{{ seo.twitter_username.lstrip('@') }}" />
{%- endif %}
<script type="application/ld+json">{{ json_ld }}</script>
<!-- End SEO tags -->
"""

_env = Environment(autoescape=True)
_template = _env.from_string(_SEO_TEMPLATE)


def json_ld(seo: SeoMetadata) -> str:
    """Schema.org description of the page as a JSON string."""
    data: dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "BlogPosting" if seo.type == "article" else "WebSite",
        "headline": seo.title,
        "url": seo.canonical_url,
    }
    if seo.description:
        data["description"] = seo.description
    if seo.image:
        data["image"] = seo.image
    if seo.author:
        data["author"] = {"@type": "Person", "name": seo.author}
    if seo.published_time:
        data["datePublished"] = seo.published_time.isoformat()
    if seo.type != "article" and seo.site_name:
        data["name"] = seo.site_name
    # "</" must not close the surrounding script element.
    return json.dumps(data, ensure_ascii=False).replace("</", "<\\/")


def render_seo_tags(seo: SeoMetadata) -> Markup:
    """Render the SEO tag block as safe HTML."""
    return Markup(_template.render(seo=seo, json_ld=Markup(json_ld(seo))))
