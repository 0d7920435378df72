"""Quire static blog generator.

This package turns a directory of front-matter posts, a reusable theme of
Jinja2 layouts and includes, and a site configuration into a static blog:
one page per post, paginated listing pages and SEO tags for every page.

The main entry point is the CLI module, which provides commands for
scaffolding new sites, creating posts and building the output tree.

Pipeline stages:
- Content Loader: parses posts and their front-matter (content, frontmatter).
- Template Resolver: registry of layouts/includes with inheritance (templates).
- Page Composer: per-post pages, pagination and SEO (compose, pagination, seo).
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
