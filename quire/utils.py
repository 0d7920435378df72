"""Utility functions for Quire.

This module contains small helpers shared by the pipeline stages: slug and
title derivation from post filenames, date prefixes, URL joining and output
directory handling.

Key functions:
    slugify: Convert filenames or titles to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from a YYYY-MM-DD- filename prefix.
    strip_date_prefix: Drop the YYYY-MM-DD- prefix from a filename stem.
    join_root_url: Join a base URL with a path.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

CONTENT_SUFFIXES = (".md", ".markdown", ".html")
TEMPLATE_SUFFIXES = (".html.jinja", ".jinja", ".html")


def _has_date_prefix(parts: list[str]) -> bool:
    return len(parts) >= 4 and all(p.isdigit() for p in parts[:3])


def strip_date_prefix(name: str) -> str:
    """Remove a leading YYYY-MM-DD- from a filename stem.

    Args:
        name: Filename stem.

    Returns:
        The stem without its date prefix, or unchanged if there is none.
    """
    parts = name.split("-")
    if _has_date_prefix(parts):
        return "-".join(parts[3:])
    return name


def slugify(name: str) -> str:
    """Convert a filename stem or title to a slug, dropping any date prefix.

    Args:
        name: Filename stem or free text.

    Returns:
        URL-friendly slug.

    Examples:
        >>> slugify("2024-01-15-Hello, World")
        'hello-world'
    """
    cleaned = strip_date_prefix(name)
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a UTC date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        Timezone-aware datetime if a valid date prefix is found, None otherwise.
    """
    parts = name.split("-")
    if len(parts) >= 3 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(
                int(parts[0]), int(parts[1]), int(parts[2]), tzinfo=timezone.utc
            )
        except ValueError:
            return None
    return None


def strip_template_suffix(name: str) -> str | None:
    """Return the template name for a layout filename, or None if not a template.

    Examples:
        >>> strip_template_suffix("post.html.jinja")
        'post'
        >>> strip_template_suffix("notes.txt") is None
        True
    """
    for suffix in TEMPLATE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return None


def is_content_file(path: Path) -> bool:
    """Check if a path is a post source file.

    Hidden files and files starting with an underscore are not content.
    """
    if path.name.startswith(("_", ".")):
        return False
    return path.suffix.lower() in CONTENT_SUFFIXES


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def normalize_url(url: str) -> str:
    """Collapse duplicate slashes and dot segments, ensuring a leading slash.

    A trailing slash is kept.

    Raises:
        ValueError: If a ``..`` segment climbs above the site root.

    Examples:
        >>> normalize_url("2024//hello/")
        '/2024/hello/'
        >>> normalize_url("/blog/./drafts/../post.html")
        '/blog/post.html'
    """
    parts: list[str] = []
    for segment in url.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise ValueError(f"URL climbs above the site root: {url!r}")
            parts.pop()
            continue
        parts.append(segment)
    path = "/" + "/".join(parts)
    if parts and url.endswith("/"):
        path += "/"
    return path


def url_to_output_path(url: str) -> Path:
    """Map a page URL to a relative output file path.

    URLs ending in a slash become directory indexes; anything else is
    written as the literal file.

    Raises:
        ValueError: If the URL contains a ``..`` segment.

    Examples:
        >>> url_to_output_path("/2024/01/15/hello/").as_posix()
        '2024/01/15/hello/index.html'
        >>> url_to_output_path("/about.html").as_posix()
        'about.html'
    """
    stripped = url.strip("/")
    if not stripped:
        return Path("index.html")
    if ".." in stripped.split("/"):
        raise ValueError(f"URL climbs above the output directory: {url!r}")
    if url.endswith("/"):
        return Path(stripped) / "index.html"
    return Path(stripped)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path))
    path.mkdir(parents=True, exist_ok=True)
