"""Pagination for Quire listing pages.

Page N of a listing holds items ``[(N-1)*per_page, N*per_page)`` of the
ordered posts; the last page may be partial and an empty post list yields
no pages at all.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from .utils import normalize_url

T = TypeVar("T")


@dataclass(frozen=True)
class Paginator(Generic[T]):
    """One listing page and its neighbours.

    Attributes:
        page: 1-based page number.
        per_page: Page size.
        items: Items on this page.
        total_items: Items across all pages.
        total_pages: Number of pages.
        url: URL of this page.
        previous_page: Previous page number, None on the first page.
        previous_page_path: URL of the previous page, None on the first page.
        next_page: Next page number, None on the last page.
        next_page_path: URL of the next page, None on the last page.
    """

    page: int
    per_page: int
    items: tuple[T, ...]
    total_items: int
    total_pages: int
    url: str
    previous_page: int | None
    previous_page_path: str | None
    next_page: int | None
    next_page_path: str | None


def page_count(item_count: int, per_page: int) -> int:
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    return math.ceil(item_count / per_page)


def page_url(number: int, paginate_path: str) -> str:
    """URL of listing page ``number``; page 1 is the site root.

    Examples:
        >>> page_url(1, "/page:num/")
        '/'
        >>> page_url(3, "/page:num/")
        '/page3/'
    """
    if number == 1:
        return "/"
    return normalize_url(paginate_path.replace(":num", str(number)))


def paginate(items: Sequence[T], per_page: int, paginate_path: str = "/page:num/") -> list[Paginator[T]]:
    """Split ordered items into fixed-size pages.

    Args:
        items: Items in listing order.
        per_page: Page size, at least 1.
        paginate_path: Pattern for pages after the first; ``:num`` is
            replaced by the page number.

    Returns:
        One Paginator per page, in page order.
    """
    total_pages = page_count(len(items), per_page)
    pages: list[Paginator[T]] = []
    for number in range(1, total_pages + 1):
        start = (number - 1) * per_page
        previous_page = number - 1 if number > 1 else None
        next_page = number + 1 if number < total_pages else None
        pages.append(
            Paginator(
                page=number,
                per_page=per_page,
                items=tuple(items[start : start + per_page]),
                total_items=len(items),
                total_pages=total_pages,
                url=page_url(number, paginate_path),
                previous_page=previous_page,
                previous_page_path=page_url(previous_page, paginate_path) if previous_page else None,
                next_page=next_page,
                next_page_path=page_url(next_page, paginate_path) if next_page else None,
            )
        )
    return pages
