from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import ContentItem


def listing_order(items: Iterable[ContentItem]) -> list[ContentItem]:
    """Order posts newest first, breaking date ties by filename ascending."""
    by_name = sorted(items, key=lambda i: i.source_path.as_posix())
    return sorted(by_name, key=lambda i: i.date, reverse=True)


class PostCollection(Sequence[ContentItem]):
    """Lightweight helper for working with lists of posts in templates and code."""

    def __init__(self, items: Iterable[ContentItem]):
        self._items = list(items)

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item):
        return self._items[item]

    def with_tag(self, tag: str) -> PostCollection:
        return PostCollection(i for i in self._items if tag in i.tags)

    def in_category(self, category: str) -> PostCollection:
        return PostCollection(i for i in self._items if category in i.categories)

    def sorted(self) -> PostCollection:
        """Newest first; posts sharing a date keep filename order."""
        return PostCollection(listing_order(self._items))

    def latest(self, count: int = 5) -> PostCollection:
        return PostCollection(self.sorted()[:count])

    def tags(self) -> TagCollection:
        index: dict[str, list[ContentItem]] = {}
        for item in self.sorted():
            for tag in item.tags:
                index.setdefault(tag, []).append(item)
        return TagCollection(index)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._items)} posts)"


class TagCollection(Mapping[str, PostCollection]):
    """Mapping of tag name to PostCollection."""

    def __init__(self, mapping: dict[str, Iterable[ContentItem]]):
        self._mapping = {k: PostCollection(v) for k, v in sorted(mapping.items())}

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"
