"""Protocol definitions for Quire.

These protocols are the seams between pipeline stages: the composer only
depends on something that can resolve layout chains and something that can
render a body, so either can be swapped in tests or extensions.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .templates import Template


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for turning a post body into HTML."""

    source_type: str

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        ...

    @abstractmethod
    def render(self, content: str) -> str:
        """Render a body to HTML.

        Args:
            content: Body text after the front-matter block.

        Returns:
            Rendered HTML.
        """
        ...


@runtime_checkable
class LayoutResolver(Protocol):
    """Protocol for resolving layout names to template chains."""

    @abstractmethod
    def resolve(self, layout_name: str, source: Path | str | None = None) -> Template:
        ...

    @abstractmethod
    def resolve_include(self, include_name: str, source: Path | str | None = None) -> Template:
        ...

    @abstractmethod
    def resolve_chain(
        self, layout_name: str, source: Path | str | None = None
    ) -> tuple[Template, ...]:
        """Resolve a layout and its ancestors, leaf first.

        Raises:
            UnresolvedReferenceError: For a missing layout or include.
        """
        ...

    @abstractmethod
    def render_chain(
        self, chain: Iterable[Template], content: str, context: Mapping[str, Any]
    ) -> str:
        ...
