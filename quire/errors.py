"""Error types raised while generating a site.

Errors are either item-local or fatal:

- Item-local errors (ParseError on a post, UnresolvedReferenceError) are
  collected into the run report and never stop the other posts.
- RenderError wraps a template failure while rendering one page and is
  item-local as well.
- OutputConflictError marks a post whose permalink maps to a file another
  page already writes; the post is skipped.
- Fatal errors (ConfigError, CyclicLayoutError, ParseError on a template)
  abort the whole run because the resource they concern is shared.
"""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base error with the resource that caused it.

    Attributes:
        source: Path or name of the offending resource.
        message: Human-readable error message.
        original_error: The original exception that was caught, if any.
    """

    def __init__(
        self,
        source: Path | str,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source = source
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source}: {message}")

    @property
    def kind(self) -> str:
        return type(self).__name__


class ParseError(QuireError):
    """Malformed front-matter or template source."""


class UnresolvedReferenceError(QuireError):
    """A layout or include name that is not in the template registry."""


class CyclicLayoutError(QuireError):
    """A layout's parent chain revisits itself.

    Attributes:
        chain: Layout names in the order they were visited, ending with the
            repeated name.
    """

    def __init__(self, chain: list[str]):
        self.chain = list(chain)
        super().__init__(chain[0], "cyclic layout chain: " + " -> ".join(chain))


class ConfigError(QuireError):
    """Missing or invalid site configuration."""


class RenderError(QuireError):
    """A template failed while rendering one page."""


class OutputConflictError(QuireError):
    """A page would be written to an output path another page already uses."""
