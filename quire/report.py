"""Run report for Quire.

Every post moves through a small state machine during a run::

    LOADED -> RESOLVED -> COMPOSED
    LOADED -> FAILED
    RESOLVED -> FAILED

FAILED and COMPOSED are terminal. Posts that fail to parse enter FAILED
directly. Errors that belong to the run rather than to a post, such as a
missing listing layout, are kept apart in ``run_errors``. The report is
written only by the thread driving the run.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from .errors import QuireError


class ItemState(str, Enum):
    LOADED = "loaded"
    RESOLVED = "resolved"
    COMPOSED = "composed"
    FAILED = "failed"


_TRANSITIONS: dict[ItemState | None, set[ItemState]] = {
    None: {ItemState.LOADED, ItemState.FAILED},
    ItemState.LOADED: {ItemState.RESOLVED, ItemState.FAILED},
    ItemState.RESOLVED: {ItemState.COMPOSED, ItemState.FAILED},
    ItemState.COMPOSED: set(),
    ItemState.FAILED: set(),
}


class InvalidTransition(Exception):
    """An item was moved to a state its current state cannot reach."""


@dataclass
class ItemOutcome:
    source: str
    state: ItemState
    error: QuireError | None = None


@dataclass
class RunReport:
    """Outcome of every item in a generation run.

    Attributes:
        outcomes: Item outcomes keyed by source, in the order first seen.
        pages_written: Number of output pages written, listings included.
        run_errors: Errors not tied to a post, e.g. listing page failures.
    """

    outcomes: dict[str, ItemOutcome] = field(default_factory=dict)
    pages_written: int = 0
    run_errors: list[QuireError] = field(default_factory=list)

    def _advance(self, source: str, state: ItemState, error: QuireError | None = None) -> None:
        current = self.outcomes.get(source)
        current_state = current.state if current else None
        if state not in _TRANSITIONS[current_state]:
            raise InvalidTransition(
                f"{source}: cannot move from {current_state and current_state.value} to {state.value}"
            )
        self.outcomes[source] = ItemOutcome(source=source, state=state, error=error)

    def record_loaded(self, source: str) -> None:
        self._advance(source, ItemState.LOADED)

    def record_resolved(self, source: str) -> None:
        self._advance(source, ItemState.RESOLVED)

    def record_composed(self, source: str) -> None:
        self._advance(source, ItemState.COMPOSED)

    def record_failure(self, source: str, error: QuireError) -> None:
        self._advance(source, ItemState.FAILED, error)

    def record_run_error(self, error: QuireError) -> None:
        self.run_errors.append(error)

    def state_of(self, source: str) -> ItemState | None:
        outcome = self.outcomes.get(source)
        return outcome.state if outcome else None

    @property
    def succeeded(self) -> list[str]:
        return [o.source for o in self.outcomes.values() if o.state is ItemState.COMPOSED]

    @property
    def failures(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes.values() if o.state is ItemState.FAILED]

    @property
    def errors(self) -> list[QuireError]:
        return [o.error for o in self.failures if o.error is not None]

    def skipped_by_kind(self) -> dict[str, int]:
        return dict(Counter(o.error.kind for o in self.failures if o.error is not None))

    def summary(self) -> str:
        """One-line summary of succeeded and skipped items."""
        skipped = len(self.failures)
        line = f"{len(self.succeeded)} succeeded, {skipped} skipped"
        if skipped:
            reasons = ", ".join(f"{kind}: {count}" for kind, count in sorted(self.skipped_by_kind().items()))
            line += f" ({reasons})"
        return line

    def lines(self) -> list[str]:
        """Summary, one line per failed post, then one per run error."""
        out = [self.summary()]
        for outcome in self.failures:
            if outcome.error is not None:
                out.append(f"  {outcome.source}: [{outcome.error.kind}] {outcome.error.message}")
        for error in self.run_errors:
            out.append(f"  {error.source}: [{error.kind}] {error.message}")
        return out
