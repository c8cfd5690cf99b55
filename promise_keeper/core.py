"""
Core keeper data structures: lifecycle states, errors and stats.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict


class KeeperError(Exception):
    """Base class for errors raised by promise_keeper."""


class NoSettledDataError(KeeperError):
    """Raised when settled data is requested from an empty keeper."""

    def __init__(self, message: str = "No settled data available."):
        super().__init__(message)


class InvalidTransitionError(KeeperError):
    """Raised when a lifecycle transition is not allowed from the current state."""


class CellState(Enum):
    """
    Lifecycle of a keeper.

    settled | pending
    --------+--------
      no    |   no     EMPTY
      no    |   yes    EMPTY_PENDING
      yes   |   no     FRESH          (settled is the last pending)
      yes   |   yes    STALE_PENDING  (settled is older than pending)
    """
    EMPTY = "empty"
    EMPTY_PENDING = "empty_pending"
    FRESH = "fresh"
    STALE_PENDING = "stale_pending"

    @property
    def is_empty(self) -> bool:
        """No settled value is cached."""
        return self in (CellState.EMPTY, CellState.EMPTY_PENDING)

    @property
    def is_pending(self) -> bool:
        """An invocation is in flight and being watched."""
        return self in (CellState.EMPTY_PENDING, CellState.STALE_PENDING)

    def invoked(self) -> "CellState":
        """State after a new invocation starts."""
        if self is CellState.EMPTY:
            return CellState.EMPTY_PENDING
        if self is CellState.FRESH:
            return CellState.STALE_PENDING
        raise InvalidTransitionError(f"Cannot invoke while {self.value}")

    def settled(self) -> "CellState":
        """State after the watched invocation completes."""
        if not self.is_pending:
            raise InvalidTransitionError(f"Cannot settle while {self.value}")
        return CellState.FRESH


@dataclass
class KeeperStats:
    """
    Counters for a single keeper.
    """
    invocations: int = 0
    settles: int = 0
    discarded_settles: int = 0
    purges: int = 0
    deferred_clears: int = 0
    failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
