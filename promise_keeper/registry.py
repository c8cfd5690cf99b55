"""
Process-wide registry handing out one keeper per producer.
"""
import inspect
import itertools
import logging
import threading
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .keeper import PromiseKeeper

logger = logging.getLogger("promise_keeper.registry")

_registry_ids = itertools.count()


class KeeperRegistry:
    """
    Maps producer identity to its keeper.

    The keeper is stored on the producer itself, or for bound methods on the
    bound instance keyed by the underlying function. The entry then lives
    exactly as long as the producer: the producer/keeper reference cycle is
    reclaimed by the garbage collector once nothing else holds the producer.
    Producers that cannot carry attributes (builtins, slotted objects) are
    pinned in a strong table until unwrap().

    Usage:
        registry = KeeperRegistry()
        keeper = registry.wrap(fetch_rates)
        assert registry.wrap(fetch_rates) is keeper
    """

    def __init__(self, factory: Callable[[Callable[[], Any]], PromiseKeeper] = PromiseKeeper):
        """
        Initialize the registry.

        Args:
            factory: Builds the keeper for a producer on first wrap
        """
        self._factory = factory
        self._attr = f"_promise_keeper_{next(_registry_ids)}"
        self._pinned: Dict[Hashable, Tuple[Callable[[], Any], PromiseKeeper]] = {}
        self._lock = threading.Lock()

    def wrap(self, fn: Callable[[], Any]) -> PromiseKeeper:
        """
        Get the keeper for a producer, creating it on first use.

        Raises:
            TypeError: If fn is not callable
        """
        if not callable(fn):
            raise TypeError(f"Cannot keep non-callable {fn!r}")

        with self._lock:
            keeper = self._lookup(fn)
            if keeper is None:
                keeper = self._factory(fn)
                self._store(fn, keeper)
                logger.debug(f"Created keeper for {keeper.producer!r}")
            return keeper

    def get(self, fn: Callable[[], Any]) -> Optional[PromiseKeeper]:
        """Get the keeper for a producer without creating one."""
        with self._lock:
            return self._lookup(fn)

    def unwrap(self, fn: Callable[[], Any]) -> bool:
        """
        Drop the keeper for a producer and stop its background refresh.

        Returns:
            True if a keeper was registered
        """
        with self._lock:
            keeper = self._remove(fn)
        if keeper is None:
            return False
        keeper.stop_fresh()
        logger.debug(f"Dropped keeper for {keeper.producer!r}")
        return True

    @property
    def pinned_count(self) -> int:
        """Number of producers held strongly."""
        with self._lock:
            return len(self._pinned)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    @staticmethod
    def _pin_key(fn: Callable[[], Any]) -> Hashable:
        if inspect.ismethod(fn):
            return (id(fn.__self__), id(fn.__func__))
        return id(fn)

    def _owned_table(self, owner: Any) -> Any:
        # Read the instance dict directly: a class attribute would also be
        # visible from subclasses and instances.
        return getattr(owner, "__dict__", {}).get(self._attr)

    @staticmethod
    def _belongs_to(keeper: Any, fn: Callable[[], Any]) -> bool:
        # Entries travel with copied __dict__s (functools.wraps, copy.copy),
        # so an entry only counts when its keeper calls this very producer.
        if not isinstance(keeper, PromiseKeeper):
            return False
        if inspect.ismethod(fn):
            return getattr(keeper.producer, "__self__", None) is fn.__self__
        return keeper.producer is fn

    def _method_table(self, owner: Any) -> Optional[Dict[Any, PromiseKeeper]]:
        """The owner's own method table, ignoring one copied from another instance."""
        table = self._owned_table(owner)
        if not isinstance(table, dict):
            return None
        if any(getattr(keeper.producer, "__self__", None) is not owner for keeper in table.values()):
            return None
        return table

    def _lookup(self, fn: Callable[[], Any]) -> Optional[PromiseKeeper]:
        if inspect.ismethod(fn):
            table = self._method_table(fn.__self__)
            keeper = table.get(fn.__func__) if table is not None else None
        else:
            keeper = self._owned_table(fn)
        if self._belongs_to(keeper, fn):
            return keeper

        entry = self._pinned.get(self._pin_key(fn))
        return entry[1] if entry is not None else None

    def _store(self, fn: Callable[[], Any], keeper: PromiseKeeper) -> None:
        try:
            if inspect.ismethod(fn):
                table = self._method_table(fn.__self__)
                if table is None:
                    table = {}
                    setattr(fn.__self__, self._attr, table)
                table[fn.__func__] = keeper
            else:
                setattr(fn, self._attr, keeper)
        except (AttributeError, TypeError):
            logger.debug(f"Pinning {fn!r}: it cannot hold its keeper")
            self._pinned[self._pin_key(fn)] = (fn, keeper)

    def _remove(self, fn: Callable[[], Any]) -> Optional[PromiseKeeper]:
        entry = self._pinned.pop(self._pin_key(fn), None)
        if entry is not None:
            return entry[1]

        if inspect.ismethod(fn):
            table = self._method_table(fn.__self__)
            if table is not None and self._belongs_to(table.get(fn.__func__), fn):
                return table.pop(fn.__func__)
            return None

        keeper = self._owned_table(fn)
        if not self._belongs_to(keeper, fn):
            return None
        delattr(fn, self._attr)
        return keeper


# Global registry instance
_registry = KeeperRegistry()


def get_registry() -> KeeperRegistry:
    """Get the process-wide registry."""
    return _registry


def wrap(fn: Callable[[], Any]) -> PromiseKeeper:
    """Get the keeper for a producer, shared by every caller wrapping it."""
    return _registry.wrap(fn)


def unwrap(fn: Callable[[], Any]) -> bool:
    """Drop the keeper for a producer from the global registry."""
    return _registry.unwrap(fn)
