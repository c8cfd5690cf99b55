"""
Promise keeper: caching for an expensive asynchronous producer.

Wraps a zero-argument producer returning an awaitable and keeps a single
cached slot for it, with optional periodic background refresh. Useful to
minimize waiting on slow calls and for stale-while-revalidate reads.

Terminology:
- settled: the last outcome the keeper accepted. When it is a future, that
  future is already done.
- pending: the latest outcome the producer returned. When it is a future,
  it may still be running.

States (see CellState):
1. EMPTY          no settled, no pending
2. EMPTY_PENDING  no settled, pending
3. FRESH          settled, and settled is pending
4. STALE_PENDING  settled, and settled is older than pending
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from config.settings import settings

from .core import CellState, KeeperStats, NoSettledDataError
from .intervals import get_keep_fresh_interval, is_valid_interval
from .scheduler import LoopScheduler, RecurringTimer, Scheduler

logger = logging.getLogger("promise_keeper.keeper")

T = TypeVar("T")


class PromiseKeeper(Generic[T]):
    """
    Single-slot cache around an async producer.

    Usage:
        keeper = PromiseKeeper(fetch_rates)
        rates = await keeper.get()           # invokes once, then cached
        rates = await keeper.get_settled()   # never waits on a refresh
        keeper.keep_fresh(600)               # refresh every 10 minutes

    All operations are synchronous and must run on the event loop thread;
    only the producer's future and the completion callbacks are deferred.
    """

    def __init__(
        self,
        fn: Callable[[], Any],
        scheduler: Optional[Scheduler] = None,
        isolate_purged_invocations: Optional[bool] = None,
    ):
        """
        Initialize an empty keeper.

        Args:
            fn: Zero-argument producer returning an awaitable (or a plain value)
            scheduler: Timer provider for keep_fresh(), defaults to the event loop
            isolate_purged_invocations: Skip the deferred clear on purge,
                defaults to the configured setting
        """
        self._fn = fn
        self._scheduler = scheduler or LoopScheduler()
        if isolate_purged_invocations is None:
            isolate_purged_invocations = settings.isolate_purged_invocations
        self._isolate_purged = isolate_purged_invocations

        self._state = CellState.EMPTY
        self._pending: Any = None
        self._settled: Any = None
        # Bumped on every invocation and every clear; identifies the
        # invocation whose completion the keeper is watching.
        self._generation = 0
        self._fresh_timer: Optional[RecurringTimer] = None
        self._producing = False
        self._stats = KeeperStats()
        self._name = getattr(fn, "__qualname__", None) or repr(fn)

    def __repr__(self) -> str:
        return f"<PromiseKeeper {self._name} state={self._state.value}>"

    @property
    def producer(self) -> Callable[[], Any]:
        """The wrapped producer."""
        return self._fn

    @property
    def state(self) -> CellState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_empty(self) -> bool:
        """True when no settled data is cached."""
        return self._state.is_empty

    @property
    def is_pending(self) -> bool:
        """True while an invocation is in flight and being watched."""
        return self._state.is_pending

    @property
    def is_keeping_fresh(self) -> bool:
        """True while a keep_fresh() interval is running."""
        return self._fresh_timer is not None

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _invoke(self) -> None:
        previous = self._state
        self._generation += 1
        generation = self._generation
        # Pending before the producer runs, so a producer reading its own
        # keeper gets the current pending data instead of invoking again.
        self._state = previous.invoked()
        self._producing = True
        try:
            outcome = self._fn()
            if inspect.isawaitable(outcome):
                outcome = asyncio.ensure_future(outcome)
        except BaseException:
            if generation == self._generation:
                self._state = previous
            raise
        finally:
            self._producing = False

        self._stats.invocations += 1
        if generation != self._generation:
            # The producer purged its own keeper; nothing watches this outcome.
            self._stats.discarded_settles += 1
            logger.debug(f"Discarded outcome of {self._name}: purged while producing")
            return

        self._pending = outcome
        logger.debug(f"Invoked {self._name} (generation {generation})")

        if isinstance(outcome, asyncio.Future):
            outcome.add_done_callback(lambda future: self._settle(generation, future))
        else:
            self._settle(generation)

    def _settle(self, generation: int, future: Optional[asyncio.Future] = None) -> None:
        if future is not None:
            self._log_failure(future)

        # purge() may have run while this invocation was in flight, and a
        # newer invocation may be the watched one by now.
        if self._state.is_pending and generation == self._generation:
            self._settled = self._pending
            self._state = self._state.settled()
            self._stats.settles += 1
            logger.debug(f"Settled {self._name} (generation {generation})")
        else:
            self._stats.discarded_settles += 1
            logger.debug(
                f"Discarded completion of {self._name} "
                f"(generation {generation}, watching {self._generation})"
            )

    def _log_failure(self, future: asyncio.Future) -> None:
        if future.cancelled():
            self._stats.failures += 1
            logger.warning(f"Producer cancelled: {self._name}")
            return
        error = future.exception()
        if error is not None:
            self._stats.failures += 1
            logger.warning(f"Producer failed for {self._name}: {error!r}")

    def _clear(self) -> None:
        self._pending = None
        self._settled = None
        self._state = CellState.EMPTY
        self._generation += 1

    def _deferred_clear(self, future: asyncio.Future) -> None:
        self._stats.deferred_clears += 1
        logger.debug(f"Purged invocation of {self._name} completed, clearing again")
        self._clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self) -> Any:
        """Same as get_pending()."""
        return self.get_pending()

    def get_pending(self) -> Any:
        """
        Prefer pending data, then settled data, else start an invocation.

        The returned future is never swapped for newer data: if another
        caller refreshes before it completes, this future still resolves to
        its own outcome and only a later get_pending() sees the newer one.
        Pending data may have been pending for a long time.

        Returns:
            The pending future (or value, for a synchronous producer)
        """
        if self._state.is_empty:
            self.refresh()
        return self._pending

    def get_settled(self) -> Any:
        """
        Prefer settled data, then pending data, else start an invocation.

        Useful when fast access to possibly old data matters more than
        waiting for a refresh that is already running.
        """
        if not self._state.is_empty:
            return self._settled
        self.refresh()
        return self._pending

    def get_settled_or_fail(self) -> Any:
        """
        Return only settled data, never starting an invocation.

        Raises:
            NoSettledDataError: Synchronously, when nothing is settled. This
                is unrelated to the outcome of the settled future itself.
        """
        if self._state.is_empty:
            raise NoSettledDataError()
        return self._settled

    def get_fresh(self) -> Any:
        """Purge, then start a new invocation and return its pending future."""
        self.purge()
        return self.get_pending()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def refresh(self) -> "PromiseKeeper[T]":
        """
        Refresh settled data in the background.

        Does not invoke the producer while an invocation is already pending.
        The keeper is marked pending before the producer runs, so a producer
        reading its own keeper does not invoke itself again. If the producer
        raises synchronously, the keeper is left unchanged and the error
        propagates.
        """
        if not self._state.is_pending:
            self._invoke()
        return self

    def purge(self) -> "PromiseKeeper[T]":
        """
        Drop settled and pending data. In-flight work is not cancelled, but
        its outcome will not be stored.
        """
        if self._state.is_pending and not self._producing and not self._isolate_purged:
            # Once purged, the in-flight invocation is no longer tracked and
            # may complete after a newer invocation settled; its completion
            # clears the keeper again, newer result included.
            self._pending.add_done_callback(self._deferred_clear)
        self._clear()
        self._stats.purges += 1
        logger.info(f"Purged {self._name}")
        return self

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------

    def keep_fresh(self, interval: Optional[float] = None) -> "PromiseKeeper[T]":
        """
        Refresh on a recurring interval, replacing any running interval.

        Args:
            interval: Seconds between refreshes, defaults to the configured
                keep_fresh_interval_seconds. Non-positive or non-finite
                values are ignored with a warning and leave any running
                interval untouched. If scheduling the new interval fails,
                the running one is kept.
        """
        interval = get_keep_fresh_interval(interval)
        if not is_valid_interval(interval):
            logger.warning(
                f"Ignoring keep_fresh({interval!r}) for {self._name}: "
                f"interval must be a positive, finite number of seconds"
            )
            return self

        timer = RecurringTimer(
            self._scheduler, interval, self.refresh, name=self._name
        ).start()
        self.stop_fresh()
        self._fresh_timer = timer
        logger.info(f"Keeping {self._name} fresh every {interval}s")
        return self

    def stop_fresh(self) -> "PromiseKeeper[T]":
        """Stop any keep_fresh() interval."""
        if self._fresh_timer is not None:
            self._fresh_timer.cancel()
            self._fresh_timer = None
            logger.info(f"Stopped keeping {self._name} fresh")
        return self

    def get_stats(self) -> Dict[str, Any]:
        """Get keeper statistics."""
        return {
            "state": self._state.value,
            "generation": self._generation,
            "keep_fresh_interval": (
                self._fresh_timer.interval if self._fresh_timer else None
            ),
            **self._stats.to_dict(),
        }
