"""
Promise keeper: single-slot caching for expensive async producers, with
background refresh for stale-while-revalidate reads.
"""
from .core import (
    CellState,
    InvalidTransitionError,
    KeeperError,
    KeeperStats,
    NoSettledDataError,
)
from .intervals import DEFAULT_KEEP_FRESH_INTERVAL, get_keep_fresh_interval, is_valid_interval
from .scheduler import LoopScheduler, RecurringTimer, Scheduler, TimerHandle
from .keeper import PromiseKeeper
from .registry import KeeperRegistry, get_registry, unwrap, wrap

__all__ = [
    # Core types
    "CellState",
    "KeeperStats",
    # Errors
    "KeeperError",
    "NoSettledDataError",
    "InvalidTransitionError",
    # Intervals
    "DEFAULT_KEEP_FRESH_INTERVAL",
    "get_keep_fresh_interval",
    "is_valid_interval",
    # Scheduling
    "Scheduler",
    "TimerHandle",
    "LoopScheduler",
    "RecurringTimer",
    # Keeper
    "PromiseKeeper",
    # Registry
    "KeeperRegistry",
    "get_registry",
    "wrap",
    "unwrap",
]
