"""
Keep-fresh interval validation and defaults.
"""
import math
from numbers import Real
from typing import Any, Optional

from config.settings import settings


# Fallback when nothing is configured (seconds)
DEFAULT_KEEP_FRESH_INTERVAL = 30 * 60


def is_valid_interval(interval: Any) -> bool:
    """
    Check whether an interval can drive a recurring refresh.

    Args:
        interval: Candidate interval in seconds

    Returns:
        True for positive finite real numbers (bool excluded)
    """
    if isinstance(interval, bool) or not isinstance(interval, Real):
        return False
    return math.isfinite(interval) and interval > 0


def get_keep_fresh_interval(interval: Optional[float] = None) -> Any:
    """
    Resolve the interval used by keep_fresh().

    An explicit interval is returned untouched so the caller can validate it;
    None falls back to the configured default.
    """
    if interval is not None:
        return interval
    configured = settings.keep_fresh_interval_seconds
    return configured if is_valid_interval(configured) else DEFAULT_KEEP_FRESH_INTERVAL
