"""
Fixed-window arithmetic.

Windows are aligned to multiples of their duration since the Unix epoch, so
every instance computes the same window for the same instant.
"""

from datetime import UTC, datetime, timedelta
from typing import Tuple

_EPOCH = datetime(1970, 1, 1)


def window_bounds(now: datetime, window_seconds: int) -> Tuple[datetime, datetime]:
    """
    Compute the aligned window containing ``now``.

    Args:
        now: Instant to place (naive UTC or timezone-aware)
        window_seconds: Window duration in seconds

    Returns:
        (window_start, window_end) as naive UTC, with now in [start, end)
    """
    if window_seconds <= 0:
        raise ValueError("window_seconds must be positive")

    if now.tzinfo is not None:
        now = now.astimezone(UTC).replace(tzinfo=None)

    window = timedelta(seconds=window_seconds)
    window_start = _EPOCH + ((now - _EPOCH) // window) * window
    return window_start, window_start + window
