"""Per-source rate limiting for external API calls."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

LOGGER = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket keyed by source, implemented with virtual scheduling.

    Every call to :meth:`acquire` reserves the next free slot for its key while
    holding the lock, then sleeps outside of it. With ``burst=1`` grants for a
    key are spaced by at least the configured interval; callers are delayed,
    never rejected.
    """

    def __init__(
        self,
        default_interval_ms: float = 0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._default = (max(0.0, default_interval_ms) / 1000.0, 1)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._limits: Dict[str, Tuple[float, int]] = {}
        self._arrival: Dict[str, float] = {}
        self._last_granted: Dict[str, float] = {}

    def configure(self, source_key: str, min_interval_ms: float, burst: int = 1) -> None:
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")
        with self._lock:
            self._limits[source_key] = (min_interval_ms / 1000.0, burst)

    def acquire(self, source_key: str, min_interval_ms: Optional[float] = None) -> float:
        """Block until ``source_key`` may be called; return the seconds waited."""
        with self._lock:
            interval, burst = self._limits.get(source_key, self._default)
            if min_interval_ms is not None:
                interval = max(0.0, min_interval_ms) / 1000.0

            now = self._clock()
            arrival = max(self._arrival.get(source_key, now), now)
            grant_at = max(now, arrival - (burst - 1) * interval)
            self._arrival[source_key] = arrival + interval
            self._last_granted[source_key] = grant_at

        wait = grant_at - now
        if wait > 0:
            LOGGER.debug("Rate limiting %s: waiting %.0fms", source_key, wait * 1000)
            self._sleep(wait)
        return max(wait, 0.0)

    def last_granted(self, source_key: str) -> Optional[float]:
        with self._lock:
            return self._last_granted.get(source_key)


__all__ = ["RateLimiter"]
