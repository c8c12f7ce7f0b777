"""Decide whether a stored wallet must be fetched again."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_REFRESH_THRESHOLD_HOURS = 2.0


def is_stale(exists: bool, updated_at: Optional[datetime], now: datetime, threshold_hours: float) -> bool:
    if not exists or updated_at is None:
        return True
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    hours_since = (now - updated_at).total_seconds() / 3600
    return hours_since > threshold_hours


class StalenessPolicy:
    """``needs_refresh`` over the relational store's ``updated_at`` column.

    Read failures are logged and treated as stale so that a wallet is never
    skipped silently.
    """

    def __init__(
        self,
        repository,
        threshold_hours: float = DEFAULT_REFRESH_THRESHOLD_HOURS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._repository = repository
        self._threshold = threshold_hours
        self._clock = clock

    def needs_refresh(self, address: str) -> bool:
        try:
            updated_at = self._repository.get_updated_at(address)
        except Exception as exc:  # any read failure falls through to a refresh
            LOGGER.error("Error checking wallet refresh status for %s: %s", address, exc)
            return True

        return is_stale(updated_at is not None, updated_at, self._clock(), self._threshold)


__all__ = ["StalenessPolicy", "is_stale", "DEFAULT_REFRESH_THRESHOLD_HOURS"]
