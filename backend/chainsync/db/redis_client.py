"""Shared Redis client used as the fast cache."""

from __future__ import annotations

import logging
from typing import Optional

import redis

from chainsync.config import Settings, get_settings

LOGGER = logging.getLogger(__name__)

_CLIENT: Optional[redis.Redis] = None


def get_redis(settings: Optional[Settings] = None) -> redis.Redis:
    """Return the shared Redis client, creating it from ``REDIS_URL`` if needed."""
    global _CLIENT

    if _CLIENT is None:
        settings = settings or get_settings()
        settings.require("redis_url")
        LOGGER.info("Initializing Redis client")
        _CLIENT = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.http_timeout_seconds,
            socket_connect_timeout=settings.http_timeout_seconds,
        )

    return _CLIENT


def close_redis() -> None:
    global _CLIENT

    if _CLIENT is not None:
        LOGGER.info("Closing Redis client")
        _CLIENT.close()
        _CLIENT = None


__all__ = ["get_redis", "close_redis"]
