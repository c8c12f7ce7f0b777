"""Utility helpers for managing the shared Neo4j driver instance."""

import logging
from typing import Optional

from neo4j import GraphDatabase, Driver
from neo4j.exceptions import DriverError, Neo4jError

from chainsync.config import Settings, get_settings
from chainsync.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

_DRIVER: Optional[Driver] = None


def _build_driver(settings: Settings) -> Driver:
    """Create and return a new Neo4j driver from the configured settings."""
    settings.require("neo4j_uri", "neo4j_user", "neo4j_password")

    LOGGER.info("Initializing Neo4j driver for %s", settings.neo4j_uri)
    return GraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password),
        connection_timeout=settings.http_timeout_seconds,
    )


def get_driver(settings: Optional[Settings] = None) -> Driver:
    """Return the shared Neo4j driver instance, creating it if needed."""
    global _DRIVER

    if _DRIVER is None:
        try:
            _DRIVER = _build_driver(settings or get_settings())
        except (Neo4jError, DriverError, ConfigurationError) as exc:
            LOGGER.exception("Unable to initialize Neo4j driver: %s", exc)
            raise

    return _DRIVER


def close_driver() -> None:
    """Close the shared Neo4j driver if it has been initialized."""
    global _DRIVER

    if _DRIVER is not None:
        LOGGER.info("Closing Neo4j driver")
        _DRIVER.close()
        _DRIVER = None


__all__ = ["get_driver", "close_driver"]
