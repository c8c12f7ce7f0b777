"""Exception taxonomy shared by the ingestion pipelines and store adapters."""

from __future__ import annotations

from typing import Any, List, Optional


class InvalidAddress(ValueError):
    """Raised when an address cannot be normalized."""


class ConfigurationError(ValueError):
    """Raised when a setting is missing or a store binding cannot be built."""


class NumericRangeViolation(ValueError):
    """Raised when a value cannot be coerced into a fixed-point column."""


class ExternalSourceFailure(RuntimeError):
    """A provider call failed (network, timeout, non-OK payload)."""

    def __init__(self, source: str, message: str, retryable: bool = True) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.retryable = retryable


class StoreWriteFailure(RuntimeError):
    """A write against one of the destination stores failed."""

    def __init__(self, store: str, message: str) -> None:
        super().__init__(f"{store}: {message}")
        self.store = store


class StoreUnavailableError(StoreWriteFailure):
    """Relational writes kept failing; the batch was stopped early."""

    def __init__(self, message: str, results: Optional[List[Any]] = None) -> None:
        super().__init__("relational", message)
        self.results = results or []


def classify_error(exc: BaseException) -> str:
    """Map an exception to the ``error_kind`` reported on a sync result."""
    if isinstance(exc, InvalidAddress):
        return "invalid_input"
    if isinstance(exc, ConfigurationError):
        return "configuration"
    if isinstance(exc, ExternalSourceFailure):
        return "external_source"
    if isinstance(exc, StoreWriteFailure):
        return "store_write"
    return "unexpected"


__all__ = [
    "InvalidAddress",
    "ConfigurationError",
    "NumericRangeViolation",
    "ExternalSourceFailure",
    "StoreWriteFailure",
    "StoreUnavailableError",
    "classify_error",
]
