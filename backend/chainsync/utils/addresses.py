"""Helpers for validating and normalizing blockchain addresses."""

from __future__ import annotations

import re

from chainsync.errors import InvalidAddress

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def normalize_eth_address(value: str) -> str:
    """Validate and normalize an Ethereum address to lowercase hex."""
    if value is None:
        raise InvalidAddress("Address cannot be null")
    if not isinstance(value, str):
        raise InvalidAddress(f"Address must be a string, got {type(value).__name__}")
    address = value.strip()
    if not ADDRESS_PATTERN.fullmatch(address):
        raise InvalidAddress(f"Invalid Ethereum address format: {value!r}")
    return address.lower()


def is_eth_address(value: str) -> bool:
    try:
        normalize_eth_address(value)
    except InvalidAddress:
        return False
    return True


__all__ = ["normalize_eth_address", "is_eth_address"]
