"""Conversions between provider floats and the fixed-point history columns."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from chainsync.errors import NumericRangeViolation

BIGINT_MIN = -(2**63)
BIGINT_MAX = 2**63 - 1

WEI_PER_ETH = Decimal(10**18)

Number = Union[int, float, Decimal, str]


def round_to_bigint(value: Number, column: str = "value") -> int:
    """Round ``value`` half away from zero and check it fits a BIGINT column.

    ``314063280714.3017`` becomes ``314063280714``; ``0.5`` becomes ``1``.
    """
    if value is None:
        raise NumericRangeViolation(f"{column} is missing")
    if isinstance(value, float) and not math.isfinite(value):
        raise NumericRangeViolation(f"{column} is not finite: {value!r}")

    try:
        # str() keeps the shortest repr of a float instead of its binary expansion
        decimal_value = Decimal(str(value))
    except InvalidOperation as exc:
        raise NumericRangeViolation(f"{column} is not numeric: {value!r}") from exc

    if not decimal_value.is_finite():
        raise NumericRangeViolation(f"{column} is not finite: {value!r}")
    # quantize needs every integer digit to fit the context precision
    if abs(decimal_value) > BIGINT_MAX + 1:
        raise NumericRangeViolation(f"{column} out of BIGINT range: {value!r}")

    rounded = int(decimal_value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if rounded < BIGINT_MIN or rounded > BIGINT_MAX:
        raise NumericRangeViolation(f"{column} out of BIGINT range: {value!r}")
    return rounded


def wei_to_eth(value_wei: Number) -> Decimal:
    return Decimal(str(value_wei)) / WEI_PER_ETH


def format_eth(value: Decimal) -> str:
    """Render a native-unit amount without exponent notation."""
    normalized = value.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")


__all__ = ["round_to_bigint", "wei_to_eth", "format_eth", "BIGINT_MIN", "BIGINT_MAX"]
