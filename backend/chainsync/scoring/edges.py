"""Aggregate a transaction sample into counterparty relationship edges."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List

from chainsync.models import TransactionSample


def edge_strength(transaction_count: int, total_value: Decimal) -> float:
    return round(math.log1p(transaction_count) + math.log1p(float(total_value)), 4)


def build_counterparty_edges(address: str, transactions: Iterable[TransactionSample]) -> List[Dict]:
    """One edge per distinct counterparty of ``address`` in the sample.

    Self-transfers are ignored. Output is sorted by counterparty so repeated
    syncs of the same sample produce identical parameters.
    """
    grouped: Dict[str, Dict] = {}
    for tx in transactions:
        if tx.from_address == address:
            counterparty = tx.to_address
        elif tx.to_address == address:
            counterparty = tx.from_address
        else:
            continue
        if not counterparty or counterparty == address:
            continue

        entry = grouped.setdefault(
            counterparty,
            {"count": 0, "total": Decimal(0), "first": tx.timestamp, "last": tx.timestamp},
        )
        entry["count"] += 1
        entry["total"] += Decimal(tx.value)
        entry["first"] = min(entry["first"], tx.timestamp)
        entry["last"] = max(entry["last"], tx.timestamp)

    edges = []
    for counterparty in sorted(grouped):
        entry = grouped[counterparty]
        edges.append(
            {
                "counterparty": counterparty,
                "transaction_count": entry["count"],
                "total_value": str(entry["total"]),
                "strength": edge_strength(entry["count"], entry["total"]),
                "first_interaction": datetime.fromtimestamp(entry["first"], tz=timezone.utc).isoformat(),
                "last_interaction": datetime.fromtimestamp(entry["last"], tz=timezone.utc).isoformat(),
            }
        )
    return edges


__all__ = ["build_counterparty_edges", "edge_strength"]
