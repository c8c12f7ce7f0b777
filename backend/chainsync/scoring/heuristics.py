"""Deterministic activity metrics, tags, risk and popularity scores for wallets."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Set

from chainsync.models import TransactionSample, WalletDetail

HIGH_BALANCE_THRESHOLD = Decimal(100)
HIGH_ACTIVITY_THRESHOLD = 1000
HUB_COUNTERPARTY_THRESHOLD = 50
HIGH_VALUE_TX_THRESHOLD = 10

AUTOMATED_TX_THRESHOLD = 10000
AUTOMATED_PENALTY = 20
NEW_WALLET_AGE = timedelta(days=7)
NEW_WALLET_TX_THRESHOLD = 100
NEW_HYPERACTIVE_PENALTY = 30
CONTRACT_BONUS = 10

RISK_MIN = 0
RISK_MAX = 100


@dataclass(frozen=True)
class ActivityMetrics:
    first_seen: Optional[datetime]
    last_activity: Optional[datetime]
    avg_transaction_value: float
    unique_counterparties: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_activity_metrics(transactions: Iterable[TransactionSample]) -> ActivityMetrics:
    """Summarize a transaction sample.

    ``first_seen``/``last_activity`` are the min/max timestamps (``None`` for an
    empty sample), ``avg_transaction_value`` the arithmetic mean of values and
    ``unique_counterparties`` the number of distinct from/to addresses.
    """
    transactions = list(transactions)
    if not transactions:
        return ActivityMetrics(None, None, 0.0, 0)

    timestamps = [tx.timestamp for tx in transactions]
    total_value = sum((Decimal(tx.value) for tx in transactions), Decimal(0))

    counterparties: Set[str] = set()
    for tx in transactions:
        counterparties.add(tx.from_address)
        counterparties.add(tx.to_address)

    return ActivityMetrics(
        first_seen=datetime.fromtimestamp(min(timestamps), tz=timezone.utc),
        last_activity=datetime.fromtimestamp(max(timestamps), tz=timezone.utc),
        avg_transaction_value=float(total_value / len(transactions)),
        unique_counterparties=len(counterparties),
    )


def generate_tags(detail: WalletDetail, metrics: ActivityMetrics) -> Set[str]:
    tags: Set[str] = set()

    if detail.is_contract:
        tags.add("contract")
        if detail.contract_type:
            tags.add(detail.contract_type)

    if Decimal(detail.balance) > HIGH_BALANCE_THRESHOLD:
        tags.add("high-balance")
    if detail.transaction_count > HIGH_ACTIVITY_THRESHOLD:
        tags.add("high-activity")
    if metrics.unique_counterparties > HUB_COUNTERPARTY_THRESHOLD:
        tags.add("hub")
    if metrics.avg_transaction_value > HIGH_VALUE_TX_THRESHOLD:
        tags.add("high-value-txs")

    return tags


def compute_risk_score(
    detail: WalletDetail,
    metrics: ActivityMetrics,
    now: Optional[datetime] = None,
) -> int:
    """Additive risk heuristic clamped to [0, 100]."""
    now = _as_utc(now or _utcnow())
    score = 0

    # very high counts usually mean automated activity
    if detail.transaction_count > AUTOMATED_TX_THRESHOLD:
        score += AUTOMATED_PENALTY

    if (
        metrics.first_seen is not None
        and now - _as_utc(metrics.first_seen) < NEW_WALLET_AGE
        and detail.transaction_count > NEW_WALLET_TX_THRESHOLD
    ):
        score += NEW_HYPERACTIVE_PENALTY

    if detail.is_contract:
        score -= CONTRACT_BONUS

    return max(RISK_MIN, min(RISK_MAX, score))


def recency_weight(last_activity: datetime, now: Optional[datetime] = None) -> int:
    now = _as_utc(now or _utcnow())
    days = (now - _as_utc(last_activity)).total_seconds() / 86400

    if days < 1:
        return 50
    if days < 7:
        return 30
    if days < 30:
        return 10
    return 0


def compute_popularity_score(row: Mapping[str, Any], now: Optional[datetime] = None) -> float:
    """``log(tx+1)*10 + log(balance_usd+1)*5 + recency_weight(last_activity)``."""
    tx_weight = math.log(float(row.get("transaction_count") or 0) + 1) * 10
    balance_weight = math.log(max(float(row.get("balance_usd") or 0), 0.0) + 1) * 5
    last_activity = row.get("last_activity")
    recent = recency_weight(last_activity, now) if last_activity is not None else 0
    return tx_weight + balance_weight + recent


class HeuristicScorer:
    """Default ``WalletScorer``: the fixed threshold heuristics above.

    A scorer exposes ``activity``, ``tags`` and ``risk``; the sync pipeline only
    depends on those three methods so alternative strategies can be injected.
    """

    def activity(self, transactions: Iterable[TransactionSample]) -> ActivityMetrics:
        return compute_activity_metrics(transactions)

    def tags(self, detail: WalletDetail, metrics: ActivityMetrics) -> Set[str]:
        return generate_tags(detail, metrics)

    def risk(self, detail: WalletDetail, metrics: ActivityMetrics, now: Optional[datetime] = None) -> int:
        return compute_risk_score(detail, metrics, now)


__all__ = [
    "ActivityMetrics",
    "HeuristicScorer",
    "compute_activity_metrics",
    "generate_tags",
    "compute_risk_score",
    "compute_popularity_score",
    "recency_weight",
]
