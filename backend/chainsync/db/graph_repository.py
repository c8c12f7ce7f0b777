"""Neo4j persistence for wallet nodes and counterparty edges."""

from __future__ import annotations

import logging
from typing import Dict, List

from neo4j import Driver, Query
from neo4j.exceptions import DriverError, Neo4jError

from chainsync.errors import ConfigurationError, StoreWriteFailure
from chainsync.models import WalletRecord

LOGGER = logging.getLogger(__name__)

UPSERT_WALLET_NODE = """
MERGE (w:Wallet {address: $address})
ON CREATE SET w.firstSeen = $first_seen,
              w.createdAt = $updated_at
SET w.balance = $balance,
    w.balanceUSD = $balance_usd,
    w.transactionCount = $transaction_count,
    w.isContract = $is_contract,
    w.contractType = $contract_type,
    w.tags = $tags,
    w.riskScore = $risk_score,
    w.lastActivity = $last_activity,
    w.updatedAt = $updated_at
"""

# Counterparties must already have a node; unknown addresses are not created here.
UPSERT_COUNTERPARTY_EDGES = """
UNWIND $edges AS edge
MATCH (w:Wallet {address: $address})
MATCH (c:Wallet {address: edge.counterparty})
MERGE (w)-[r:INTERACTED_WITH]-(c)
SET r.strength = edge.strength,
    r.transactionCount = edge.transaction_count,
    r.totalValue = edge.total_value,
    r.firstInteraction = edge.first_interaction,
    r.lastInteraction = edge.last_interaction
"""


class GraphRepository:
    """Create-or-update wallet nodes by address and edges by endpoints."""

    def __init__(self, driver: Driver, timeout_seconds: float = 30.0) -> None:
        if driver is None:
            raise ConfigurationError("GraphRepository requires a Neo4j driver")
        self._driver = driver
        self._timeout = timeout_seconds

    def upsert_wallet(self, record: WalletRecord, edges: List[Dict]) -> None:
        params = {
            "address": record.address,
            "balance": record.balance,
            "balance_usd": record.balance_usd,
            "transaction_count": record.transaction_count,
            "is_contract": record.is_contract,
            "contract_type": record.contract_type,
            "tags": sorted(set(record.tags)),
            "risk_score": record.risk_score,
            "first_seen": record.first_seen.isoformat(),
            "last_activity": record.last_activity.isoformat(),
            "updated_at": record.updated_at.isoformat() if record.updated_at else None,
        }

        try:
            with self._driver.session() as session:
                session.run(Query(UPSERT_WALLET_NODE, timeout=self._timeout), params)
                if edges:
                    session.run(
                        Query(UPSERT_COUNTERPARTY_EDGES, timeout=self._timeout),
                        {"address": record.address, "edges": edges},
                    )
        except (Neo4jError, DriverError) as exc:
            LOGGER.exception("Failed to persist wallet %s in Neo4j: %s", record.address, exc)
            raise StoreWriteFailure("graph", f"node upsert failed for {record.address}") from exc

        LOGGER.debug("Upserted graph node %s with %d edges", record.address, len(edges))


__all__ = ["GraphRepository", "UPSERT_WALLET_NODE", "UPSERT_COUNTERPARTY_EDGES"]
