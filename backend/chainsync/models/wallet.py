"""Pydantic schemas for wallet records and sync results."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class WalletRecord(BaseModel):
    """Canonical wallet row shared by the relational store, graph node and cache blob."""

    address: str
    balance: str = Field(default="0", description="Balance in native units as a decimal string")
    balance_usd: float = 0.0
    transaction_count: int = Field(default=0, ge=0)
    is_contract: bool = False
    contract_type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    risk_score: int = Field(default=0, ge=0, le=100)
    first_seen: datetime
    last_activity: datetime
    updated_at: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def _tags_as_set(cls, value: List[str]) -> List[str]:
        return sorted(set(value))

    @model_validator(mode="after")
    def _check_activity_window(self) -> "WalletRecord":
        if self.first_seen > self.last_activity:
            raise ValueError("first_seen must not be after last_activity")
        return self


class SyncStatus(str, Enum):
    PENDING = "pending"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    SCORING = "scoring"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SyncResult(BaseModel):
    """Outcome of one wallet sync attempt."""

    address: str
    ok: bool
    status: SyncStatus
    skipped: bool = False
    wallet: Optional[WalletRecord] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    graph_written: Optional[bool] = None
    cache_written: Optional[bool] = None


class BatchSyncRequest(BaseModel):
    addresses: List[str] = Field(..., min_length=1, max_length=500)
    force: bool = False


class BatchSyncResponse(BaseModel):
    results: List[SyncResult]
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0


class PopularWallet(BaseModel):
    """Entry of the cached ``popular_wallets`` ranking."""

    address: str
    transaction_count: int
    balance: str
    balance_usd: float
    activity_score: float
    last_activity: datetime
    tags: List[str] = Field(default_factory=list)


__all__ = [
    "WalletRecord",
    "SyncStatus",
    "SyncResult",
    "BatchSyncRequest",
    "BatchSyncResponse",
    "PopularWallet",
]
