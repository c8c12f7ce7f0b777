"""Trigger endpoints used by the scheduler to run the sync pipelines."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool

from chainsync.errors import ConfigurationError, StoreUnavailableError
from chainsync.models import (
    BatchSyncRequest,
    BatchSyncResponse,
    MarketSnapshot,
    PopularWallet,
    SyncResult,
    TokenPrice,
    TokenPriceRequest,
)
from chainsync.services import get_services

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def _services():
    try:
        return get_services()
    except ConfigurationError as exc:
        LOGGER.error("Pipeline services unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _summarize(results: List[SyncResult]) -> BatchSyncResponse:
    skipped = sum(1 for result in results if result.skipped)
    succeeded = sum(1 for result in results if result.ok and not result.skipped)
    return BatchSyncResponse(
        results=results,
        succeeded=succeeded,
        skipped=skipped,
        failed=len(results) - succeeded - skipped,
    )


@router.post("/wallets", response_model=BatchSyncResponse)
async def sync_wallets(payload: BatchSyncRequest) -> BatchSyncResponse:
    """Sync a batch of wallets; per-address failures are reported, not raised."""
    services = _services()
    try:
        results = await run_in_threadpool(services.wallet_pipeline.sync_batch, payload.addresses, payload.force)
    except StoreUnavailableError as exc:
        LOGGER.error("Wallet batch aborted: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return _summarize(results)


@router.post("/wallets/{address}", response_model=SyncResult)
async def sync_single_wallet(address: str, force: bool = False) -> SyncResult:
    services = _services()
    result = await run_in_threadpool(services.wallet_pipeline.sync_wallet, address, force)
    if not result.ok and result.error_kind == "invalid_input":
        raise HTTPException(status_code=400, detail=result.error)
    return result


@router.post("/market", response_model=MarketSnapshot)
async def sync_market() -> MarketSnapshot:
    services = _services()
    return await run_in_threadpool(services.market_pipeline.sync_market_data)


@router.get("/market/latest", response_model=MarketSnapshot)
def latest_market() -> MarketSnapshot:
    snapshot = _services().market_pipeline.latest_snapshot()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No market snapshot cached yet")
    return snapshot


@router.post("/tokens", response_model=List[TokenPrice])
async def sync_tokens(payload: TokenPriceRequest) -> List[TokenPrice]:
    services = _services()
    return await run_in_threadpool(services.market_pipeline.sync_token_prices, payload.token_ids)


@router.post("/popular", response_model=List[PopularWallet])
async def discover_popular() -> List[PopularWallet]:
    services = _services()
    return await run_in_threadpool(services.ranker.discover_popular)


__all__ = ["router"]
