"""API route definitions for chainsync."""

from fastapi import APIRouter

from .sync import router as sync_router


api_router = APIRouter()
api_router.include_router(sync_router)


__all__ = ["api_router"]
