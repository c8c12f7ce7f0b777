"""FastAPI entry point exposing the chainsync pipelines to the scheduler."""

from __future__ import annotations

import logging
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chainsync.api import api_router
from chainsync.config import get_settings
from chainsync.services import close_services


LOGGER = logging.getLogger(__name__)

logging.basicConfig(level=logging.INFO)

app = FastAPI(
	title="chainsync",
	version="1.0.0",
	description="Wallet ingestion, scoring and multi-store sync pipelines.",
)

app.add_middleware(
	CORSMiddleware,
	allow_origins=get_settings().cors_allow_origins,
	allow_credentials=False,
	allow_methods=["*"],
	allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
def healthcheck() -> Dict[str, str]:
	"""Basic readiness probe."""
	return {"status": "ok"}


@app.on_event("shutdown")
def shutdown_event() -> None:
	"""Close the shared Neo4j, Redis and SQL clients when the service stops."""
	LOGGER.info("Shutting down pipeline services")
	close_services()
