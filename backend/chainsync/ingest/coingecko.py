"""CoinGecko price adapter."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import requests

from chainsync.errors import ExternalSourceFailure
from chainsync.ingest.rate_limiter import RateLimiter
from chainsync.models import EthereumQuote, TokenPrice

LOGGER = logging.getLogger(__name__)

SOURCE_KEY = "coingecko"
USER_AGENT = "chainsync/1.0.0"


class CoinGeckoClient:
    """Spot prices, market cap and volume from the ``simple/price`` endpoint."""

    def __init__(
        self,
        limiter: RateLimiter,
        base_url: str = "https://api.coingecko.com/api/v3",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
        spot_ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limiter = limiter
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._spot_ttl = spot_ttl_seconds
        self._clock = clock
        self._spot_lock = threading.Lock()
        self._spot: Dict[str, Tuple[float, float]] = {}

    def get_prices(self, coin_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = [coin_id.strip().lower() for coin_id in coin_ids if coin_id and coin_id.strip()]
        if not ids:
            return {}

        params = {
            "ids": ",".join(ids),
            "vs_currencies": "usd",
            "include_market_cap": "true",
            "include_24hr_vol": "true",
            "include_24hr_change": "true",
        }
        self._limiter.acquire(SOURCE_KEY)

        try:
            response = self._session.get(
                f"{self._base_url}/simple/price",
                params=params,
                timeout=self._timeout,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as exc:
            raise ExternalSourceFailure(SOURCE_KEY, "request timed out") from exc
        except requests.RequestException as exc:
            LOGGER.error("Error fetching prices for %s: %s", ids, exc)
            raise ExternalSourceFailure(SOURCE_KEY, "failed to reach CoinGecko") from exc
        except ValueError as exc:
            raise ExternalSourceFailure(SOURCE_KEY, "response was not valid JSON") from exc

        if not isinstance(payload, dict):
            raise ExternalSourceFailure(SOURCE_KEY, "Unexpected CoinGecko response format")
        return payload

    def get_ethereum_quote(self) -> EthereumQuote:
        data = self.get_prices(["ethereum"]).get("ethereum")
        if not data or data.get("usd") is None:
            raise ExternalSourceFailure(SOURCE_KEY, "ethereum missing from price response")

        quote = EthereumQuote(
            price=float(data["usd"]),
            market_cap=float(data.get("usd_market_cap") or 0),
            volume_24h=float(data.get("usd_24h_vol") or 0),
            price_change_24h=float(data.get("usd_24h_change") or 0),
        )
        self._remember_spot("ethereum", quote.price)
        return quote

    def spot_price_usd(self, coin_id: str = "ethereum") -> float:
        """USD price of ``coin_id``, memoized for ``spot_ttl_seconds``."""
        with self._spot_lock:
            cached = self._spot.get(coin_id)
            if cached and self._clock() - cached[1] < self._spot_ttl:
                return cached[0]

        data = self.get_prices([coin_id]).get(coin_id)
        if not data or data.get("usd") is None:
            raise ExternalSourceFailure(SOURCE_KEY, f"{coin_id} missing from price response")
        price = float(data["usd"])
        self._remember_spot(coin_id, price)
        return price

    def _remember_spot(self, coin_id: str, price: float) -> None:
        with self._spot_lock:
            self._spot[coin_id] = (price, self._clock())

    def get_token_prices(self, token_ids: Iterable[str]) -> List[TokenPrice]:
        payload = self.get_prices(token_ids)
        prices: List[TokenPrice] = []
        for token_id, data in payload.items():
            if not isinstance(data, dict) or data.get("usd") is None:
                LOGGER.debug("No USD price for %s", token_id)
                continue
            prices.append(
                TokenPrice(
                    token_id=token_id,
                    price=float(data["usd"]),
                    price_change_24h=float(data.get("usd_24h_change") or 0),
                    volume_24h=float(data.get("usd_24h_vol") or 0),
                    market_cap=float(data.get("usd_market_cap") or 0),
                )
            )
        return prices


__all__ = ["CoinGeckoClient", "SOURCE_KEY"]
