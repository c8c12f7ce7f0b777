"""Etherscan adapter: balances, transaction samples, gas oracle and network stats."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests

from chainsync.errors import ConfigurationError, ExternalSourceFailure, InvalidAddress
from chainsync.ingest.rate_limiter import RateLimiter
from chainsync.models import GasTracker, NetworkStats, TransactionSample, WalletDetail
from chainsync.utils.numeric import wei_to_eth

LOGGER = logging.getLogger(__name__)

SOURCE_KEY = "etherscan"
DEFAULT_BLOCK_TIME = 12.0


def _normalize_text(value: Any) -> str:
    return str(value).lower() if value is not None else ""


def _hex_to_int(value: Any, field: str) -> int:
    try:
        return int(str(value), 16)
    except (TypeError, ValueError) as exc:
        raise ExternalSourceFailure(SOURCE_KEY, f"Unexpected {field} value: {value!r}") from exc


class EtherscanClient:
    """Thin, rate-limited wrapper over the Etherscan v2 HTTP API."""

    def __init__(
        self,
        api_key: Optional[str],
        limiter: RateLimiter,
        base_url: str = "https://api.etherscan.io/v2/api",
        chain_id: str = "1",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._limiter = limiter
        self._base_url = base_url
        self._chain_id = chain_id
        self._timeout = timeout
        self._session = session or requests.Session()

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self._api_key:
            raise ConfigurationError("ETHERSCAN_API_KEY environment variable is required for ingestion")

        query = dict(params, chainid=self._chain_id, apikey=self._api_key)
        self._limiter.acquire(SOURCE_KEY)

        try:
            response = self._session.get(self._base_url, params=query, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as exc:
            LOGGER.error("Etherscan request timed out (%s/%s)", params.get("module"), params.get("action"))
            raise ExternalSourceFailure(SOURCE_KEY, "request timed out") from exc
        except requests.RequestException as exc:
            LOGGER.exception("Network error calling Etherscan: %s", exc)
            raise ExternalSourceFailure(SOURCE_KEY, "failed to reach Etherscan") from exc
        except ValueError as exc:
            raise ExternalSourceFailure(SOURCE_KEY, "response was not valid JSON") from exc

        if not isinstance(payload, dict):
            raise ExternalSourceFailure(SOURCE_KEY, "Unexpected Etherscan response format")
        return payload

    def _raise_for_status(self, payload: Dict[str, Any], context: str) -> None:
        """Translate an Etherscan ``status=0`` payload into a typed error."""
        raw_result = payload.get("result")
        normalized = _normalize_text(raw_result) + " " + _normalize_text(payload.get("message"))

        if "max rate limit reached" in normalized or "rate limit" in normalized:
            LOGGER.error("Etherscan rate limit reached while fetching %s", context)
            raise ExternalSourceFailure(SOURCE_KEY, "Etherscan API rate limit reached. Please retry later.")
        if "invalid api key" in normalized:
            raise ExternalSourceFailure(
                SOURCE_KEY, "Etherscan rejected the API key. Verify ETHERSCAN_API_KEY.", retryable=False
            )
        if "invalid address format" in normalized or "not a valid address" in normalized:
            raise InvalidAddress(f"Invalid Ethereum address for Etherscan: {context}")

        error_detail = raw_result if raw_result else payload.get("message") or "Unknown error"
        LOGGER.error("Etherscan API returned error for %s: %s", context, error_detail)
        raise ExternalSourceFailure(SOURCE_KEY, f"Etherscan API error: {error_detail}")

    def _proxy(self, action: str, **params: Any) -> Any:
        payload = self._request({"module": "proxy", "action": action, **params})
        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise ExternalSourceFailure(SOURCE_KEY, f"{action} failed: {message}")
        if payload.get("status") == "0":
            self._raise_for_status(payload, action)
        if "result" not in payload:
            raise ExternalSourceFailure(SOURCE_KEY, f"{action} returned no result")
        return payload["result"]

    def get_balance(self, address: str) -> Decimal:
        """Return the wallet balance in ETH."""
        payload = self._request({"module": "account", "action": "balance", "address": address, "tag": "latest"})
        if payload.get("status") != "1":
            self._raise_for_status(payload, address)
        try:
            return wei_to_eth(int(payload["result"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalSourceFailure(SOURCE_KEY, f"Unexpected balance payload for {address}") from exc

    def get_transaction_count(self, address: str) -> int:
        result = self._proxy("eth_getTransactionCount", address=address, tag="latest")
        return _hex_to_int(result, "transaction count")

    def is_contract(self, address: str) -> bool:
        code = self._proxy("eth_getCode", address=address, tag="latest")
        return bool(code) and str(code).lower() not in ("0x", "0x0")

    def get_transactions(self, address: str, limit: int = 50) -> List[TransactionSample]:
        """Fetch the ``limit`` most recent transactions for ``address``."""
        params = {
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": 0,
            "endblock": 99999999,
            "page": 1,
            "offset": limit,
            "sort": "desc",
        }

        LOGGER.info("Requesting transactions for %s from Etherscan", address)
        payload = self._request(params)
        raw_result = payload.get("result")
        normalized_result = _normalize_text(raw_result) + " " + _normalize_text(payload.get("message"))

        if payload.get("status") != "1":
            if "no transactions found" in normalized_result:
                LOGGER.info("No transactions available for %s", address)
                return []
            self._raise_for_status(payload, address)

        if not isinstance(raw_result, list):
            LOGGER.error("Unexpected Etherscan response format for %s: %s", address, raw_result)
            raise ExternalSourceFailure(SOURCE_KEY, "Unexpected Etherscan response format")

        transactions: List[TransactionSample] = []
        for item in raw_result[:limit]:
            try:
                to_address = item.get("to") or item.get("contractAddress")
                if not to_address:
                    LOGGER.debug("Skipping transaction %s without recipient", item.get("hash"))
                    continue

                transactions.append(
                    TransactionSample(
                        hash=item["hash"],
                        from_address=item["from"].lower(),
                        to_address=to_address.lower(),
                        value=wei_to_eth(int(item["value"])),
                        timestamp=int(item["timeStamp"]),
                        block_number=int(item["blockNumber"]),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed transaction entry: %s", exc)
                continue

        LOGGER.info("Fetched %d transactions for %s from Etherscan", len(transactions), address)
        return transactions

    def get_gas_tracker(self) -> GasTracker:
        payload = self._request({"module": "gastracker", "action": "gasoracle"})
        if payload.get("status") != "1":
            self._raise_for_status(payload, "gasoracle")

        result = payload.get("result")
        try:
            slow = float(result["SafeGasPrice"])
            standard = float(result["ProposeGasPrice"])
            fast = float(result["FastGasPrice"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalSourceFailure(SOURCE_KEY, "Unexpected gas oracle payload") from exc

        # The oracle has no instant tier; it is estimated from the fast one.
        return GasTracker(slow=slow, standard=standard, fast=fast, instant=fast + 5)

    def get_network_stats(self) -> NetworkStats:
        latest = _hex_to_int(self._proxy("eth_blockNumber"), "block number")
        block = self._proxy("eth_getBlockByNumber", tag=hex(latest), boolean="false") or {}
        previous = self._proxy("eth_getBlockByNumber", tag=hex(max(latest - 1, 0)), boolean="false") or {}

        block_time = DEFAULT_BLOCK_TIME
        if block.get("timestamp") and previous.get("timestamp"):
            delta = _hex_to_int(block["timestamp"], "timestamp") - _hex_to_int(previous["timestamp"], "timestamp")
            if delta > 0:
                block_time = float(delta)

        difficulty = str(_hex_to_int(block["difficulty"], "difficulty")) if block.get("difficulty") else "0"
        return NetworkStats(block_number=latest, block_time=block_time, difficulty=difficulty, hash_rate="0")


class EtherscanWalletSource:
    """Balance/transaction-history provider built on Etherscan plus a USD price source."""

    def __init__(self, client: EtherscanClient, price_source: Any) -> None:
        self._client = client
        self._price_source = price_source

    def fetch_wallet(self, address: str, sample_size: int = 50) -> WalletDetail:
        balance = self._client.get_balance(address)
        transaction_count = self._client.get_transaction_count(address)
        is_contract = self._client.is_contract(address)
        transactions = self._client.get_transactions(address, limit=sample_size)
        price = self._price_source.spot_price_usd()

        return WalletDetail(
            address=address,
            balance=balance,
            balance_usd=float(balance) * price,
            transaction_count=transaction_count,
            is_contract=is_contract,
            contract_type=None,
            transactions=transactions,
        )


__all__ = ["EtherscanClient", "EtherscanWalletSource", "SOURCE_KEY"]
