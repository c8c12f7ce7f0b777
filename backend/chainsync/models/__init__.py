"""Data models exposed by the chainsync pipelines."""

from .chain import TransactionSample, WalletDetail
from .wallet import (
	BatchSyncRequest,
	BatchSyncResponse,
	PopularWallet,
	SyncResult,
	SyncStatus,
	WalletRecord,
)
from .market import (
	EthereumQuote,
	GasTracker,
	MarketSnapshot,
	NetworkStats,
	TokenPrice,
	TokenPriceRequest,
)

__all__ = [
	"TransactionSample",
	"WalletDetail",
	"WalletRecord",
	"SyncStatus",
	"SyncResult",
	"BatchSyncRequest",
	"BatchSyncResponse",
	"PopularWallet",
	"EthereumQuote",
	"GasTracker",
	"NetworkStats",
	"MarketSnapshot",
	"TokenPrice",
	"TokenPriceRequest",
]
