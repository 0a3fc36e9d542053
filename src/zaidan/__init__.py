"""
Zaidan dealer client

Obtain signed price quotes from a dealer server and settle them on-chain as
taker-signed 0x fill transactions.

Example:
    >>> from zaidan import DealerClient, DealerClientConfig
    >>> client = DealerClient(DealerClientConfig.from_env())
    >>> await client.init()
    >>> quote = await client.get_quote(2, "WETH/DAI", "bid")
    >>> tx_id = await client.handle_trade(quote)
    >>> await client.wait_for_transaction_success_or_raise(tx_id)
"""

from .config import DealerClientConfig
from .dealer_client import DealerClient
from .exceptions import (
    AllowanceInsufficient,
    ConfigurationError,
    DuplicateSubmission,
    IncompatibleDealer,
    InvalidInput,
    InvalidTransactionId,
    NotInitialized,
    QuoteExpired,
    QuoteRequestFailed,
    SettlementRejected,
    SigningDeclined,
    SigningFailed,
    SubmissionFailed,
    NodeUnavailable,
    TransactionReverted,
    UnsupportedMarket,
    UnsupportedNetwork,
    ZaidanError,
)
from .models import (
    ConfirmationResult,
    MakerOrder,
    NetworkContext,
    ProtocolVersion,
    Quote,
    SettlementRecord,
    Side,
    SignedFillTransaction,
    TradeResult,
    TransactionOutcome,
)
from .providers import InteractiveWallet, RemoteNode, SigningProvider

__version__ = "1.0.0"

__all__ = [
    "DealerClient",
    "DealerClientConfig",
    "InteractiveWallet",
    "RemoteNode",
    "SigningProvider",
    "ConfirmationResult",
    "MakerOrder",
    "NetworkContext",
    "ProtocolVersion",
    "Quote",
    "SettlementRecord",
    "Side",
    "SignedFillTransaction",
    "TradeResult",
    "TransactionOutcome",
    "ZaidanError",
    "AllowanceInsufficient",
    "ConfigurationError",
    "DuplicateSubmission",
    "IncompatibleDealer",
    "InvalidInput",
    "InvalidTransactionId",
    "NotInitialized",
    "QuoteExpired",
    "QuoteRequestFailed",
    "SettlementRejected",
    "SigningDeclined",
    "SigningFailed",
    "SubmissionFailed",
    "NodeUnavailable",
    "TransactionReverted",
    "UnsupportedMarket",
    "UnsupportedNetwork",
]
