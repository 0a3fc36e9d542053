"""
Exception hierarchy for the Zaidan dealer client.

Every public operation either returns a typed value or raises exactly one of
the errors below. Underlying causes are chained with ``raise ... from`` so the
full cause chain stays visible in tracebacks and logs.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class ZaidanError(Exception):
    """Base exception for all dealer client errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the same operation may be retried as-is
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


class ConfigurationError(ZaidanError):
    """Raised when required configuration is missing or invalid."""
    pass


# ==================== Session Errors ====================


class NotInitialized(ZaidanError):
    """Raised when the client is used before ``init()`` completed."""

    def __init__(self, message: str = "not initialized (call .init() first)", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class UnsupportedNetwork(ZaidanError):
    """Raised when network-specific metadata is requested on an unknown chain."""

    def __init__(self, message: str, chain_id: Optional[int] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.chain_id = chain_id


class IncompatibleDealer(ZaidanError):
    """Raised when the dealer does not serve the API version this client speaks."""
    pass


# ==================== Input Errors ====================


class InvalidInput(ZaidanError):
    """Raised when a size, ticker, side or identifier is malformed."""
    pass


class InvalidTransactionId(InvalidInput):
    """Raised when a transaction id is not a 0x-prefixed 32-byte hex string."""

    def __init__(self, tx_id: Any, **kwargs: Any) -> None:
        super().__init__(f"invalid transaction ID: {tx_id!r}", **kwargs)
        self.tx_id = tx_id


class UnsupportedMarket(ZaidanError):
    """Raised when a pair or asset is not served by the configured dealer."""
    pass


# ==================== Quote Errors ====================


class QuoteRequestFailed(ZaidanError):
    """Raised when a quote request fails. Never retried internally."""
    pass


class QuoteExpired(ZaidanError):
    """Raised when a quote or order is used after its expiration."""

    def __init__(
        self,
        message: str,
        expiration: Optional[float] = None,
        now: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.expiration = expiration
        self.now = now


# ==================== Signing Errors ====================


class SigningFailed(ZaidanError):
    """Raised when the fill transaction cannot be built or signed."""
    pass


class SigningDeclined(SigningFailed):
    """Raised when the user declines the signing prompt."""
    pass


# ==================== Settlement Errors ====================


class SettlementRejected(ZaidanError):
    """Raised when the dealer rejects a submission. Terminal for the quote."""

    def __init__(
        self,
        message: str,
        quote_id: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.quote_id = quote_id
        self.status = status


class DuplicateSubmission(SettlementRejected):
    """Raised when a quote id has already produced a settlement record."""
    pass


class SubmissionFailed(ZaidanError):
    """Raised on transport failure while submitting.

    The signed payload may be resubmitted unchanged while the quote is
    still unexpired.
    """

    def __init__(self, message: str, quote_id: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)
        self.quote_id = quote_id


# ==================== On-chain Errors ====================


class AllowanceInsufficient(ZaidanError):
    """Raised when the taker has not granted the proxy a sufficient allowance."""

    def __init__(self, message: str, asset: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.asset = asset


class NodeUnavailable(ZaidanError):
    """Raised when an Ethereum node call fails or the node cannot be reached."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)


class TransactionReverted(ZaidanError):
    """Raised when a transaction was mined but reverted."""

    def __init__(self, message: str, tx_id: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.tx_id = tx_id


# ==================== Dealer HTTP Errors ====================


class DealerHTTPError(ZaidanError):
    """Raised by the HTTP client for non-2xx dealer responses."""

    def __init__(
        self,
        message: str,
        status: int,
        payload: Optional[Any] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status = status
        self.payload = payload


class DealerTransportError(ZaidanError):
    """Raised by the HTTP client on connection errors and timeouts."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)
