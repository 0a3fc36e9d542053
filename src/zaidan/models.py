"""
Data models for the dealer client.

All protocol values are frozen dataclasses: a quote, its maker order and a
signed fill transaction are never mutated once produced.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from .exceptions import InvalidInput, InvalidTransactionId

if TYPE_CHECKING:
    from .providers import SigningProvider


TX_ID_PATTERN = re.compile(r"0x[a-fA-F0-9]{64}")


def validate_tx_id(tx_id: Any) -> str:
    """Return ``tx_id`` unchanged if it is a 0x-prefixed 32-byte hex string."""
    if not isinstance(tx_id, str) or not TX_ID_PATTERN.fullmatch(tx_id):
        raise InvalidTransactionId(tx_id)
    return tx_id


class Side(str, Enum):
    BID = "bid"
    ASK = "ask"

    @classmethod
    def parse(cls, value: Any) -> "Side":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidInput(f'side must be "bid" or "ask", got {value!r}') from None


class TransactionOutcome(Enum):
    SUCCESS = "success"
    REVERTED = "reverted"


class ProtocolVersion(int, Enum):
    """0x protocol generation the dealer settles against."""
    V2 = 2
    V3 = 3

    @classmethod
    def parse(cls, value: Any) -> "ProtocolVersion":
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise InvalidInput(f"unsupported 0x protocol version: {value!r}") from None


@dataclass(frozen=True)
class NetworkContracts:
    """0x contract addresses for one chain."""
    exchange: str
    erc20_proxy: str


@dataclass(frozen=True)
class NetworkContext:
    """
    Immutable per-session snapshot.

    Produced once by session initialization and passed into every protocol
    operation. Refreshing markets or gas price yields a new context.
    """
    chain_id: int
    taker: str
    provider: "SigningProvider" = field(compare=False, repr=False)
    gas_price: int
    pairs: Tuple[str, ...]
    tokens: Mapping[str, str]
    contracts: NetworkContracts
    protocol_version: ProtocolVersion = ProtocolVersion.V2

    def __post_init__(self) -> None:
        object.__setattr__(self, "pairs", tuple(self.pairs))
        object.__setattr__(self, "tokens", MappingProxyType(dict(self.tokens)))

    def supports_pair(self, pair: str) -> bool:
        return pair in self.pairs

    def token_address(self, ticker: str) -> Optional[str]:
        return self.tokens.get(ticker)

    def ticker_for(self, address: str) -> Optional[str]:
        """Reverse lookup of a token address, case-insensitive."""
        wanted = address.lower()
        for ticker, token_address in self.tokens.items():
            if token_address.lower() == wanted:
                return ticker
        return None


@dataclass(frozen=True)
class MakerOrder:
    """A dealer-signed 0x order. Fee asset data only exists in v3 orders."""
    maker_address: str
    taker_address: str
    fee_recipient_address: str
    sender_address: str
    maker_asset_amount: int
    taker_asset_amount: int
    maker_fee: int
    taker_fee: int
    expiration_time_seconds: int
    salt: int
    maker_asset_data: str
    taker_asset_data: str
    signature: str
    exchange_address: Optional[str] = None
    maker_fee_asset_data: str = "0x"
    taker_fee_asset_data: str = "0x"
    chain_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MakerOrder":
        """Parse the dealer's camelCase order JSON. Amounts arrive as strings."""
        try:
            return cls(
                maker_address=data["makerAddress"],
                taker_address=data["takerAddress"],
                fee_recipient_address=data["feeRecipientAddress"],
                sender_address=data["senderAddress"],
                maker_asset_amount=int(data["makerAssetAmount"]),
                taker_asset_amount=int(data["takerAssetAmount"]),
                maker_fee=int(data["makerFee"]),
                taker_fee=int(data["takerFee"]),
                expiration_time_seconds=int(data["expirationTimeSeconds"]),
                salt=int(data["salt"]),
                maker_asset_data=data["makerAssetData"],
                taker_asset_data=data["takerAssetData"],
                signature=data["signature"],
                exchange_address=data.get("exchangeAddress"),
                maker_fee_asset_data=data.get("makerFeeAssetData") or "0x",
                taker_fee_asset_data=data.get("takerFeeAssetData") or "0x",
                chain_id=int(data["chainId"]) if data.get("chainId") is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"malformed maker order: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "makerAddress": self.maker_address,
            "takerAddress": self.taker_address,
            "feeRecipientAddress": self.fee_recipient_address,
            "senderAddress": self.sender_address,
            "makerAssetAmount": str(self.maker_asset_amount),
            "takerAssetAmount": str(self.taker_asset_amount),
            "makerFee": str(self.maker_fee),
            "takerFee": str(self.taker_fee),
            "expirationTimeSeconds": str(self.expiration_time_seconds),
            "salt": str(self.salt),
            "makerAssetData": self.maker_asset_data,
            "takerAssetData": self.taker_asset_data,
            "signature": self.signature,
        }
        if self.exchange_address:
            d["exchangeAddress"] = self.exchange_address
        if self.maker_fee_asset_data != "0x" or self.taker_fee_asset_data != "0x":
            d["makerFeeAssetData"] = self.maker_fee_asset_data
            d["takerFeeAssetData"] = self.taker_fee_asset_data
        if self.chain_id is not None:
            d["chainId"] = self.chain_id
        return d

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expiration_time_seconds


@dataclass(frozen=True)
class Quote:
    """A dealer-issued, time-bounded price quote with its signed maker order."""
    id: str
    expiration: float
    size: float
    price: float
    fee: float
    order: MakerOrder
    symbol: str
    side: Optional[Side] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any], symbol: str, side: Optional[Side] = None) -> "Quote":
        try:
            return cls(
                id=str(data["id"]),
                expiration=float(data["expiration"]),
                size=float(data["size"]),
                price=float(data["price"]),
                fee=float(data.get("fee", 0)),
                order=MakerOrder.from_dict(data["order"]),
                symbol=symbol,
                side=side,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"malformed quote response: {e}") from e

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expiration

    @property
    def expires_at(self) -> float:
        """Earliest of the quote and maker-order expirations."""
        return min(self.expiration, float(self.order.expiration_time_seconds))


@dataclass(frozen=True)
class FillTransaction:
    """
    Unsigned 0x transaction wrapping a ``fillOrder`` call.

    ``gas_price``, ``expiration_time_seconds`` and ``chain_id`` are only
    part of the signed structure under protocol v3.
    """
    verifying_contract: str
    salt: int
    signer_address: str
    data: str
    protocol_version: ProtocolVersion = ProtocolVersion.V2
    gas_price: Optional[int] = None
    expiration_time_seconds: Optional[int] = None
    chain_id: Optional[int] = None


@dataclass(frozen=True)
class SignedFillTransaction:
    transaction: FillTransaction
    hash: str
    signature: str
    expiration: float
    quote_id: Optional[str] = None

    @property
    def salt(self) -> int:
        return self.transaction.salt

    @property
    def data(self) -> str:
        return self.transaction.data

    @property
    def signer_address(self) -> str:
        return self.transaction.signer_address

    def to_payload(self, quote_id: str, address: str) -> Dict[str, Any]:
        """Body of the dealer's ``POST order`` request."""
        payload = {
            "salt": str(self.transaction.salt),
            "data": self.transaction.data,
            "hash": self.hash,
            "sig": self.signature,
            "quoteId": quote_id,
            "address": address,
        }
        if self.transaction.protocol_version is ProtocolVersion.V3:
            payload["gasPrice"] = str(self.transaction.gas_price)
            payload["expiration"] = str(self.transaction.expiration_time_seconds)
        return payload


@dataclass(frozen=True)
class SettlementRecord:
    quote_id: str
    tx_id: str
    submitted_at: float


@dataclass(frozen=True)
class AllowanceState:
    owner: str
    asset: str
    spender: str
    allowance: int
    sufficient: bool


@dataclass(frozen=True)
class ConfirmationResult:
    tx_id: str
    outcome: TransactionOutcome
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is TransactionOutcome.SUCCESS


@dataclass(frozen=True)
class AuthorizationStatus:
    authorized: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class TradeResult:
    quote: Quote
    signed: SignedFillTransaction
    record: SettlementRecord
    confirmation: Optional[ConfirmationResult] = None
