"""
Order Signer & Fill-Transaction Builder

Turns a dealer-signed maker order into a taker-signed 0x transaction
(ZEIP-18 meta-transaction). The taker only signs an authorization; the
dealer broadcasts it and pays the gas.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Callable, Optional, Tuple

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, to_checksum_address, to_hex

from ..exceptions import QuoteExpired, SigningFailed, UnsupportedMarket
from ..metrics import DealerMetrics, get_metrics
from ..models import (
    FillTransaction,
    MakerOrder,
    NetworkContext,
    NetworkContracts,
    ProtocolVersion,
    Quote,
    SignedFillTransaction,
)
from ..providers import SigningProvider
from .encoding import (
    decode_erc20_asset_data,
    encode_fill_order,
    parse_zeroex_signature,
    to_zeroex_signature,
    transaction_hash,
)

logger = logging.getLogger(__name__)


def generate_salt() -> int:
    """Cryptographically random 256-bit salt, single use per transaction."""
    return secrets.randbits(256)


def recover_signer(message_hash: bytes, signature: str) -> str:
    """Recover the eth_sign signer of ``message_hash`` from a 0x signature."""
    v, r, s = parse_zeroex_signature(signature)
    return Account.recover_message(encode_defunct(primitive=message_hash), vrs=(v, r, s))


def order_pair_tickers(context: NetworkContext, order: MakerOrder) -> Tuple[str, str]:
    """
    Map an order's maker and taker assets to tickers served by the dealer.

    Returns:
        ``(maker_ticker, taker_ticker)``

    Raises:
        UnsupportedMarket: If either asset is unknown or the pair is not
            currently served in either ordering
    """
    try:
        maker_token = decode_erc20_asset_data(order.maker_asset_data)
        taker_token = decode_erc20_asset_data(order.taker_asset_data)
    except ValueError as e:
        raise UnsupportedMarket(f"order trades an unsupported asset type: {e}") from e

    maker_ticker = context.ticker_for(maker_token)
    taker_ticker = context.ticker_for(taker_token)
    if maker_ticker is None or taker_ticker is None:
        raise UnsupportedMarket(
            "order references an asset not served by the dealer",
            details={"maker_token": maker_token, "taker_token": taker_token},
        )

    if not (
        context.supports_pair(f"{maker_ticker}/{taker_ticker}")
        or context.supports_pair(f"{taker_ticker}/{maker_ticker}")
    ):
        raise UnsupportedMarket(
            f"order pair {maker_ticker}/{taker_ticker} is not currently supported",
            details={"pairs": list(context.pairs)},
        )
    return maker_ticker, taker_ticker


class OrderSigner:
    """Builds and signs fill transactions. Holds no per-trade state."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        salt_factory: Callable[[], int] = generate_salt,
        metrics: Optional[DealerMetrics] = None,
    ) -> None:
        self.clock = clock
        self.salt_factory = salt_factory
        self.metrics = metrics or get_metrics()

    async def sign_quote(self, context: NetworkContext, quote: Quote) -> SignedFillTransaction:
        """
        Validate a quote against the session and sign a fill of its order.

        Raises:
            QuoteExpired: Quote (or its order) has expired; no provider call is made
            UnsupportedMarket: The order's asset pair is not currently served
            SigningFailed: Building or signing failed
        """
        now = self.clock()
        if quote.is_expired(now):
            raise QuoteExpired(
                f"quote {quote.id} expired at {quote.expiration}",
                expiration=quote.expiration,
                now=now,
            )
        order_pair_tickers(context, quote.order)

        return await self.build_and_sign(
            quote.order,
            context.taker,
            context.provider,
            context.contracts,
            gas_price=context.gas_price,
            protocol_version=context.protocol_version,
            chain_id=context.chain_id,
            expiration=quote.expires_at,
            quote_id=quote.id,
        )

    async def build_and_sign(
        self,
        order: MakerOrder,
        taker: str,
        provider: SigningProvider,
        contracts: NetworkContracts,
        *,
        gas_price: Optional[int] = None,
        protocol_version: ProtocolVersion = ProtocolVersion.V2,
        chain_id: Optional[int] = None,
        expiration: Optional[float] = None,
        quote_id: Optional[str] = None,
    ) -> SignedFillTransaction:
        """
        Build a full-amount fill transaction for ``order`` and sign it.

        Args:
            order: Dealer-signed maker order, never modified
            taker: Address of the signing taker
            provider: Signing provider holding ``taker``
            contracts: 0x contracts of the session's chain
            gas_price: Gas price in wei, part of the signed struct under v3
            protocol_version: 0x protocol generation
            chain_id: Chain id, part of the v3 EIP-712 domain
            expiration: Quote expiration; the earlier of this and the
                order's expiry bounds the signed transaction
            quote_id: Dealer quote id the signature is produced for

        Returns:
            Signed fill transaction with a fresh salt

        Raises:
            QuoteExpired: The order has expired
            SigningFailed: Any other failure, with the cause chained
        """
        now = self.clock()
        if order.is_expired(now):
            self.metrics.signatures_total.labels(status="expired").inc()
            raise QuoteExpired(
                f"maker order expired at {order.expiration_time_seconds}",
                expiration=float(order.expiration_time_seconds),
                now=now,
            )

        try:
            signed = await self._build_and_sign(
                order,
                taker,
                provider,
                contracts,
                gas_price=gas_price,
                protocol_version=protocol_version,
                chain_id=chain_id,
                expiration=expiration,
                quote_id=quote_id,
            )
        except SigningFailed:
            self.metrics.signatures_total.labels(status="failed").inc()
            raise
        except Exception as e:
            self.metrics.signatures_total.labels(status="failed").inc()
            logger.warning(
                "Fill transaction signing failed",
                extra={"event": "signer.failed", "quote_id": quote_id, "error": str(e)},
            )
            raise SigningFailed(f"failed to sign fill transaction: {e}") from e

        self.metrics.signatures_total.labels(status="signed").inc()
        logger.info(
            "Fill transaction signed",
            extra={
                "event": "signer.signed",
                "quote_id": quote_id,
                "hash": signed.hash,
                "signer": signed.signer_address,
            },
        )
        return signed

    async def _build_and_sign(
        self,
        order: MakerOrder,
        taker: str,
        provider: SigningProvider,
        contracts: NetworkContracts,
        *,
        gas_price: Optional[int],
        protocol_version: ProtocolVersion,
        chain_id: Optional[int],
        expiration: Optional[float],
        quote_id: Optional[str],
    ) -> SignedFillTransaction:
        if not is_address(taker):
            raise SigningFailed(f"invalid taker address: {taker!r}")
        taker = to_checksum_address(taker)

        if order.taker_asset_amount <= 0:
            raise SigningFailed(
                f"invalid taker asset amount: {order.taker_asset_amount}"
            )
        if order.exchange_address and order.exchange_address.lower() != contracts.exchange.lower():
            raise SigningFailed(
                f"order targets exchange {order.exchange_address}, "
                f"session uses {contracts.exchange}"
            )

        expires_at = float(order.expiration_time_seconds)
        if expiration is not None:
            expires_at = min(expires_at, float(expiration))

        if protocol_version is ProtocolVersion.V3:
            if gas_price is None or chain_id is None:
                raise SigningFailed("gas price and chain id are required for 0x v3 transactions")
            tx_fields = dict(
                gas_price=int(gas_price),
                expiration_time_seconds=int(expires_at),
                chain_id=chain_id,
            )
        else:
            tx_fields = {}

        # Trades are always filled for the full taker amount
        data = encode_fill_order(order, order.taker_asset_amount, protocol_version)
        fill_tx = FillTransaction(
            verifying_contract=contracts.exchange,
            salt=self.salt_factory(),
            signer_address=taker,
            data=data,
            protocol_version=protocol_version,
            **tx_fields,
        )

        message_hash = transaction_hash(fill_tx)
        raw_signature = await provider.sign_hash(taker, message_hash)
        signature = to_zeroex_signature(raw_signature)

        recovered = recover_signer(message_hash, signature)
        if recovered.lower() != taker.lower():
            raise SigningFailed(
                f"signature recovers to {recovered}, expected taker {taker}"
            )

        return SignedFillTransaction(
            transaction=fill_tx,
            hash=to_hex(message_hash),
            signature=signature,
            expiration=expires_at,
            quote_id=quote_id,
        )
