"""
Zaidan dealer client.

Example:
    >>> config = DealerClientConfig.from_env()
    >>> async with DealerClient(config) as client:
    ...     await client.init()
    ...     quote = await client.get_quote(2, "WETH/DAI", "bid")
    ...     result = await client.execute_trade(quote)
    ...     print(result.record.tx_id, result.confirmation.outcome)
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .clients.allowance_client import MAX_ALLOWANCE, AllowanceClient
from .clients.confirmation import ConfirmationWaiter
from .clients.quote_client import QuoteClient
from .clients.settlement_client import SettlementClient
from .config import DealerClientConfig
from .exceptions import AllowanceInsufficient, NotInitialized, QuoteExpired
from .http_client import DealerHTTPClient
from .metrics import DealerMetrics, get_metrics
from .models import (
    AuthorizationStatus,
    ConfirmationResult,
    NetworkContext,
    Quote,
    SettlementRecord,
    SignedFillTransaction,
    TradeResult,
)
from .providers import ConfirmCallback, SigningProvider, create_provider
from .session import check_authorized, initialize_session, refresh_session
from .signing.order_signer import OrderSigner, order_pair_tickers

logger = logging.getLogger(__name__)


class DealerClient:
    """
    A client for one dealer server and one taker account.

    ``init()`` must complete before any other call; it connects the signing
    provider and loads the dealer's markets and assets into an immutable
    session snapshot.
    """

    MAX_ALLOWANCE = MAX_ALLOWANCE

    def __init__(
        self,
        config: DealerClientConfig,
        provider: Optional[SigningProvider] = None,
        *,
        http_client: Optional[DealerHTTPClient] = None,
        confirm: Optional[ConfirmCallback] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[DealerMetrics] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration
            provider: Signing provider; built from ``config`` on ``init()`` if omitted
            http_client: Dealer HTTP client; built from ``config`` if omitted
            confirm: Prompt callback for an interactive wallet built from ``config``
            clock: Wall-clock source for expiration checks
            metrics: Metrics sink, the process default when omitted
        """
        self.config = config
        self.http_client = http_client or DealerHTTPClient(
            config.dealer_url,
            api_version=config.api_version,
            timeout=config.http_timeout,
        )
        self.provider = provider
        self.confirm = confirm
        self.metrics = metrics or get_metrics()

        self.quotes = QuoteClient(self.http_client, clock=clock, metrics=self.metrics)
        self.signer = OrderSigner(clock=clock, metrics=self.metrics)
        self.settlement = SettlementClient(self.http_client, clock=clock, metrics=self.metrics)
        self.allowances = AllowanceClient(waiter_factory=self._make_waiter)

        self._context: Optional[NetworkContext] = None
        self._waiter: Optional[ConfirmationWaiter] = None

    # ==================== Session ====================

    @property
    def initialized(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> NetworkContext:
        if self._context is None:
            raise NotInitialized()
        return self._context

    @property
    def pairs(self) -> List[str]:
        return list(self.context.pairs)

    @property
    def tokens(self) -> dict:
        return dict(self.context.tokens)

    def supported_tickers(self) -> List[str]:
        return list(self.context.tokens.keys())

    async def init(self) -> NetworkContext:
        """Connect the provider and load the session snapshot."""
        if self.provider is None:
            self.provider = create_provider(self.config, confirm=self.confirm)
        self._context = await initialize_session(self.http_client, self.provider, self.config)
        self._waiter = None
        return self._context

    async def refresh(self) -> NetworkContext:
        """Replace the session snapshot with fresh markets, assets and gas price."""
        self._context = await refresh_session(
            self.context, self.http_client, gas_price=self.config.gas_price_wei
        )
        return self._context

    def _make_waiter(self, web3) -> ConfirmationWaiter:
        return ConfirmationWaiter(web3, poll_interval=self.config.poll_interval, metrics=self.metrics)

    @property
    def waiter(self) -> ConfirmationWaiter:
        if self._waiter is None:
            self._waiter = self._make_waiter(self.context.provider.web3)
        return self._waiter

    async def is_authorized(self, address: Optional[str] = None) -> AuthorizationStatus:
        """Ask the dealer whether ``address`` (the taker by default) may trade."""
        return await check_authorized(self.http_client, address or self.context.taker)

    # ==================== Quotes ====================

    async def get_quote(self, size: float, symbol: str, side: str) -> Quote:
        """Request a signed quote for ``size`` units of ``symbol`` on ``side``."""
        return await self.quotes.request_quote(self.context, size, symbol, side)

    async def get_swap_quote(self, size: float, client_asset: str, dealer_asset: str) -> Quote:
        """Request a quote to swap ``size`` of ``client_asset`` for ``dealer_asset``."""
        return await self.quotes.request_swap_quote(self.context, size, client_asset, dealer_asset)

    # ==================== Allowances ====================

    async def has_allowance(self, ticker: str) -> bool:
        return await self.allowances.has_allowance(self.context, ticker)

    async def set_allowance(self, ticker: str) -> ConfirmationResult:
        return await self.allowances.set_allowance(self.context, ticker, waiter=self.waiter)

    async def get_balance(self, ticker: str) -> int:
        """Taker balance of ``ticker`` in base units."""
        return await self.allowances.get_balance(self.context, ticker)

    # ==================== Trading ====================

    async def sign_quote(self, quote: Quote) -> SignedFillTransaction:
        return await self.signer.sign_quote(self.context, quote)

    async def submit(
        self,
        signed: SignedFillTransaction,
        quote_id: Optional[str] = None,
    ) -> SettlementRecord:
        return await self.settlement.submit(self.context, signed, quote_id)

    async def handle_trade(self, quote: Quote) -> str:
        """
        Sign a full fill of the quote's order and submit it for settlement.

        Allowances should be checked before calling this method.

        Returns:
            Transaction id reported by the dealer
        """
        signed = await self.sign_quote(quote)
        record = await self.submit(signed, quote.id)
        return record.tx_id

    async def wait_for_transaction(self, tx_id: str) -> ConfirmationResult:
        return await self.waiter.wait(tx_id)

    async def wait_for_transaction_success_or_raise(self, tx_id: str) -> ConfirmationResult:
        return await self.waiter.wait_for_success(tx_id)

    async def execute_trade(
        self,
        quote: Quote,
        *,
        ensure_allowance: bool = False,
        wait: bool = True,
    ) -> TradeResult:
        """
        Run the full settlement pipeline for one quote.

        Stages run strictly in order and the first failure aborts the rest:
        expiry check, allowance gate, signing, submission, confirmation. An
        expired quote fails before any node or dealer call.

        Args:
            quote: Quote to settle
            ensure_allowance: Grant a missing allowance instead of failing
            wait: Wait for the settlement transaction to be mined

        Raises:
            AllowanceInsufficient: Allowance missing and ``ensure_allowance`` is False
            QuoteExpired, UnsupportedMarket, SigningFailed, SettlementRejected,
            SubmissionFailed, InvalidTransactionId: From the respective stage
        """
        context = self.context
        self._check_unexpired(quote)
        _, taker_ticker = order_pair_tickers(context, quote.order)

        if not await self.allowances.has_allowance(context, taker_ticker):
            if not ensure_allowance:
                raise AllowanceInsufficient(
                    f"no sufficient {taker_ticker} allowance set (call set_allowance first)",
                    asset=taker_ticker,
                )
            await self.set_allowance(taker_ticker)
            # approval may be mined after the quote lapsed
            self._check_unexpired(quote)

        signed = await self.signer.sign_quote(context, quote)
        record = await self.settlement.submit(context, signed, quote.id)

        confirmation = None
        if wait:
            confirmation = await self.waiter.wait(record.tx_id)

        logger.info(
            "Trade finished",
            extra={
                "event": "trade.finished",
                "quote_id": quote.id,
                "tx_id": record.tx_id,
                "outcome": confirmation.outcome.value if confirmation else "pending",
            },
        )
        return TradeResult(quote=quote, signed=signed, record=record, confirmation=confirmation)

    def _check_unexpired(self, quote: Quote) -> None:
        now = self.signer.clock()
        if now >= quote.expires_at:
            raise QuoteExpired(
                f"quote {quote.id} expired at {quote.expires_at}",
                expiration=quote.expires_at,
                now=now,
            )

    # ==================== Lifecycle ====================

    async def close(self) -> None:
        await self.http_client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
