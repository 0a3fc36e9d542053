"""
Quote Client for the dealer API

Requests signed price quotes as a direct bid/ask on a pair, or as an asset
swap that is routed to whichever pair ordering the dealer serves.
"""

import logging
import math
import time
from typing import Any, Callable, Dict, Optional, Union

from ..exceptions import (
    DealerHTTPError,
    DealerTransportError,
    InvalidInput,
    QuoteExpired,
    QuoteRequestFailed,
    UnsupportedMarket,
)
from ..http_client import DealerHTTPClient
from ..metrics import DealerMetrics, get_metrics
from ..models import NetworkContext, Quote, Side

logger = logging.getLogger(__name__)


def validate_size(size: Any) -> float:
    """Return ``size`` as a float if it is a finite positive number."""
    if isinstance(size, bool) or not isinstance(size, (int, float)):
        raise InvalidInput(f"size must be a number, got {type(size).__name__}")
    if not math.isfinite(size) or size <= 0:
        raise InvalidInput(f"size must be a finite positive number, got {size!r}")
    return float(size)


def validate_ticker(ticker: Any, name: str) -> str:
    if not isinstance(ticker, str) or not ticker.strip():
        raise InvalidInput(f"{name} must be a non-empty ticker string")
    return ticker.strip()


def resolve_swap_symbol(context: NetworkContext, client_asset: str, dealer_asset: str) -> str:
    """
    Pick the supported ordering for a swap between two assets.

    ``{dealer}/{client}`` is preferred, then ``{client}/{dealer}``.

    Raises:
        UnsupportedMarket: If the dealer serves neither ordering
    """
    for symbol in (f"{dealer_asset}/{client_asset}", f"{client_asset}/{dealer_asset}"):
        if context.supports_pair(symbol):
            return symbol
    raise UnsupportedMarket(
        f"configured dealer unable to serve requested market "
        f"({dealer_asset}/{client_asset})",
        details={"pairs": list(context.pairs)},
    )


class QuoteClient:
    """Client for quote requests. One round trip per call, never retried."""

    def __init__(
        self,
        http_client: DealerHTTPClient,
        clock: Callable[[], float] = time.time,
        metrics: Optional[DealerMetrics] = None,
    ) -> None:
        """
        Initialize Quote Client.

        Args:
            http_client: Dealer HTTP client instance
            clock: Wall-clock source used for expiration checks
            metrics: Metrics sink, the process default when omitted
        """
        self.http_client = http_client
        self.clock = clock
        self.metrics = metrics or get_metrics()

    async def request_quote(
        self,
        context: NetworkContext,
        size: float,
        pair: str,
        side: Union[Side, str],
    ) -> Quote:
        """
        Request a quote for ``size`` units of ``pair`` on ``side``.

        Args:
            context: Initialized session snapshot
            size: Amount of the base asset, finite and positive
            pair: Supported pair such as ``"WETH/DAI"``
            side: ``bid`` or ``ask``

        Returns:
            Quote whose expiration is in the future

        Raises:
            InvalidInput: Malformed size or side
            UnsupportedMarket: Pair not served by the dealer
            QuoteRequestFailed: Dealer or transport failure
            QuoteExpired: Dealer returned an already-expired quote
        """
        size = validate_size(size)
        side = Side.parse(side)
        if not context.supports_pair(pair):
            raise UnsupportedMarket(
                f"unsupported token pair {pair!r} (see .pairs)",
                details={"pairs": list(context.pairs)},
            )

        params = {
            "size": size,
            "symbol": pair,
            "side": side.value,
            "taker": context.taker,
        }
        return await self._fetch("quote", params, symbol=pair, side=side, kind="direct")

    async def request_swap_quote(
        self,
        context: NetworkContext,
        size: float,
        client_asset: str,
        dealer_asset: str,
    ) -> Quote:
        """
        Request a quote to swap ``size`` of ``client_asset`` for ``dealer_asset``.

        The request still settles as a bid/ask on a listed pair, so 100 DAI
        can be swapped for WETH when only ``WETH/DAI`` is listed. No price
        computation happens client-side.

        Raises:
            InvalidInput: Malformed size or tickers
            UnsupportedMarket: Neither pair ordering is served
            QuoteRequestFailed: Dealer or transport failure
            QuoteExpired: Dealer returned an already-expired quote
        """
        size = validate_size(size)
        client_asset = validate_ticker(client_asset, "client_asset")
        dealer_asset = validate_ticker(dealer_asset, "dealer_asset")
        symbol = resolve_swap_symbol(context, client_asset, dealer_asset)

        params = {
            "size": size,
            "dealerAsset": dealer_asset,
            "clientAsset": client_asset,
            "taker": context.taker,
        }
        return await self._fetch("swap", params, symbol=symbol, side=None, kind="swap")

    async def _fetch(
        self,
        endpoint: str,
        params: Dict[str, Any],
        *,
        symbol: str,
        side: Optional[Side],
        kind: str,
    ) -> Quote:
        started = time.monotonic()
        try:
            response = await self.http_client.get(endpoint, params=params)
        except (DealerHTTPError, DealerTransportError) as e:
            self.metrics.quotes_total.labels(symbol=symbol, kind=kind, status="failed").inc()
            logger.warning(
                "Quote request failed",
                extra={"event": "quote.failed", "symbol": symbol, "error": str(e)},
            )
            raise QuoteRequestFailed(f"failed to fetch {kind} quote for {symbol}: {e}") from e
        finally:
            self.metrics.quote_latency.observe(time.monotonic() - started)

        if not isinstance(response, dict):
            self.metrics.quotes_total.labels(symbol=symbol, kind=kind, status="malformed").inc()
            raise QuoteRequestFailed(f"dealer returned a malformed {kind} quote")
        try:
            quote = Quote.from_response(response, symbol=symbol, side=side)
        except InvalidInput as e:
            self.metrics.quotes_total.labels(symbol=symbol, kind=kind, status="malformed").inc()
            raise QuoteRequestFailed(f"dealer returned a malformed {kind} quote: {e}") from e

        now = self.clock()
        if quote.is_expired(now):
            self.metrics.quotes_total.labels(symbol=symbol, kind=kind, status="expired").inc()
            raise QuoteExpired(
                f"dealer returned quote {quote.id} already expired",
                expiration=quote.expiration,
                now=now,
            )

        self.metrics.quotes_total.labels(symbol=symbol, kind=kind, status="ok").inc()
        logger.info(
            "Quote received",
            extra={
                "event": "quote.received",
                "quote_id": quote.id,
                "symbol": symbol,
                "kind": kind,
                "size": quote.size,
                "price": quote.price,
                "expiration": quote.expiration,
            },
        )
        return quote
