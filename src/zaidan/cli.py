#!/usr/bin/env python3
"""Zaidan dealer CLI - quote, settle and track trades from the terminal."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import DealerClientConfig
from .dealer_client import DealerClient
from .exceptions import ZaidanError
from .http_client import DealerHTTPClient
from .logging_config import setup_logging
from .models import Quote
from .session import load_assets, load_markets

logger = logging.getLogger(__name__)
console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    cause = exc.__cause__
    while cause is not None:
        console.print(f"  [red]caused by:[/] {cause}")
        cause = cause.__cause__
    sys.exit(exit_code)


def _run(ctx: click.Context, action: Callable[[DealerClient], Awaitable[Any]]) -> Any:
    """Run ``action`` against an initialized client on a fresh event loop."""
    config: DealerClientConfig = ctx.obj["config"]

    async def runner():
        async with DealerClient(config, confirm=ctx.obj["confirm"]) as client:
            await client.init()
            return await action(client)

    try:
        return asyncio.run(runner())
    except ZaidanError as exc:
        _cli_fail(exc)


def _emit(ctx: click.Context, data: Any) -> bool:
    """Print JSON when requested; return True if the caller should stop."""
    if ctx.obj["json_output"]:
        click.echo(json.dumps(data, indent=2, default=str))
        return True
    return False


def _quote_dict(quote: Quote) -> dict:
    return {
        "id": quote.id,
        "symbol": quote.symbol,
        "side": quote.side.value if quote.side else None,
        "size": quote.size,
        "price": quote.price,
        "fee": quote.fee,
        "expiration": quote.expiration,
        "order": quote.order.to_dict(),
    }


def _print_quote(quote: Quote) -> None:
    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Quote ID", quote.id)
    table.add_row("[bold cyan]Market", quote.symbol)
    if quote.side:
        table.add_row("[bold cyan]Side", quote.side.value)
    table.add_row("[bold green]Size", f"{quote.size}")
    table.add_row("[bold green]Price", f"{quote.price}")
    table.add_row("[bold yellow]Fee", f"{quote.fee}")
    table.add_row("[bold yellow]Expires", f"{quote.expiration:.0f}")
    console.print(Panel(table, title="[bold green]Dealer Quote", border_style="green"))


@click.group()
@click.option("--dealer-url", envvar="ZAIDAN_DEALER_URL", help="Dealer server URL")
@click.option("--web3-url", envvar="ZAIDAN_WEB3_URL", help="Ethereum JSON-RPC URL")
@click.option("--gas-price", type=float, help="Gas price in gwei for allowance transactions")
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option("--yes", "-y", is_flag=True, help="Do not prompt before signing")
@click.option("--log-level", default=None, help="Logging level (default from ZAIDAN_LOG_LEVEL)")
@click.pass_context
def cli(
    ctx: click.Context,
    dealer_url: Optional[str],
    web3_url: Optional[str],
    gas_price: Optional[float],
    json_output: bool,
    yes: bool,
    log_level: Optional[str],
):
    """
    Zaidan dealer client.

    Request price quotes from a dealer server and settle them on-chain
    as signed 0x fill transactions.
    """
    ctx.ensure_object(dict)
    try:
        config = DealerClientConfig.from_env(
            dealer_url=dealer_url,
            web3_url=web3_url,
            gas_price_gwei=gas_price,
            log_level=log_level,
        )
    except ZaidanError as exc:
        _cli_fail(exc)
    setup_logging("zaidan", level=config.log_level, environment=config.environment)

    def confirm(prompt: str) -> bool:
        return click.confirm(prompt, default=True)

    ctx.obj["config"] = config
    ctx.obj["json_output"] = json_output
    ctx.obj["confirm"] = None if yes else confirm


@cli.command("markets")
@click.pass_context
def markets(ctx: click.Context):
    """List the pairs the dealer quotes."""
    config: DealerClientConfig = ctx.obj["config"]

    async def fetch():
        async with DealerHTTPClient(config.dealer_url, config.api_version, config.http_timeout) as http:
            return await load_markets(http)

    try:
        pairs = asyncio.run(fetch())
    except ZaidanError as exc:
        _cli_fail(exc)

    if _emit(ctx, list(pairs)):
        return
    table = Table(title="Supported Markets", box=box.ROUNDED)
    table.add_column("Pair", style="cyan")
    for pair in pairs:
        table.add_row(pair)
    console.print(table)


@cli.command("assets")
@click.pass_context
def assets(ctx: click.Context):
    """List supported tickers and their token addresses."""
    config: DealerClientConfig = ctx.obj["config"]

    async def fetch():
        async with DealerHTTPClient(config.dealer_url, config.api_version, config.http_timeout) as http:
            return await load_assets(http)

    try:
        tokens = asyncio.run(fetch())
    except ZaidanError as exc:
        _cli_fail(exc)

    if _emit(ctx, tokens):
        return
    table = Table(title="Supported Assets", box=box.ROUNDED)
    table.add_column("Ticker", style="cyan")
    table.add_column("Address", style="green")
    for ticker, address in tokens.items():
        table.add_row(ticker, address)
    console.print(table)


@cli.command("authorized")
@click.argument("address", required=False)
@click.pass_context
def authorized(ctx: click.Context, address: Optional[str]):
    """Check whether ADDRESS (the taker by default) may trade."""
    status = _run(ctx, lambda client: client.is_authorized(address))
    if _emit(ctx, {"authorized": status.authorized, "reason": status.reason}):
        return
    if status.authorized:
        console.print("[bold green]Authorized[/]")
    else:
        console.print(f"[bold red]Not authorized[/] {status.reason or ''}")


@cli.command("quote")
@click.argument("size", type=float)
@click.argument("pair")
@click.argument("side", type=click.Choice(["bid", "ask"]))
@click.pass_context
def quote(ctx: click.Context, size: float, pair: str, side: str):
    """Request a quote. Example: zaidan quote 2 WETH/DAI bid"""
    result = _run(ctx, lambda client: client.get_quote(size, pair, side))
    if _emit(ctx, _quote_dict(result)):
        return
    _print_quote(result)


@cli.command("swap-quote")
@click.argument("size", type=float)
@click.argument("client_asset")
@click.argument("dealer_asset")
@click.pass_context
def swap_quote(ctx: click.Context, size: float, client_asset: str, dealer_asset: str):
    """Quote a swap of SIZE CLIENT_ASSET for DEALER_ASSET. Example: zaidan swap-quote 100 DAI WETH"""
    result = _run(ctx, lambda client: client.get_swap_quote(size, client_asset, dealer_asset))
    if _emit(ctx, _quote_dict(result)):
        return
    _print_quote(result)


@cli.command("allowance")
@click.argument("ticker")
@click.pass_context
def allowance(ctx: click.Context, ticker: str):
    """Check whether an unlimited allowance is set for TICKER."""
    ok = _run(ctx, lambda client: client.has_allowance(ticker))
    if _emit(ctx, {"ticker": ticker, "allowance": ok}):
        return
    if ok:
        console.print(f"[bold green]{ticker} allowance is set[/]")
    else:
        console.print(f"[bold yellow]{ticker} allowance is not set[/] (run: zaidan approve {ticker})")


@cli.command("approve")
@click.argument("ticker")
@click.pass_context
def approve(ctx: click.Context, ticker: str):
    """Grant the 0x ERC20 proxy an unlimited allowance for TICKER."""

    async def action(client: DealerClient):
        with console.status(f"[bold cyan]Waiting for {ticker} approval to be mined..."):
            return await client.set_allowance(ticker)

    result = _run(ctx, action)
    if _emit(ctx, {"tx_id": result.tx_id, "outcome": result.outcome.value}):
        return
    console.print(f"[bold green]Allowance set[/] in block {result.block_number} ({result.tx_id})")


@cli.command("balance")
@click.argument("ticker")
@click.pass_context
def balance(ctx: click.Context, ticker: str):
    """Show the taker's TICKER balance in base units."""
    amount = _run(ctx, lambda client: client.get_balance(ticker))
    if _emit(ctx, {"ticker": ticker, "balance": str(amount)}):
        return
    console.print(f"[bold cyan]{ticker}[/] {amount}")


@cli.command("trade")
@click.argument("size", type=float)
@click.argument("pair")
@click.argument("side", type=click.Choice(["bid", "ask"]))
@click.option("--approve", "ensure_allowance", is_flag=True, help="Set a missing allowance first")
@click.option("--no-wait", is_flag=True, help="Return once the dealer accepted the trade")
@click.pass_context
def trade(ctx: click.Context, size: float, pair: str, side: str, ensure_allowance: bool, no_wait: bool):
    """Quote, sign, submit and confirm a trade. Example: zaidan trade 2 WETH/DAI bid"""

    async def action(client: DealerClient):
        fresh = await client.get_quote(size, pair, side)
        if not ctx.obj["json_output"]:
            _print_quote(fresh)
        with console.status("[bold cyan]Settling trade..."):
            return await client.execute_trade(
                fresh, ensure_allowance=ensure_allowance, wait=not no_wait
            )

    result = _run(ctx, action)
    outcome = result.confirmation.outcome.value if result.confirmation else "pending"
    if _emit(ctx, {"quote_id": result.quote.id, "tx_id": result.record.tx_id, "outcome": outcome}):
        return
    style = "green" if outcome in ("success", "pending") else "red"
    console.print(f"[bold {style}]Trade {outcome}[/] {result.record.tx_id}")


@cli.command("wait")
@click.argument("tx_id")
@click.option("--timeout", type=float, default=None, help="Give up after this many seconds")
@click.pass_context
def wait(ctx: click.Context, tx_id: str, timeout: Optional[float]):
    """Wait for TX_ID to be mined and report its outcome."""

    async def action(client: DealerClient):
        return await asyncio.wait_for(client.wait_for_transaction(tx_id), timeout)

    try:
        result = _run(ctx, action)
    except asyncio.TimeoutError:
        _cli_fail(click.ClickException(f"transaction {tx_id} not mined after {timeout}s"))
    if _emit(ctx, {"tx_id": tx_id, "outcome": result.outcome.value, "block": result.block_number}):
        return
    style = "green" if result.succeeded else "red"
    console.print(f"[bold {style}]{result.outcome.value}[/] in block {result.block_number}")


def main():
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
