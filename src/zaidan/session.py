"""
Session initialization.

Builds the immutable ``NetworkContext`` every protocol operation runs
against: chain, taker, gas price, dealer markets and assets, and the 0x
contracts of the chain.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Optional, Tuple

from eth_utils import is_address, to_checksum_address

from .config import DealerClientConfig
from .exceptions import DealerHTTPError, IncompatibleDealer
from .http_client import DealerHTTPClient
from .models import AuthorizationStatus, NetworkContext, ProtocolVersion
from .networks import network_name, resolve_contracts
from .providers import SigningProvider, call_node

logger = logging.getLogger(__name__)


async def load_markets(http_client: DealerHTTPClient) -> Tuple[str, ...]:
    """
    Fetch the dealer's supported pairs.

    Raises:
        IncompatibleDealer: The versioned endpoint does not exist or the
            response is not a list of ``BASE/QUOTE`` strings
    """
    try:
        markets = await http_client.get("markets")
    except DealerHTTPError as e:
        if e.status == 404:
            raise IncompatibleDealer(
                f"dealer does not serve {http_client.base_url}",
                details={"status": e.status},
            ) from e
        raise

    if not isinstance(markets, list) or not all(
        isinstance(m, str) and m.count("/") == 1 for m in markets
    ):
        raise IncompatibleDealer("dealer returned a malformed markets list")
    return tuple(markets)


async def load_assets(http_client: DealerHTTPClient) -> Dict[str, str]:
    """Fetch the dealer's ticker -> token address mapping."""
    assets = await http_client.get("assets")
    if not isinstance(assets, dict):
        raise IncompatibleDealer("dealer returned a malformed assets mapping")

    tokens = {}
    for ticker, address in assets.items():
        if not isinstance(address, str) or not is_address(address):
            raise IncompatibleDealer(f"dealer returned an invalid address for {ticker}")
        tokens[ticker] = to_checksum_address(address)
    return tokens


async def check_authorized(http_client: DealerHTTPClient, address: str) -> AuthorizationStatus:
    """Ask the dealer whether ``address`` may trade."""
    response = await http_client.get("authorized", params={"address": address})
    if not isinstance(response, dict) or "authorized" not in response:
        raise IncompatibleDealer("dealer returned a malformed authorization response")
    return AuthorizationStatus(
        authorized=bool(response["authorized"]),
        reason=response.get("reason"),
    )


async def initialize_session(
    http_client: DealerHTTPClient,
    provider: SigningProvider,
    config: DealerClientConfig,
) -> NetworkContext:
    """
    Build the session snapshot.

    Raises:
        UnsupportedNetwork: No 0x contracts known for the provider's chain
        IncompatibleDealer: Dealer does not speak this client's API version
        DealerHTTPError, DealerTransportError: Markets or assets unavailable
        NodeUnavailable: The Ethereum node could not be queried
    """
    chain_id = await call_node("read chain id", provider.get_chain_id())
    protocol_version = ProtocolVersion.parse(config.protocol_version)
    contracts = resolve_contracts(
        chain_id,
        protocol_version,
        exchange_address=config.exchange_address,
        erc20_proxy_address=config.erc20_proxy_address,
    )
    taker = to_checksum_address(await call_node("read taker address", provider.get_address()))

    gas_price = config.gas_price_wei
    if gas_price is None:
        gas_price = await call_node("read gas price", provider.get_gas_price())

    pairs = await load_markets(http_client)
    tokens = await load_assets(http_client)

    context = NetworkContext(
        chain_id=chain_id,
        taker=taker,
        provider=provider,
        gas_price=gas_price,
        pairs=pairs,
        tokens=tokens,
        contracts=contracts,
        protocol_version=protocol_version,
    )
    logger.info(
        "Dealer session initialized",
        extra={
            "event": "session.initialized",
            "network": network_name(chain_id),
            "taker": taker,
            "provider": provider.kind,
            "pairs": len(pairs),
            "protocol_version": int(protocol_version),
        },
    )
    return context


async def refresh_session(
    context: NetworkContext,
    http_client: DealerHTTPClient,
    gas_price: Optional[int] = None,
) -> NetworkContext:
    """Return a new snapshot with fresh markets, assets and gas price."""
    if gas_price is None:
        gas_price = await call_node("read gas price", context.provider.get_gas_price())
    return dataclasses.replace(
        context,
        gas_price=gas_price,
        pairs=await load_markets(http_client),
        tokens=await load_assets(http_client),
    )
