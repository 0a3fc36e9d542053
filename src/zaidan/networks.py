"""
0x contract addresses for the chains the dealer client knows about.
"""

from typing import Dict, Optional

from eth_utils import to_checksum_address

from .exceptions import UnsupportedNetwork
from .models import NetworkContracts, ProtocolVersion

NETWORK_NAMES: Dict[int, str] = {
    1: "mainnet",
    3: "ropsten",
    4: "rinkeby",
    42: "kovan",
    1337: "ganache",
    50: "ganache",
}

ERC20_PROXIES: Dict[int, str] = {
    1: "0x95e6f48254609a6ee006f7d493c8e5fb97094cef",
    3: "0xb1408f4c245a23c31b98d2c626777d4c0d766caa",
    4: "0x2f5ae4f6106e89b4147651688a92256885c5f410",
    42: "0xf1ec01d6236d3cd881a0bf0130ea25fe4234003e",
    50: "0x1dc4c1cefef38a777b15aa20260a54e584b16c48",
    1337: "0x1dc4c1cefef38a777b15aa20260a54e584b16c48",
}

# The ganache snapshot reports network id 50 and chain id 1337 for one deployment
EXCHANGES: Dict[ProtocolVersion, Dict[int, str]] = {
    ProtocolVersion.V2: {
        1: "0x080bf510fcbf18b91105470639e9561022937712",
        3: "0xbff9493f92a3df4b0429b6d00743b3cfb4c85831",
        4: "0xbff9493f92a3df4b0429b6d00743b3cfb4c85831",
        42: "0x30589010550762d2f0d06f650d8e8b6ade6dbf4b",
        50: "0x48bacb9266a570d521063ef5dd96e61686dbe788",
        1337: "0x48bacb9266a570d521063ef5dd96e61686dbe788",
    },
    ProtocolVersion.V3: {
        1: "0x61935cbdd02287b511119ddb11aeb42f1593b7ef",
        3: "0xfb2dd2a1366de37f7241c83d47da58fd503e2c64",
        4: "0x198805e9682fceec29413059b68550f92868c129",
        42: "0x4eacd0af335451709e1e7b570b8ea68edec8bc97",
        50: "0x48bacb9266a570d521063ef5dd96e61686dbe788",
        1337: "0x48bacb9266a570d521063ef5dd96e61686dbe788",
    },
}


def resolve_contracts(
    chain_id: int,
    protocol_version: ProtocolVersion = ProtocolVersion.V2,
    exchange_address: Optional[str] = None,
    erc20_proxy_address: Optional[str] = None,
) -> NetworkContracts:
    """
    Return the 0x contract addresses for ``chain_id``.

    Explicit addresses take precedence over the built-in table, which lets
    the client run against private deployments.

    Raises:
        UnsupportedNetwork: If the chain is unknown and no override is given
    """
    if exchange_address and erc20_proxy_address:
        return NetworkContracts(
            exchange=to_checksum_address(exchange_address),
            erc20_proxy=to_checksum_address(erc20_proxy_address),
        )
    exchange = EXCHANGES[protocol_version].get(chain_id)
    proxy = ERC20_PROXIES.get(chain_id)
    if exchange is None or proxy is None:
        raise UnsupportedNetwork(
            f"no 0x v{int(protocol_version)} contract addresses known "
            f"for network {chain_id}",
            chain_id=chain_id,
        )
    return NetworkContracts(
        exchange=to_checksum_address(exchange),
        erc20_proxy=to_checksum_address(proxy),
    )


def network_name(chain_id: int) -> str:
    return NETWORK_NAMES.get(chain_id, f"chain-{chain_id}")
