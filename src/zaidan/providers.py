"""
Signing providers.

Downstream code signs and sends through the ``SigningProvider`` capability
and never branches on which variant it holds:

- ``InteractiveWallet``: a local key held by the user, optionally gated by a
  confirmation prompt before every signature or transaction.
- ``RemoteNode``: an account unlocked on the Ethereum node; the node signs.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address, to_hex
from web3 import AsyncWeb3
from web3.types import TxParams

from .config import DealerClientConfig
from .exceptions import ConfigurationError, NodeUnavailable, SigningDeclined, SigningFailed, ZaidanError

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]


def _normalize_signature(signature: bytes) -> bytes:
    """Return a 65-byte ``r || s || v`` signature with ``v`` in {27, 28}."""
    if len(signature) != 65:
        raise SigningFailed(f"expected 65-byte signature, got {len(signature)} bytes")
    v = signature[64]
    if v < 27:
        v += 27
    if v not in (27, 28):
        raise SigningFailed(f"invalid signature recovery id {signature[64]}")
    return bytes(signature[:64]) + bytes([v])


async def call_node(what: str, awaitable: Awaitable[Any]) -> Any:
    """Await a node call, raising NodeUnavailable for anything but our own errors."""
    try:
        return await awaitable
    except ZaidanError:
        raise
    except Exception as e:
        logger.warning(
            "Node call failed",
            extra={"event": "node.failed", "call": what, "error": str(e)},
        )
        raise NodeUnavailable(f"failed to {what}: {e}") from e


class SigningProvider(ABC):
    """Capability to identify the taker, sign hashes and send transactions."""

    kind = "abstract"

    def __init__(self, web3: AsyncWeb3) -> None:
        self.web3 = web3

    @abstractmethod
    async def get_address(self) -> str:
        """Checksum address of the signing account."""

    @abstractmethod
    async def sign_hash(self, address: str, message_hash: bytes) -> bytes:
        """
        Produce an eth_sign signature over a 32-byte hash.

        Returns:
            65 bytes, ``r || s || v`` with ``v`` in {27, 28}
        """

    @abstractmethod
    async def send_transaction(self, tx: TxParams) -> str:
        """Broadcast a transaction from the signing account, return its hash."""

    async def get_chain_id(self) -> int:
        return int(await self.web3.eth.chain_id)

    async def get_gas_price(self) -> int:
        return int(await self.web3.eth.gas_price)


class RemoteNode(SigningProvider):
    """Provider whose account is managed and unlocked by the Ethereum node."""

    kind = "remote_node"

    def __init__(self, web3: AsyncWeb3, account: Optional[str] = None) -> None:
        super().__init__(web3)
        self._account = to_checksum_address(account) if account else None

    async def get_address(self) -> str:
        if self._account is None:
            accounts = await self.web3.eth.accounts
            if not accounts:
                raise ConfigurationError("Ethereum node exposes no unlocked accounts")
            self._account = to_checksum_address(accounts[0])
        return self._account

    async def sign_hash(self, address: str, message_hash: bytes) -> bytes:
        signature = await self.web3.eth.sign(address, hexstr=to_hex(message_hash))
        return _normalize_signature(bytes(signature))

    async def send_transaction(self, tx: TxParams) -> str:
        tx_hash = await self.web3.eth.send_transaction(tx)
        return to_hex(tx_hash)


class InteractiveWallet(SigningProvider):
    """
    Provider holding a local key.

    ``confirm`` is called with a human-readable prompt before every
    signature and transaction; returning a falsy value declines.
    """

    kind = "interactive_wallet"

    def __init__(
        self,
        web3: AsyncWeb3,
        account: LocalAccount,
        confirm: Optional[ConfirmCallback] = None,
    ) -> None:
        super().__init__(web3)
        self.account = account
        self.confirm = confirm

    @classmethod
    def from_key(
        cls,
        web3: AsyncWeb3,
        private_key: str,
        confirm: Optional[ConfirmCallback] = None,
    ) -> "InteractiveWallet":
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("invalid private key for interactive wallet") from e
        return cls(web3, account, confirm=confirm)

    async def _require_confirmation(self, prompt: str) -> None:
        if self.confirm is None:
            return
        answer = self.confirm(prompt)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.info("User declined wallet prompt", extra={"event": "wallet.declined"})
            raise SigningDeclined("user declined to sign")

    async def get_address(self) -> str:
        return self.account.address

    async def sign_hash(self, address: str, message_hash: bytes) -> bytes:
        if address.lower() != self.account.address.lower():
            raise SigningFailed(
                f"wallet holds {self.account.address}, cannot sign for {address}"
            )
        await self._require_confirmation(f"Sign fill transaction {to_hex(message_hash)}?")
        signed = self.account.sign_message(encode_defunct(primitive=message_hash))
        return _normalize_signature(bytes(signed.signature))

    async def send_transaction(self, tx: TxParams) -> str:
        await self._require_confirmation(
            f"Send transaction to {tx.get('to')} from {self.account.address}?"
        )
        tx = dict(tx)
        tx["from"] = self.account.address
        if "nonce" not in tx:
            tx["nonce"] = await self.web3.eth.get_transaction_count(
                self.account.address, "pending"
            )
        if "chainId" not in tx:
            tx["chainId"] = await self.web3.eth.chain_id
        if "gas" not in tx:
            tx["gas"] = await self.web3.eth.estimate_gas(tx)
        tx.pop("from")
        signed = self.account.sign_transaction(tx)
        tx_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
        return to_hex(tx_hash)


def create_provider(
    config: DealerClientConfig,
    confirm: Optional[ConfirmCallback] = None,
) -> SigningProvider:
    """
    Build the provider selected by ``config``.

    A configured private key selects ``InteractiveWallet``; otherwise the
    node at ``web3_url`` signs as ``RemoteNode``.
    """
    if not config.web3_url:
        raise ConfigurationError(
            "ZAIDAN_WEB3_URL (or web3_url) is required to reach an Ethereum node"
        )
    web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.web3_url))
    if config.private_key:
        return InteractiveWallet.from_key(web3, config.private_key, confirm=confirm)
    return RemoteNode(web3)
