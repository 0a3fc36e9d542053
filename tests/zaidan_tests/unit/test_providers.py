"""
Tests for signing providers.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from eth_account.messages import encode_defunct
from eth_account import Account
from eth_utils import keccak, to_hex

from factories import DAI, GAS_PRICE, TX_ID
from zaidan.config import DealerClientConfig
from zaidan.exceptions import ConfigurationError, NodeUnavailable, SigningDeclined, SigningFailed
from zaidan.providers import InteractiveWallet, RemoteNode, _normalize_signature, call_node, create_provider

MESSAGE_HASH = keccak(text="fill transaction")


def resolved(value):
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


class TestNormalizeSignature:
    def test_recovery_id_shifted(self):
        assert _normalize_signature(b"\x01" * 64 + b"\x00")[64] == 27
        assert _normalize_signature(b"\x01" * 64 + b"\x01")[64] == 28

    def test_canonical_v_kept(self):
        signature = b"\x01" * 64 + bytes([28])
        assert _normalize_signature(signature) == signature

    def test_wrong_length(self):
        with pytest.raises(SigningFailed, match="65-byte"):
            _normalize_signature(b"\x01" * 64)

    def test_invalid_recovery_id(self):
        with pytest.raises(SigningFailed, match="recovery id"):
            _normalize_signature(b"\x01" * 64 + bytes([35]))


class TestCallNode:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        assert await call_node("read chain id", AsyncMock(return_value=1)()) == 1

    @pytest.mark.asyncio
    async def test_wraps_node_errors(self):
        error = ConnectionError("connection refused")

        with pytest.raises(NodeUnavailable, match="read chain id") as exc_info:
            await call_node("read chain id", AsyncMock(side_effect=error)())

        assert exc_info.value.__cause__ is error
        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_client_errors_pass_through(self):
        with pytest.raises(SigningDeclined):
            await call_node("send approval", AsyncMock(side_effect=SigningDeclined("no"))())


class TestInteractiveWallet:
    """Tests for the local-key provider."""

    @pytest.mark.asyncio
    async def test_signature_recovers_to_account(self, wallet, account):
        signature = await wallet.sign_hash(account.address, MESSAGE_HASH)

        assert len(signature) == 65
        recovered = Account.recover_message(encode_defunct(primitive=MESSAGE_HASH), signature=signature)
        assert recovered == account.address

    @pytest.mark.asyncio
    async def test_refuses_foreign_address(self, wallet):
        with pytest.raises(SigningFailed, match="cannot sign"):
            await wallet.sign_hash(DAI, MESSAGE_HASH)

    @pytest.mark.asyncio
    async def test_declined_signature(self, web3, account):
        confirm = Mock(return_value=False)
        wallet = InteractiveWallet(web3, account, confirm=confirm)

        with pytest.raises(SigningDeclined):
            await wallet.sign_hash(account.address, MESSAGE_HASH)
        assert to_hex(MESSAGE_HASH) in confirm.call_args[0][0]

    @pytest.mark.asyncio
    async def test_send_transaction_signs_locally(self, web3, account):
        web3.eth.get_transaction_count = AsyncMock(return_value=7)
        web3.eth.send_raw_transaction = AsyncMock(return_value=bytes.fromhex(TX_ID[2:]))
        wallet = InteractiveWallet(web3, account)

        tx_id = await wallet.send_transaction({
            "from": account.address,
            "to": DAI,
            "data": "0x095ea7b3",
            "value": 0,
            "gas": 60000,
            "gasPrice": GAS_PRICE,
            "chainId": 1,
        })

        assert tx_id == TX_ID
        web3.eth.get_transaction_count.assert_awaited_once_with(account.address, "pending")
        raw = web3.eth.send_raw_transaction.call_args[0][0]
        assert Account.recover_transaction(raw) == account.address

    @pytest.mark.asyncio
    async def test_declined_transaction_not_sent(self, web3, account):
        web3.eth.send_raw_transaction = AsyncMock()
        wallet = InteractiveWallet(web3, account, confirm=AsyncMock(return_value=False))

        with pytest.raises(SigningDeclined):
            await wallet.send_transaction({"to": DAI, "data": "0x"})
        web3.eth.send_raw_transaction.assert_not_called()

    def test_from_key_rejects_bad_key(self, web3):
        with pytest.raises(ConfigurationError, match="private key"):
            InteractiveWallet.from_key(web3, "0x1234")

    @pytest.mark.asyncio
    async def test_address(self, wallet, account):
        assert await wallet.get_address() == account.address


class TestRemoteNode:
    """Tests for the node-managed provider."""

    @pytest.mark.asyncio
    async def test_first_node_account(self, web3):
        web3.eth.accounts = resolved([DAI.lower(), "0x0000000000000000000000000000000000000001"])
        node = RemoteNode(web3)

        assert await node.get_address() == DAI

    @pytest.mark.asyncio
    async def test_no_accounts(self, web3):
        web3.eth.accounts = resolved([])

        with pytest.raises(ConfigurationError, match="no unlocked accounts"):
            await RemoteNode(web3).get_address()

    @pytest.mark.asyncio
    async def test_node_signs_hash(self, web3):
        web3.eth.sign = AsyncMock(return_value=b"\x01" * 64 + b"\x00")
        node = RemoteNode(web3, account=DAI)

        signature = await node.sign_hash(DAI, MESSAGE_HASH)

        assert signature[64] == 27
        web3.eth.sign.assert_awaited_once_with(DAI, hexstr=to_hex(MESSAGE_HASH))

    @pytest.mark.asyncio
    async def test_send_transaction(self, web3):
        web3.eth.send_transaction = AsyncMock(return_value=bytes.fromhex(TX_ID[2:]))

        assert await RemoteNode(web3).send_transaction({"to": DAI}) == TX_ID

    @pytest.mark.asyncio
    async def test_chain_id_and_gas_price(self, web3):
        web3.eth.chain_id = resolved(42)
        web3.eth.gas_price = resolved(GAS_PRICE)
        node = RemoteNode(web3)

        assert await node.get_chain_id() == 42
        assert await node.get_gas_price() == GAS_PRICE


class TestCreateProvider:
    def test_requires_web3_url(self):
        with pytest.raises(ConfigurationError, match="WEB3_URL"):
            create_provider(DealerClientConfig(dealer_url="http://dealer.test"))

    def test_private_key_selects_wallet(self, account):
        config = DealerClientConfig(
            dealer_url="http://dealer.test",
            web3_url="http://localhost:8545",
            private_key="0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318",
        )
        provider = create_provider(config)

        assert isinstance(provider, InteractiveWallet)
        assert provider.account.address == account.address

    def test_node_by_default(self):
        config = DealerClientConfig(dealer_url="http://dealer.test", web3_url="http://localhost:8545")
        assert isinstance(create_provider(config), RemoteNode)
