"""
Tests for AllowanceClient.
"""

from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest
from web3.exceptions import Web3Exception

from factories import DAI, GAS_PRICE, TX_ID, make_context
from zaidan.clients.allowance_client import (
    ALLOWANCE_THRESHOLD,
    MAX_ALLOWANCE,
    AllowanceClient,
    is_sufficient,
)
from zaidan.exceptions import AllowanceInsufficient, NodeUnavailable, SigningDeclined, UnsupportedMarket
from zaidan.models import ConfirmationResult, TransactionOutcome


@pytest.fixture
def token():
    """ERC20 contract whose calls resolve to configurable values."""
    contract = Mock()
    contract.functions.allowance.return_value.call = AsyncMock(return_value=0)
    contract.functions.balanceOf.return_value.call = AsyncMock(return_value=0)
    contract.functions.approve.return_value.build_transaction = AsyncMock(
        return_value={"to": DAI, "data": "0x095ea7b3", "gasPrice": GAS_PRICE, "value": 0}
    )
    return contract


@pytest.fixture
def provider(token):
    provider = Mock()
    provider.web3.eth.contract.return_value = token
    provider.send_transaction = AsyncMock(return_value=TX_ID)
    return provider


@pytest.fixture
def allowance_context(provider, account):
    return make_context(provider, account.address)


def make_waiter(outcome=TransactionOutcome.SUCCESS):
    waiter = Mock()
    waiter.wait = AsyncMock(return_value=ConfirmationResult(TX_ID, outcome, block_number=1))
    return waiter


class TestThreshold:
    def test_unlimited_allowance_is_sufficient(self):
        assert is_sufficient(MAX_ALLOWANCE)

    def test_partially_spent_unlimited_allowance_is_sufficient(self):
        assert is_sufficient(MAX_ALLOWANCE - 10**24)

    def test_threshold_is_exclusive(self):
        assert not is_sufficient(ALLOWANCE_THRESHOLD)
        assert is_sufficient(ALLOWANCE_THRESHOLD + 1)

    def test_ordinary_allowance_is_not_sufficient(self):
        assert not is_sufficient(10**30)


class TestHasAllowance:
    """Tests for allowance checks."""

    @pytest.mark.asyncio
    async def test_zero_allowance(self, allowance_context):
        assert await AllowanceClient().has_allowance(allowance_context, "DAI") is False

    @pytest.mark.asyncio
    async def test_reads_allowance_for_proxy(self, allowance_context, token, provider):
        token.functions.allowance.return_value.call.return_value = MAX_ALLOWANCE

        assert await AllowanceClient().has_allowance(allowance_context, "DAI") is True

        provider.web3.eth.contract.assert_called_once()
        assert provider.web3.eth.contract.call_args[1]["address"] == DAI
        token.functions.allowance.assert_called_once_with(
            allowance_context.taker, allowance_context.contracts.erc20_proxy
        )

    @pytest.mark.asyncio
    async def test_unknown_ticker(self, allowance_context, provider):
        with pytest.raises(UnsupportedMarket, match="ZRX"):
            await AllowanceClient().has_allowance(allowance_context, "ZRX")
        provider.web3.eth.contract.assert_not_called()

    @pytest.mark.asyncio
    async def test_allowance_state(self, allowance_context, token):
        token.functions.allowance.return_value.call.return_value = 5

        state = await AllowanceClient().get_allowance_state(allowance_context, "DAI")

        assert state.allowance == 5
        assert state.sufficient is False
        assert state.spender == allowance_context.contracts.erc20_proxy


class TestSetAllowance:
    """Tests for granting the unlimited allowance."""

    @pytest.mark.asyncio
    async def test_grants_max_and_waits(self, allowance_context, token, provider):
        waiter = make_waiter()

        result = await AllowanceClient().set_allowance(allowance_context, "DAI", waiter=waiter)

        assert result.succeeded
        token.functions.approve.assert_called_once_with(
            allowance_context.contracts.erc20_proxy, MAX_ALLOWANCE
        )
        build_args = token.functions.approve.return_value.build_transaction.call_args[0][0]
        assert build_args == {"from": allowance_context.taker, "gasPrice": GAS_PRICE}
        provider.send_transaction.assert_awaited_once()
        waiter.wait.assert_awaited_once_with(TX_ID)

    @pytest.mark.asyncio
    async def test_allowance_sufficient_after_set(self, allowance_context, token):
        token.functions.allowance.return_value.call.side_effect = [0, MAX_ALLOWANCE]
        client = AllowanceClient()

        assert await client.has_allowance(allowance_context, "DAI") is False
        await client.set_allowance(allowance_context, "DAI", waiter=make_waiter())
        assert await client.has_allowance(allowance_context, "DAI") is True

    @pytest.mark.asyncio
    async def test_reverted_approval(self, allowance_context):
        with pytest.raises(AllowanceInsufficient) as exc_info:
            await AllowanceClient().set_allowance(
                allowance_context, "DAI", waiter=make_waiter(TransactionOutcome.REVERTED)
            )
        assert exc_info.value.asset == "DAI"
        assert exc_info.value.details["tx_id"] == TX_ID

    @pytest.mark.asyncio
    async def test_waiter_factory_used_by_default(self, allowance_context, provider):
        waiter = make_waiter()
        factory = Mock(return_value=waiter)

        await AllowanceClient(waiter_factory=factory).set_allowance(allowance_context, "DAI")

        factory.assert_called_once_with(provider.web3)
        waiter.wait.assert_awaited_once()


class TestGetBalance:
    @pytest.mark.asyncio
    async def test_returns_base_units(self, allowance_context, token):
        token.functions.balanceOf.return_value.call.return_value = 3 * 10**18

        assert await AllowanceClient().get_balance(allowance_context, "DAI") == 3 * 10**18
        token.functions.balanceOf.assert_called_once_with(allowance_context.taker)


class TestNodeFailures:
    """Node errors surface as typed client errors with the cause chained."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [ConnectionError("node down"), aiohttp.ClientConnectionError("reset"), Web3Exception("rpc")],
    )
    async def test_allowance_read(self, allowance_context, token, error):
        token.functions.allowance.return_value.call.side_effect = error

        with pytest.raises(NodeUnavailable) as exc_info:
            await AllowanceClient().has_allowance(allowance_context, "DAI")

        assert exc_info.value.recoverable is True
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_balance_read(self, allowance_context, token):
        token.functions.balanceOf.return_value.call.side_effect = TimeoutError()

        with pytest.raises(NodeUnavailable, match="DAI balance"):
            await AllowanceClient().get_balance(allowance_context, "DAI")

    @pytest.mark.asyncio
    async def test_approval_build_fails(self, allowance_context, token, provider):
        token.functions.approve.return_value.build_transaction.side_effect = ValueError("gas required exceeds")

        with pytest.raises(AllowanceInsufficient) as exc_info:
            await AllowanceClient().set_allowance(allowance_context, "DAI", waiter=make_waiter())

        assert exc_info.value.asset == "DAI"
        assert isinstance(exc_info.value.__cause__, NodeUnavailable)
        provider.send_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_approval_send_fails(self, allowance_context, provider):
        provider.send_transaction.side_effect = ConnectionError("node down")
        waiter = make_waiter()

        with pytest.raises(AllowanceInsufficient, match="not sent"):
            await AllowanceClient().set_allowance(allowance_context, "DAI", waiter=waiter)
        waiter.wait.assert_not_called()

    @pytest.mark.asyncio
    async def test_declined_approval_passes_through(self, allowance_context, provider):
        provider.send_transaction.side_effect = SigningDeclined("user declined")

        with pytest.raises(SigningDeclined):
            await AllowanceClient().set_allowance(allowance_context, "DAI", waiter=make_waiter())
