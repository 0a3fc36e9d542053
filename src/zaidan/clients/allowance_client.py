"""
Allowance Client

Checks and grants ERC20 spending rights for the 0x ERC20 proxy, and reads
token balances.
"""

import logging
from typing import Optional

from eth_utils import to_checksum_address

from ..exceptions import AllowanceInsufficient, NodeUnavailable, UnsupportedMarket
from ..models import AllowanceState, ConfirmationResult, NetworkContext
from ..providers import call_node
from .confirmation import ConfirmationWaiter

logger = logging.getLogger(__name__)

# 2**256 - 1 is treated as an unlimited allowance
MAX_ALLOWANCE = 2**256 - 1

# An unlimited allowance that has been partially spent stays above this
ALLOWANCE_THRESHOLD = MAX_ALLOWANCE // 2

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def is_sufficient(allowance: int) -> bool:
    return allowance > ALLOWANCE_THRESHOLD


class AllowanceClient:
    """Client for ERC20 allowance and balance operations."""

    def __init__(self, waiter_factory=None) -> None:
        """
        Initialize Allowance Client.

        Args:
            waiter_factory: Callable ``web3 -> ConfirmationWaiter`` used to
                wait for approval transactions
        """
        self.waiter_factory = waiter_factory or ConfirmationWaiter

    def _token(self, context: NetworkContext, ticker: str):
        address = context.token_address(ticker)
        if not address:
            raise UnsupportedMarket(f"unsupported token ticker {ticker!r}")
        return context.provider.web3.eth.contract(
            address=to_checksum_address(address), abi=ERC20_ABI
        )

    async def get_allowance_state(self, context: NetworkContext, ticker: str) -> AllowanceState:
        """Read the taker's current allowance for the ERC20 proxy."""
        token = self._token(context, ticker)
        spender = context.contracts.erc20_proxy
        allowance = int(await call_node(
            f"read {ticker} allowance",
            token.functions.allowance(context.taker, spender).call(),
        ))
        return AllowanceState(
            owner=context.taker,
            asset=ticker,
            spender=spender,
            allowance=allowance,
            sufficient=is_sufficient(allowance),
        )

    async def has_allowance(self, context: NetworkContext, ticker: str) -> bool:
        """
        Check whether the taker granted an effectively unlimited allowance.

        A remaining allowance above half of ``MAX_ALLOWANCE`` means an
        unlimited allowance was set at some point; a merely non-zero one does
        not qualify.

        Raises:
            UnsupportedMarket: Unknown ticker
            NodeUnavailable: The allowance could not be read
        """
        state = await self.get_allowance_state(context, ticker)
        logger.debug(
            "Allowance checked",
            extra={
                "event": "allowance.checked",
                "asset": ticker,
                "sufficient": state.sufficient,
            },
        )
        return state.sufficient

    async def set_allowance(
        self,
        context: NetworkContext,
        ticker: str,
        waiter: Optional[ConfirmationWaiter] = None,
    ) -> ConfirmationResult:
        """
        Approve ``MAX_ALLOWANCE`` for the ERC20 proxy and wait until mined.

        Safe to call when an allowance already exists; it re-approves the
        same maximum.

        Raises:
            UnsupportedMarket: Unknown ticker
            AllowanceInsufficient: The approval transaction could not be sent
                or reverted
            SigningDeclined: The user declined the approval prompt
        """
        token = self._token(context, ticker)
        spender = context.contracts.erc20_proxy
        try:
            tx = await call_node(
                f"build {ticker} approval",
                token.functions.approve(spender, MAX_ALLOWANCE).build_transaction(
                    {"from": context.taker, "gasPrice": context.gas_price}
                ),
            )
            tx_id = await call_node(
                f"send {ticker} approval", context.provider.send_transaction(tx)
            )
        except NodeUnavailable as e:
            raise AllowanceInsufficient(
                f"allowance transaction for {ticker} was not sent: {e.message}",
                asset=ticker,
                recoverable=True,
            ) from e
        logger.info(
            "Allowance transaction sent",
            extra={"event": "allowance.sent", "asset": ticker, "tx_id": tx_id},
        )

        waiter = waiter or self.waiter_factory(context.provider.web3)
        result = await waiter.wait(tx_id)
        if not result.succeeded:
            raise AllowanceInsufficient(
                f"allowance transaction {tx_id} for {ticker} reverted",
                asset=ticker,
                details={"tx_id": tx_id},
            )
        return result

    async def get_balance(self, context: NetworkContext, ticker: str) -> int:
        """Return the taker's balance of ``ticker`` in base units (wei)."""
        token = self._token(context, ticker)
        return int(await call_node(
            f"read {ticker} balance", token.functions.balanceOf(context.taker).call()
        ))
