"""
Confirmation Waiter

Polls the Ethereum node until a transaction is mined and reports whether it
succeeded or reverted. No timeout is imposed here; wrap calls in
``asyncio.wait_for`` for a bounded wait.
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from ..exceptions import TransactionReverted
from ..metrics import DealerMetrics, get_metrics
from ..models import ConfirmationResult, TransactionOutcome, validate_tx_id

logger = logging.getLogger(__name__)


class ConfirmationWaiter:
    """Receipt poller for one Ethereum node."""

    def __init__(
        self,
        web3: AsyncWeb3,
        poll_interval: float = 1.0,
        metrics: Optional[DealerMetrics] = None,
    ) -> None:
        self.web3 = web3
        self.poll_interval = poll_interval
        self.metrics = metrics or get_metrics()

    async def _fetch_receipt(self, tx_id: str):
        """Return the receipt, or ``None`` while the transaction is pending."""
        try:
            receipt = await self.web3.eth.get_transaction_receipt(tx_id)
        except TransactionNotFound:
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            # Node unreachable: status unknown, keep polling
            logger.warning(
                "Receipt poll failed, retrying",
                extra={"event": "confirmation.poll_error", "tx_id": tx_id, "error": str(e)},
            )
            return None
        if receipt is None or receipt.get("blockNumber") is None:
            return None
        return receipt

    async def wait(self, tx_id: str) -> ConfirmationResult:
        """
        Wait until ``tx_id`` is mined.

        Args:
            tx_id: 0x-prefixed 32-byte transaction hash

        Returns:
            ConfirmationResult with outcome SUCCESS or REVERTED

        Raises:
            InvalidTransactionId: Malformed ``tx_id``, before any network call
        """
        validate_tx_id(tx_id)
        started = time.monotonic()
        logger.debug("Waiting for transaction", extra={"event": "confirmation.wait", "tx_id": tx_id})

        while True:
            receipt = await self._fetch_receipt(tx_id)
            if receipt is not None:
                break
            await asyncio.sleep(self.poll_interval)

        outcome = (
            TransactionOutcome.SUCCESS
            if int(receipt.get("status", 0)) == 1
            else TransactionOutcome.REVERTED
        )
        self.metrics.confirmations_total.labels(outcome=outcome.value).inc()
        self.metrics.confirmation_wait.observe(time.monotonic() - started)

        result = ConfirmationResult(
            tx_id=tx_id,
            outcome=outcome,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )
        log = logger.info if result.succeeded else logger.warning
        log(
            "Transaction mined",
            extra={
                "event": "confirmation.mined",
                "tx_id": tx_id,
                "outcome": outcome.value,
                "block_number": result.block_number,
            },
        )
        return result

    async def wait_for_success(self, tx_id: str) -> ConfirmationResult:
        """
        Wait for ``tx_id`` and raise if it reverted.

        Raises:
            InvalidTransactionId: Malformed ``tx_id``
            TransactionReverted: Mined but reverted
        """
        result = await self.wait(tx_id)
        if not result.succeeded:
            raise TransactionReverted(f"transaction {tx_id} reverted", tx_id=tx_id)
        return result
