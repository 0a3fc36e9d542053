"""
Settlement Client

Posts taker-signed fill transactions back to the dealer for settlement and
records the resulting transaction id against the originating quote.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from ..exceptions import (
    DealerHTTPError,
    DealerTransportError,
    DuplicateSubmission,
    InvalidInput,
    InvalidTransactionId,
    QuoteExpired,
    SettlementRejected,
    SubmissionFailed,
)
from ..http_client import DealerHTTPClient
from ..metrics import DealerMetrics, get_metrics
from ..models import NetworkContext, SettlementRecord, SignedFillTransaction, validate_tx_id

logger = logging.getLogger(__name__)


class SettlementLedger:
    """
    In-memory settlement records, at most one per quote id.

    Quotes the dealer refused, or answered without a usable transaction id,
    are closed without a record and are never posted again.
    """

    REJECTED = "rejected"
    UNCONFIRMED = "unconfirmed"

    def __init__(self) -> None:
        self._records: Dict[str, SettlementRecord] = {}
        self._closed: Dict[str, str] = {}

    def __contains__(self, quote_id: str) -> bool:
        return quote_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, quote_id: str) -> Optional[SettlementRecord]:
        return self._records.get(quote_id)

    def add(self, record: SettlementRecord) -> None:
        if record.quote_id in self._records:
            raise DuplicateSubmission(
                f"quote {record.quote_id} already settled",
                quote_id=record.quote_id,
            )
        self._records[record.quote_id] = record

    def records(self) -> List[SettlementRecord]:
        return list(self._records.values())

    def close(self, quote_id: str, reason: str) -> None:
        self._closed[quote_id] = reason

    def closed_reason(self, quote_id: str) -> Optional[str]:
        return self._closed.get(quote_id)

    def is_consumed(self, quote_id: str) -> bool:
        return quote_id in self._records or quote_id in self._closed


class SettlementClient:
    """
    Client for trade submission.

    Submissions from one client are serialized. A quote id is posted again
    only after a transport failure or a dealer 5xx; once the dealer has
    accepted or refused it, reuse fails without a network call.
    """

    def __init__(
        self,
        http_client: DealerHTTPClient,
        ledger: Optional[SettlementLedger] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[DealerMetrics] = None,
    ) -> None:
        self.http_client = http_client
        self.ledger = ledger if ledger is not None else SettlementLedger()
        self.clock = clock
        self.metrics = metrics or get_metrics()
        self._lock = asyncio.Lock()

    async def submit(
        self,
        context: NetworkContext,
        signed: SignedFillTransaction,
        quote_id: Optional[str] = None,
    ) -> SettlementRecord:
        """
        Submit a signed fill transaction for settlement.

        Args:
            context: Session snapshot; its taker is reported as ``address``
            signed: Signed fill transaction
            quote_id: Quote id; defaults to the id the transaction was signed for

        Returns:
            SettlementRecord carrying the dealer-reported transaction id

        Raises:
            InvalidInput: Missing or mismatched quote id or signer
            QuoteExpired: Quote expired; nothing is posted
            DuplicateSubmission: Quote already settled, or accepted by the dealer
                without a valid transaction id; nothing is posted
            SettlementRejected: Dealer refused the trade now or on an earlier
                submission; terminal for this quote
            SubmissionFailed: Transport failure, retry with the same payload
                while the quote is unexpired
            InvalidTransactionId: Dealer reported a malformed transaction id
        """
        quote_id = quote_id or signed.quote_id
        if not quote_id:
            raise InvalidInput("quote_id is required")
        if signed.quote_id and signed.quote_id != quote_id:
            raise InvalidInput(
                f"transaction was signed for quote {signed.quote_id}, not {quote_id}"
            )
        if signed.signer_address.lower() != context.taker.lower():
            raise InvalidInput(
                f"transaction signed by {signed.signer_address}, session taker is {context.taker}"
            )

        async with self._lock:
            now = self.clock()
            if now >= signed.expiration:
                self.metrics.submissions_total.labels(status="expired").inc()
                raise QuoteExpired(
                    f"quote {quote_id} expired at {signed.expiration}",
                    expiration=signed.expiration,
                    now=now,
                )
            if quote_id in self.ledger:
                self.metrics.submissions_total.labels(status="duplicate").inc()
                raise DuplicateSubmission(
                    f"quote {quote_id} already settled as {self.ledger.get(quote_id).tx_id}",
                    quote_id=quote_id,
                )
            reason = self.ledger.closed_reason(quote_id)
            if reason == SettlementLedger.REJECTED:
                self.metrics.submissions_total.labels(status="rejected").inc()
                raise SettlementRejected(
                    f"quote {quote_id} was rejected by the dealer; request a fresh quote",
                    quote_id=quote_id,
                )
            if reason is not None:
                self.metrics.submissions_total.labels(status="duplicate").inc()
                raise DuplicateSubmission(
                    f"quote {quote_id} was already accepted by the dealer",
                    quote_id=quote_id,
                )

            payload = signed.to_payload(quote_id, context.taker)
            try:
                response = await self.http_client.post("order", data=payload)
            except DealerHTTPError as e:
                if e.status >= 500:
                    self.metrics.submissions_total.labels(status="failed").inc()
                    raise SubmissionFailed(
                        f"failed to submit trade: {e.message}", quote_id=quote_id
                    ) from e
                self.ledger.close(quote_id, SettlementLedger.REJECTED)
                self.metrics.submissions_total.labels(status="rejected").inc()
                logger.warning(
                    "Dealer rejected trade",
                    extra={"event": "settlement.rejected", "quote_id": quote_id, "status": e.status},
                )
                raise SettlementRejected(
                    f"dealer rejected trade: {e.message}",
                    quote_id=quote_id,
                    status=e.status,
                    details={"response": e.payload},
                ) from e
            except DealerTransportError as e:
                self.metrics.submissions_total.labels(status="failed").inc()
                raise SubmissionFailed(
                    f"failed to submit trade: {e.message}", quote_id=quote_id
                ) from e

            tx_id = response.get("txId") if isinstance(response, dict) else None
            try:
                validate_tx_id(tx_id)
            except InvalidTransactionId:
                # the dealer may already have broadcast the fill
                self.ledger.close(quote_id, SettlementLedger.UNCONFIRMED)
                self.metrics.submissions_total.labels(status="invalid_tx_id").inc()
                logger.error(
                    "Dealer accepted trade without a valid transaction id",
                    extra={"event": "settlement.invalid_tx_id", "quote_id": quote_id},
                )
                raise

            record = SettlementRecord(quote_id=quote_id, tx_id=tx_id, submitted_at=self.clock())
            self.ledger.add(record)

        self.metrics.submissions_total.labels(status="accepted").inc()
        logger.info(
            "Trade submitted",
            extra={"event": "settlement.submitted", "quote_id": quote_id, "tx_id": tx_id},
        )
        return record
