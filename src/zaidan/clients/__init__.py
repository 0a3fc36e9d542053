"""
Protocol clients for the Zaidan dealer client.
"""

from .allowance_client import ALLOWANCE_THRESHOLD, MAX_ALLOWANCE, AllowanceClient
from .confirmation import ConfirmationWaiter
from .quote_client import QuoteClient
from .settlement_client import SettlementClient, SettlementLedger

__all__ = [
    "ALLOWANCE_THRESHOLD",
    "MAX_ALLOWANCE",
    "AllowanceClient",
    "ConfirmationWaiter",
    "QuoteClient",
    "SettlementClient",
    "SettlementLedger",
]
