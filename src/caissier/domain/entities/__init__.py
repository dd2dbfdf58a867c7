"""
Domain entities.
"""

from caissier.domain.entities.payment_transaction import PaymentTransaction
from caissier.domain.entities.reconciliation_entry import (
    ReconciliationEntry,
    ReconciliationReason,
)
from caissier.domain.entities.transaction_request import TransactionRequest

__all__ = [
    "PaymentTransaction",
    "ReconciliationEntry",
    "ReconciliationReason",
    "TransactionRequest",
]
