"""
API schemas.
"""

from caissier.presentation.schemas.confirmation import (
    ConfirmationRequest,
    ExpectedDetailsSchema,
    ReconciliationEntryResponse,
    ReconciliationListResponse,
    TransactionStatusResponse,
)

__all__ = [
    "ConfirmationRequest",
    "ExpectedDetailsSchema",
    "ReconciliationEntryResponse",
    "ReconciliationListResponse",
    "TransactionStatusResponse",
]
