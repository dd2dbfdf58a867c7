"""
Confirmation schemas.

Field names follow the storefront's camelCase wire contract.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class ExpectedDetailsSchema(BaseModel):
    """What the buyer is expected to have paid."""

    amount: Decimal = Field(..., gt=0, description="Amount in SOL")
    buyer: str = Field(..., min_length=1, description="Buyer wallet address")
    recipient: str = Field(
        ..., min_length=1, description="Merchant wallet address"
    )


class ConfirmationRequest(BaseModel):
    """
    Request to confirm a submitted payment.

    Corresponds to: POST /confirmations
    """

    signature: str = Field(
        ...,
        min_length=1,
        description="Transaction signature, card receipt id (pi_...) or "
        "free order id (free_...)",
    )
    expectedDetails: Optional[ExpectedDetailsSchema] = Field(
        None,
        description="Forwarded to the verification backend",
    )
    orderId: Optional[str] = Field(None, description="Storefront order id")
    wait: bool = Field(
        True,
        description="Wait for the terminal status instead of returning "
        "immediately",
    )


class TransactionStatusResponse(BaseModel):
    """Confirmation status as seen by storefront clients."""

    signature: Optional[str] = None
    processing: bool
    success: bool
    error: Optional[str] = None
    paymentConfirmed: bool = False
    state: str
    warning: Optional[str] = None
    explorerUrl: Optional[str] = None


class ReconciliationEntryResponse(BaseModel):
    """Payment awaiting out-of-band reconciliation."""

    signature: str
    reason: str
    order_id: Optional[str] = None
    detail: Optional[str] = None
    recorded_at: str


class ReconciliationListResponse(BaseModel):
    """Most recent reconciliation entries."""

    entries: List[ReconciliationEntryResponse]
