"""
TransactionRequest entity - One checkout attempt to confirm.
"""

from dataclasses import dataclass
from typing import Optional

from caissier.domain.value_objects.expected_payment import ExpectedPaymentDetails
from caissier.domain.value_objects.payment_reference import PaymentReference


@dataclass(frozen=True)
class TransactionRequest:
    """
    Immutable input to the confirmation orchestrator.

    Created once per checkout attempt and never mutated. expected_details
    and order_id are passed through to the verification backend untouched.
    """

    reference: PaymentReference
    expected_details: Optional[ExpectedPaymentDetails] = None
    order_id: Optional[str] = None

    @property
    def signature(self) -> str:
        """Signature (or receipt id) this request is keyed by."""
        return self.reference.value

    @classmethod
    def for_signature(
        cls,
        signature: str,
        expected_details: Optional[ExpectedPaymentDetails] = None,
        order_id: Optional[str] = None,
    ) -> "TransactionRequest":
        """Shortcut for an on-chain payment."""
        return cls(
            reference=PaymentReference.on_chain(signature),
            expected_details=expected_details,
            order_id=order_id,
        )

    def to_payload(self) -> dict:
        """Request body for the verification backend."""
        payload = {"signature": self.signature}
        if self.expected_details is not None:
            payload["expectedDetails"] = self.expected_details.to_dict()
        if self.order_id:
            payload["orderId"] = self.order_id
        return payload
