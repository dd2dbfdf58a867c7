"""
PaymentReference value object - How a checkout was paid.
"""

from dataclasses import dataclass
from enum import Enum

EXTERNAL_RECEIPT_PREFIX = "pi_"
FREE_ORDER_PREFIX = "free_"


class PaymentKind(str, Enum):
    """Payment channels a checkout can settle through."""

    ON_CHAIN = "on_chain"
    EXTERNAL_RECEIPT = "external_receipt"
    FREE = "free"


@dataclass(frozen=True)
class PaymentReference:
    """
    Tagged reference to a checkout payment.

    Business rules:
    - Only ON_CHAIN references are confirmed against the network
    - EXTERNAL_RECEIPT (card processor receipts) and FREE orders are
      settled elsewhere and resolve as verified immediately
    - The value is never empty
    """

    kind: PaymentKind
    value: str

    def __post_init__(self):
        """Validate reference on creation."""
        if not self.value or not self.value.strip():
            raise ValueError("Payment reference value is required")

    @classmethod
    def on_chain(cls, signature: str) -> "PaymentReference":
        """Reference to a submitted blockchain transaction signature."""
        return cls(kind=PaymentKind.ON_CHAIN, value=signature)

    @classmethod
    def external_receipt(cls, receipt_id: str) -> "PaymentReference":
        """Reference to an externally issued payment receipt."""
        return cls(kind=PaymentKind.EXTERNAL_RECEIPT, value=receipt_id)

    @classmethod
    def free(cls, order_ref: str) -> "PaymentReference":
        """Reference to an order that requires no payment."""
        return cls(kind=PaymentKind.FREE, value=order_ref)

    @classmethod
    def from_identifier(cls, identifier: str) -> "PaymentReference":
        """
        Classify a raw payment identifier by its legacy prefix.

        Storefront clients send a single identifier string: card receipts
        start with "pi_", free orders with "free_", anything else is a
        transaction signature. Only call this at the API/CLI boundary.

        Args:
            identifier: Raw identifier from the client

        Returns:
            PaymentReference with the matching kind
        """
        if identifier.startswith(EXTERNAL_RECEIPT_PREFIX):
            return cls.external_receipt(identifier)
        if identifier.startswith(FREE_ORDER_PREFIX):
            return cls.free(identifier)
        return cls.on_chain(identifier)

    @property
    def is_on_chain(self) -> bool:
        """True when the payment must be confirmed on-chain."""
        return self.kind == PaymentKind.ON_CHAIN

    def __str__(self) -> str:
        return self.value
