"""
ExpectedPaymentDetails value object - What the buyer is supposed to pay.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Union


@dataclass(frozen=True)
class ExpectedPaymentDetails:
    """
    Amount, payer and recipient the backend checks a payment against.

    Caissier never evaluates these itself; they are forwarded to the
    verification delegate, which is the only party trusted to decide.
    """

    amount: Decimal
    buyer: str
    recipient: str

    def __post_init__(self):
        """Validate details on creation."""
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", _to_decimal(self.amount))

        if self.amount <= 0:
            raise ValueError("Expected amount must be positive")

        if not self.buyer:
            raise ValueError("Buyer address is required")

        if not self.recipient:
            raise ValueError("Recipient address is required")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpectedPaymentDetails":
        """Build from the wire form used by storefront clients."""
        return cls(
            amount=_to_decimal(data.get("amount")),
            buyer=data.get("buyer", ""),
            recipient=data.get("recipient", ""),
        )

    def to_dict(self) -> dict:
        """Convert to the wire form expected by the verification backend."""
        return {
            "amount": float(self.amount),
            "buyer": self.buyer,
            "recipient": self.recipient,
        }


def _to_decimal(value: Union[Decimal, float, int, str, None]) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
