"""
ReconciliationEntry entity - A payment whose verification is still open.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ReconciliationReason(str, Enum):
    """Why a signature needs out-of-band follow-up."""

    TEMPORARILY_APPROVED = "temporarily_approved"
    DELEGATE_UNAVAILABLE = "delegate_unavailable"
    DELEGATE_ERROR = "delegate_error"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReconciliationEntry:
    """Record handed to the background reconciliation job."""

    signature: str
    reason: ReconciliationReason
    order_id: Optional[str] = None
    detail: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "signature": self.signature,
            "reason": self.reason.value,
            "order_id": self.order_id,
            "detail": self.detail,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReconciliationEntry":
        return cls(
            signature=data["signature"],
            reason=ReconciliationReason(data["reason"]),
            order_id=data.get("order_id"),
            detail=data.get("detail"),
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
        )
