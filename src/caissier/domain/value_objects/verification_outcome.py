"""
VerificationOutcome value object - Verdict of the trusted backend.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VerificationKind(str, Enum):
    """Classes of answer the verification delegate can give."""

    VERIFIED = "verified"
    TEMPORARILY_APPROVED = "temporarily_approved"
    REJECTED = "rejected"
    DELEGATE_UNAVAILABLE = "delegate_unavailable"


@dataclass(frozen=True)
class VerificationOutcome:
    """
    Result of handing a finalized signature to the verification backend.

    Business rules:
    - VERIFIED: durable state updated by the backend
    - TEMPORARILY_APPROVED: order optimistically paid, backend checks later
    - REJECTED: chain finalized but the payment is invalid (terminal failure)
    - DELEGATE_UNAVAILABLE: backend unreachable, chain finality stands in
      and reconciliation happens out of band
    """

    kind: VerificationKind
    warning: Optional[str] = None
    reason: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def verified(cls) -> "VerificationOutcome":
        return cls(kind=VerificationKind.VERIFIED)

    @classmethod
    def temporarily_approved(cls, warning: Optional[str]) -> "VerificationOutcome":
        return cls(kind=VerificationKind.TEMPORARILY_APPROVED, warning=warning)

    @classmethod
    def rejected(cls, reason: str) -> "VerificationOutcome":
        return cls(kind=VerificationKind.REJECTED, reason=reason)

    @classmethod
    def delegate_unavailable(
        cls, status_code: Optional[int] = None
    ) -> "VerificationOutcome":
        return cls(
            kind=VerificationKind.DELEGATE_UNAVAILABLE,
            status_code=status_code,
        )

    @property
    def is_success(self) -> bool:
        """Everything except an authoritative rejection counts as paid."""
        return self.kind != VerificationKind.REJECTED

    @property
    def is_deferred(self) -> bool:
        """True when business verification still has to happen later."""
        return self.kind in (
            VerificationKind.TEMPORARILY_APPROVED,
            VerificationKind.DELEGATE_UNAVAILABLE,
        )
