"""
TransactionStatus value object - The only state callers observe.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ConfirmationState(str, Enum):
    """Confirmation flow states."""

    IDLE = "idle"
    SUBMITTED = "submitted"
    POLLING = "polling"
    FINALIZING = "finalizing"
    VERIFYING = "verifying"
    SUCCESS = "success"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_past_finalizing(self) -> bool:
        """True once the on-chain transaction can no longer be abandoned."""
        return self in (
            ConfirmationState.FINALIZING,
            ConfirmationState.VERIFYING,
        ) or self.is_terminal


TERMINAL_STATES = frozenset(
    {
        ConfirmationState.SUCCESS,
        ConfirmationState.REJECTED,
        ConfirmationState.TIMED_OUT,
        ConfirmationState.CANCELLED,
        ConfirmationState.ERROR,
    }
)


@dataclass(frozen=True)
class TransactionStatus:
    """
    Public confirmation status for one signature.

    Emitted at least twice over a confirmation's lifetime: one
    processing=True status and exactly one terminal status
    (processing=False). Terminal statuses never change their success value.
    """

    signature: Optional[str]
    processing: bool
    success: bool
    error: Optional[str] = None
    payment_confirmed: bool = False
    state: ConfirmationState = ConfirmationState.IDLE
    warning: Optional[str] = None
    explorer_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not self.processing

    @classmethod
    def processing_status(
        cls,
        signature: str,
        state: ConfirmationState = ConfirmationState.SUBMITTED,
        explorer_url: Optional[str] = None,
    ) -> "TransactionStatus":
        """Initial in-flight status."""
        return cls(
            signature=signature,
            processing=True,
            success=False,
            state=state,
            explorer_url=explorer_url,
        )

    @classmethod
    def confirmed(
        cls,
        signature: Optional[str],
        warning: Optional[str] = None,
        explorer_url: Optional[str] = None,
    ) -> "TransactionStatus":
        """Terminal success with the payment confirmed."""
        return cls(
            signature=signature,
            processing=False,
            success=True,
            payment_confirmed=True,
            state=ConfirmationState.SUCCESS,
            warning=warning,
            explorer_url=explorer_url,
        )

    @classmethod
    def failed(
        cls,
        signature: Optional[str],
        error: str,
        state: ConfirmationState = ConfirmationState.ERROR,
        explorer_url: Optional[str] = None,
    ) -> "TransactionStatus":
        """Terminal failure (rejected, timed out, cancelled or error)."""
        return cls(
            signature=signature,
            processing=False,
            success=False,
            error=error,
            state=state,
            explorer_url=explorer_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire form used by storefront clients."""
        return {
            "signature": self.signature,
            "processing": self.processing,
            "success": self.success,
            "error": self.error,
            "paymentConfirmed": self.payment_confirmed,
            "state": self.state.value,
            "warning": self.warning,
            "explorerUrl": self.explorer_url,
        }

    def to_record(self) -> Dict[str, Any]:
        """Convert to a JSON-safe record for registry storage."""
        record = asdict(self)
        record["state"] = self.state.value
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TransactionStatus":
        """Rebuild from to_record() output."""
        data = dict(record)
        data["state"] = ConfirmationState(data.get("state", "idle"))
        return cls(**data)
