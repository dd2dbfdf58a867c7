"""
On-chain confirmation value objects used by the signature poller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ConfirmationLevel(str, Enum):
    """Commitment level observed for a signature."""

    NONE = "none"
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @classmethod
    def from_rpc(cls, value: Optional[str]) -> "ConfirmationLevel":
        """Map an RPC confirmationStatus value (or None) to a level."""
        if not value:
            return cls.NONE
        try:
            return cls(value)
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class ConfirmationAttempt:
    """
    One polling cycle's observation.

    Ephemeral: built by the poller for logging and decisions, never
    persisted.
    """

    index: int
    level: ConfirmationLevel = ConfirmationLevel.NONE
    err: Optional[Any] = None
    observed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_final(self) -> bool:
        return self.level == ConfirmationLevel.FINALIZED


class PollOutcome(str, Enum):
    """Final result of polling one signature."""

    FINALIZED_OK = "finalized_ok"
    FINALIZED_ERR = "finalized_err"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    """Outcome of SignatureStatusPoller.poll_until_finalized."""

    outcome: PollOutcome
    attempts: int
    err: Optional[Any] = None
    last_attempt: Optional[ConfirmationAttempt] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == PollOutcome.FINALIZED_OK
