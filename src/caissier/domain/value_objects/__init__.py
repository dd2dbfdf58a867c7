"""
Value objects for Caissier domain.
"""

from caissier.domain.value_objects.confirmation import (
    ConfirmationAttempt,
    ConfirmationLevel,
    PollOutcome,
    PollResult,
)
from caissier.domain.value_objects.expected_payment import ExpectedPaymentDetails
from caissier.domain.value_objects.payment_reference import (
    PaymentKind,
    PaymentReference,
)
from caissier.domain.value_objects.transaction_status import (
    TERMINAL_STATES,
    ConfirmationState,
    TransactionStatus,
)
from caissier.domain.value_objects.verification_outcome import (
    VerificationKind,
    VerificationOutcome,
)

__all__ = [
    "ConfirmationAttempt",
    "ConfirmationLevel",
    "PollOutcome",
    "PollResult",
    "ExpectedPaymentDetails",
    "PaymentKind",
    "PaymentReference",
    "TERMINAL_STATES",
    "ConfirmationState",
    "TransactionStatus",
    "VerificationKind",
    "VerificationOutcome",
]
