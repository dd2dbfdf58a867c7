"""
Verification delegate interface.

The trusted backend that decides whether a finalized payment satisfies
the order (amount, recipient, non-replay) and applies durable state.
"""

from abc import ABC, abstractmethod

from caissier.domain.entities.transaction_request import TransactionRequest
from caissier.domain.value_objects.verification_outcome import (
    VerificationOutcome,
)


class IVerificationDelegate(ABC):
    """
    Abstract authoritative payment verifier.

    Must only be invoked for a signature the poller reported as
    finalized without error.
    """

    @abstractmethod
    async def verify(self, request: TransactionRequest) -> VerificationOutcome:
        """
        Ask the backend to verify a finalized payment.

        Args:
            request: Request carrying signature, expected details, order id

        Returns:
            VerificationOutcome classifying the backend's answer

        Raises:
            VerificationDelegateError: On an unexpected backend error
        """

    async def close(self) -> None:
        """Release backing resources."""
