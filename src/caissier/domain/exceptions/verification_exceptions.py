"""
Verification delegate and registry exceptions.
"""

from typing import Optional

from caissier.domain.exceptions.base import CaissierException


class VerificationDelegateError(CaissierException):
    """Verification backend answered with an unexpected error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        """
        Initialize verification delegate error.

        Args:
            message: Error description
            status_code: HTTP status code returned by the backend
            details: Optional extra context
        """
        super().__init__(message, details)
        self.status_code = status_code


class RegistryError(CaissierException):
    """Processed-signature registry or reconciliation store failed."""
