"""
Verification backend infrastructure.
"""

from caissier.infrastructure.verification.verification_client import (
    DEFAULT_UNAVAILABLE_STATUS_CODES,
    HttpVerificationDelegate,
)

__all__ = ["DEFAULT_UNAVAILABLE_STATUS_CODES", "HttpVerificationDelegate"]
