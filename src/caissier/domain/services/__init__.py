"""
Domain service interfaces.
"""

from caissier.domain.services.i_reconciliation_log import IReconciliationLog
from caissier.domain.services.i_signature_registry import ISignatureRegistry
from caissier.domain.services.i_verification_delegate import (
    IVerificationDelegate,
)

__all__ = [
    "IReconciliationLog",
    "ISignatureRegistry",
    "IVerificationDelegate",
]
