"""
Domain exceptions.
"""

from caissier.domain.exceptions.base import CaissierException
from caissier.domain.exceptions.blockchain_exceptions import (
    BlockchainException,
    BlockhashUnavailableError,
    InvalidTransactionError,
    RPCException,
)
from caissier.domain.exceptions.verification_exceptions import (
    RegistryError,
    VerificationDelegateError,
)

__all__ = [
    "CaissierException",
    "BlockchainException",
    "RPCException",
    "BlockhashUnavailableError",
    "InvalidTransactionError",
    "VerificationDelegateError",
    "RegistryError",
]
