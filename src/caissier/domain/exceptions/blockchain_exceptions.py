"""
Blockchain-related exceptions.
"""

from typing import Optional

from caissier.domain.exceptions.base import CaissierException


class BlockchainException(CaissierException):
    """Base exception for blockchain operations."""


class RPCException(BlockchainException):
    """RPC call failed (connection, timeout, malformed or error response)."""


class BlockhashUnavailableError(BlockchainException):
    """No valid blockhash could be fetched within the retry budget."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        details: Optional[dict] = None,
    ):
        """
        Initialize blockhash unavailable error.

        Args:
            message: Error description
            attempts: Number of fetch attempts made
            details: Optional extra context
        """
        super().__init__(message, details)
        self.attempts = attempts


class InvalidTransactionError(BlockchainException):
    """Transaction is structurally incomplete."""

    def __init__(self, missing_fields: list):
        """
        Initialize invalid transaction error.

        Args:
            missing_fields: Names of the required fields that are missing
        """
        self.missing_fields = list(missing_fields)
        super().__init__(
            "Invalid transaction: missing required fields "
            f"({', '.join(self.missing_fields)})",
            details={"missing_fields": self.missing_fields},
        )
