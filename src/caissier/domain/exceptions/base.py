"""
Base exception for Caissier.
"""

from typing import Optional


class CaissierException(Exception):
    """Base exception for all Caissier errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)
