"""
Application layer.
"""

from caissier.application.confirmation_orchestrator import (
    ConfirmationHandle,
    ConfirmationOrchestrator,
)

__all__ = ["ConfirmationHandle", "ConfirmationOrchestrator"]
