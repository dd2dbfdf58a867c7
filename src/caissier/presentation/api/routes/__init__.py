"""
API routes module.

Exports all route routers for registration in main app.
"""

from caissier.presentation.api.routes.confirmations import (
    router as confirmations_router,
)
from caissier.presentation.api.routes.health import router as health_router

__all__ = [
    "confirmations_router",
    "health_router",
]
