"""
Health check endpoints.
"""

from fastapi import APIRouter, Request

from caissier import __version__
from caissier.infrastructure.monitoring.health_checker import HealthStatus

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(req: Request):
    """
    Overall health check.

    Returns:
        Health status and per-dependency results
    """
    health_checker = getattr(req.app.state, "health_checker", None)
    if not health_checker:
        return {"status": "unhealthy", "message": "Health checker not initialized"}

    result = await health_checker.check()

    return {
        **result,
        "service": "caissier",
        "version": __version__,
    }


@router.get("/health/live")
async def liveness_probe(req: Request):
    """
    Kubernetes liveness probe.

    Returns:
        Liveness status
    """
    health_checker = getattr(req.app.state, "health_checker", None)
    if not health_checker:
        return {"status": "unhealthy"}

    status = await health_checker.liveness()

    return {
        "status": status.value,
        "alive": status == HealthStatus.HEALTHY,
    }


@router.get("/health/ready")
async def readiness_probe(req: Request):
    """
    Kubernetes readiness probe.

    Returns:
        Readiness status
    """
    health_checker = getattr(req.app.state, "health_checker", None)
    if not health_checker:
        return {"status": "unhealthy"}

    status = await health_checker.readiness()

    return {
        "status": status.value,
        "ready": status == HealthStatus.HEALTHY,
    }
