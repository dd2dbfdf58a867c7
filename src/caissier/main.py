"""
Caissier main application.

FastAPI application exposing payment confirmation:
- Confirmation endpoints
- Health checks (Kubernetes-compatible)
- Metrics (Prometheus)
- Graceful shutdown (in-flight confirmations are drained)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from caissier import __version__
from caissier.di.container import DIContainer, get_container
from caissier.presentation.api.routes import confirmations_router, health_router


def create_app(container: Optional[DIContainer] = None) -> FastAPI:
    """
    Create FastAPI application.

    Args:
        container: Optional DI container. If None, the global container is
            used when the application starts.

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Builds components on startup and drains confirmations on shutdown.
        """
        active = container or get_container()
        reporter = active.reporter

        reporter.info("Starting Caissier...", context="Main")
        await active.initialize()

        app.state.container = active
        app.state.orchestrator = active.orchestrator
        app.state.reconciliation_log = active.reconciliation_log
        app.state.health_checker = active.health_checker

        reporter.info(
            f"Caissier started on port {active.settings.api_port}",
            context="Main",
        )

        yield

        reporter.info("Shutting down Caissier...", context="Main")
        await active.shutdown()
        reporter.info("Caissier stopped", context="Main")

    app = FastAPI(
        title="Caissier - Payment Confirmation",
        description="Solana payment confirmation and verification engine",
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(health_router)
    app.include_router(confirmations_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "caissier",
            "version": __version__,
            "status": "operational",
            "endpoints": {
                "confirmations": "/confirmations",
                "reconciliation": "/reconciliation",
                "health": "/health",
                "liveness": "/health/live",
                "readiness": "/health/ready",
                "metrics": "/metrics",
            },
        }

    @app.get("/metrics", tags=["Monitoring"])
    async def metrics():
        """
        Prometheus metrics endpoint.

        Returns metrics in Prometheus text format for scraping.
        """
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app


def get_app() -> FastAPI:
    """
    Get or create application instance (lazy initialization).

    For uvicorn: uvicorn caissier.main:get_app --factory
    """
    return create_app()
