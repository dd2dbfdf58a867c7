"""
Caissier health checks.

Checks:
- Solana RPC connectivity
- Signature registry connectivity (Redis backend)
"""

from enum import Enum
from typing import Any, Dict, Optional

from caissier.domain.exceptions import RPCException
from caissier.domain.services import ISignatureRegistry
from caissier.infrastructure.blockchain.solana_rpc_client import SolanaRPCClient


class HealthStatus(str, Enum):
    """Service health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class CaissierHealthChecker:
    """
    Kubernetes-compatible liveness and readiness probes.

    The registry is critical (no idempotency without it); the RPC node is
    not, since fallbacks may still answer and in-flight flows retry.
    """

    def __init__(
        self,
        rpc_client: Optional[SolanaRPCClient] = None,
        registry: Optional[ISignatureRegistry] = None,
    ):
        self.rpc_client = rpc_client
        self.registry = registry

    async def check(self) -> Dict[str, Any]:
        """
        Overall health check.

        Returns:
            {"status": HealthStatus value, "checks": {name: bool}}
        """
        registry_ok = await self._check_registry()
        rpc_ok = await self._check_rpc()

        if not registry_ok:
            status = HealthStatus.UNHEALTHY
        elif not rpc_ok:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return {
            "status": status.value,
            "checks": {"registry": registry_ok, "solana_rpc": rpc_ok},
        }

    async def liveness(self) -> HealthStatus:
        """Liveness probe: the process answers."""
        return HealthStatus.HEALTHY

    async def readiness(self) -> HealthStatus:
        """Readiness probe: critical dependencies are available."""
        if not await self._check_registry():
            return HealthStatus.UNHEALTHY
        return HealthStatus.HEALTHY

    async def _check_registry(self) -> bool:
        ping = getattr(self.registry, "ping", None)
        if ping is None:
            return True  # In-memory registry is always available
        return await ping()

    async def _check_rpc(self) -> bool:
        if self.rpc_client is None:
            return True
        try:
            await self.rpc_client.get_version()
            return True
        except RPCException:
            return False
