"""
Solana JSON-RPC client with endpoint failover.

Tries the primary endpoint first and each fallback once per call when an
endpoint is unreachable, times out, rate limits or answers 5xx. JSON-RPC
error objects are answers, not outages, and are raised immediately.
Retry policy belongs to callers: one call here is one attempt.
"""

import asyncio
import re
import time
from typing import Any, Dict, List, Optional

import aiohttp

from caissier.domain.exceptions import RPCException
from caissier.infrastructure.monitoring import metrics
from caissier.reporter import SystemReporter

_KEY_PATTERNS = (
    re.compile(r"(api-key=)([^&]+)"),
    re.compile(r"(/v2/)([^/?]+)"),
)


def mask_api_key(key: Optional[str]) -> Optional[str]:
    """Show only the first and last 4 characters of an API key."""
    if not key or len(key) < 8:
        return None
    return f"{key[:4]}...{key[-4:]}"


def mask_url(url: str) -> str:
    """Mask API keys embedded in a provider URL for logging."""
    for pattern in _KEY_PATTERNS:
        url = pattern.sub(
            lambda m: m.group(1) + (mask_api_key(m.group(2)) or "***"),
            url,
        )
    return url


class _EndpointUnavailable(Exception):
    """Endpoint-level failure that justifies trying the next endpoint."""


class SolanaRPCClient:
    """
    Solana JSON-RPC client.

    The only component that talks to the network for chain data.
    """

    def __init__(
        self,
        endpoints: List[str],
        request_timeout: float = 10.0,
        connect_timeout: float = 3.0,
        reporter: Optional[SystemReporter] = None,
    ):
        """
        Initialize Solana RPC client.

        Args:
            endpoints: Ordered endpoint URLs, primary first
            request_timeout: Total per-request timeout in seconds
            connect_timeout: Connection timeout in seconds
            reporter: Optional logger
        """
        if not endpoints:
            raise ValueError("At least one RPC endpoint is required")

        self.endpoints = list(endpoints)
        self.timeout = aiohttp.ClientTimeout(
            total=request_timeout,
            connect=connect_timeout,
        )
        self.reporter = reporter or SystemReporter(name="caissier.rpc")
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, rpc_config, reporter: Optional[SystemReporter] = None):
        """Build from an RpcConfig section."""
        return cls(
            endpoints=rpc_config.endpoints(),
            request_timeout=rpc_config.request_timeout,
            connect_timeout=rpc_config.connect_timeout,
            reporter=reporter,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                connector=aiohttp.TCPConnector(
                    limit=100,
                    limit_per_host=30,
                    ttl_dns_cache=300,
                ),
            )
        return self._session

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """
        Call a JSON-RPC method.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            The "result" member of the response

        Raises:
            RPCException: On a JSON-RPC error, a malformed response, or when
                every endpoint failed
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params or [],
        }

        failures = []
        start = time.perf_counter()

        for index, url in enumerate(self.endpoints):
            if index > 0:
                metrics.rpc_fallbacks_total.labels(method=method).inc()

            try:
                result = await self._post(url, method, payload)
            except _EndpointUnavailable as e:
                failures.append(f"{mask_url(url)}: {e}")
                self.reporter.warning(
                    f"{method} failed on {mask_url(url)}: {e}",
                    context="RPC",
                    verbose_level=2,
                )
                continue
            except RPCException:
                metrics.rpc_requests_total.labels(method=method, status="error").inc()
                metrics.rpc_errors_total.labels(
                    method=method, error_type="rpc_error"
                ).inc()
                raise

            metrics.rpc_requests_total.labels(method=method, status="ok").inc()
            metrics.rpc_request_duration_seconds.labels(method=method).observe(
                time.perf_counter() - start
            )
            return result

        metrics.rpc_requests_total.labels(method=method, status="error").inc()
        metrics.rpc_errors_total.labels(
            method=method, error_type="unavailable"
        ).inc()
        raise RPCException(
            f"All RPC endpoints failed for {method}",
            details={"method": method, "failures": failures},
        )

    async def _post(self, url: str, method: str, payload: dict) -> Any:
        session = await self._get_session()

        try:
            async with session.post(url, json=payload) as response:
                if response.status == 429 or response.status >= 500:
                    raise _EndpointUnavailable(f"HTTP {response.status}")
                if response.status >= 400:
                    raise RPCException(
                        f"RPC HTTP error {response.status}: {method}",
                        details={"method": method, "status": response.status},
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise RPCException(
                        f"Malformed RPC response: {method}",
                        details={"method": method, "error": str(e)},
                    )
        except aiohttp.ClientError as e:
            raise _EndpointUnavailable(f"connection error: {e}")
        except asyncio.TimeoutError:
            raise _EndpointUnavailable("timeout")

        if not isinstance(data, dict):
            raise RPCException(
                f"Malformed RPC response: {method}",
                details={"method": method},
            )

        if data.get("error"):
            raise RPCException(
                f"RPC error: {data['error']}",
                details={"method": method, "error": data["error"]},
            )

        if "result" not in data:
            raise RPCException(
                f"Malformed RPC response: {method}",
                details={"method": method},
            )

        return data["result"]

    async def get_latest_blockhash(
        self, commitment: str = "finalized"
    ) -> Dict[str, Any]:
        """
        Get latest blockhash.

        Returns:
            {"blockhash": str, "lastValidBlockHeight": int} (values may be
            missing on a degraded node)
        """
        result = await self.call(
            "getLatestBlockhash",
            [{"commitment": commitment}],
        )
        if not isinstance(result, dict):
            return {}
        value = result.get("value")
        return value if isinstance(value, dict) else {}

    async def get_block_height(self, commitment: str = "finalized") -> int:
        """Get current block height."""
        result = await self.call("getBlockHeight", [{"commitment": commitment}])
        if not isinstance(result, int):
            raise RPCException(
                "Malformed getBlockHeight response",
                details={"result": result},
            )
        return result

    async def get_signature_statuses(
        self,
        signatures: List[str],
        search_transaction_history: bool = True,
    ) -> List[Optional[Dict[str, Any]]]:
        """
        Get signature statuses.

        Returns:
            One entry per signature, None where the node has no record
        """
        result = await self.call(
            "getSignatureStatuses",
            [
                signatures,
                {"searchTransactionHistory": search_transaction_history},
            ],
        )
        if not isinstance(result, dict) or not isinstance(
            result.get("value"), list
        ):
            raise RPCException(
                "Malformed getSignatureStatuses response",
                details={"result": result},
            )
        for entry in result["value"]:
            if entry is not None and not isinstance(entry, dict):
                raise RPCException(
                    "Malformed getSignatureStatuses entry",
                    details={"entry": entry},
                )
        return result["value"]

    async def get_transaction(
        self,
        signature: str,
        commitment: str = "finalized",
    ) -> Optional[Dict[str, Any]]:
        """
        Get transaction details.

        Returns:
            Transaction record, or None if not found at that commitment
        """
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is not None and not isinstance(result, dict):
            raise RPCException(
                "Malformed getTransaction response",
                details={"result": result},
            )
        return result

    async def get_version(self) -> Dict[str, Any]:
        """Get node version (used by health checks)."""
        return await self.call("getVersion")

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
