"""
HTTP verification delegate.

Posts a finalized signature to the trusted storefront backend and
classifies its answer. Makes exactly one request per call: the backend
applies durable side effects, so it is never retried from here.
"""

import asyncio
from typing import Iterable, Optional

import aiohttp

from caissier.domain.entities import TransactionRequest
from caissier.domain.exceptions import VerificationDelegateError
from caissier.domain.services import IVerificationDelegate
from caissier.domain.value_objects import VerificationOutcome
from caissier.infrastructure.monitoring import metrics
from caissier.reporter import SystemReporter

DEFAULT_UNAVAILABLE_STATUS_CODES = (401, 403, 502)


class HttpVerificationDelegate(IVerificationDelegate):
    """
    Verification backend client.

    Classification:
    - 2xx {success: true}                        -> VERIFIED
    - 2xx {success: true, tempApproved: true}    -> TEMPORARILY_APPROVED
    - 2xx {success: false, error}                -> REJECTED
    - status in unavailable_status_codes         -> DELEGATE_UNAVAILABLE
    - connection failure or timeout              -> DELEGATE_UNAVAILABLE
    - other 4xx with {success: false, error}     -> REJECTED
    - anything else                              -> VerificationDelegateError
    """

    def __init__(
        self,
        endpoint_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 20.0,
        unavailable_status_codes: Iterable[int] = DEFAULT_UNAVAILABLE_STATUS_CODES,
        reporter: Optional[SystemReporter] = None,
    ):
        """
        Initialize verification delegate.

        Args:
            endpoint_url: Verification endpoint URL
            auth_token: Optional bearer token
            timeout: Total request timeout in seconds
            unavailable_status_codes: HTTP codes meaning "backend down"
            reporter: Optional logger
        """
        self.endpoint_url = endpoint_url
        self.auth_token = auth_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.unavailable_status_codes = frozenset(unavailable_status_codes)
        self.reporter = reporter or SystemReporter(name="caissier.verification")
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                connector=aiohttp.TCPConnector(
                    limit=50,
                    limit_per_host=20,
                    ttl_dns_cache=300,
                ),
            )
        return self._session

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def verify(self, request: TransactionRequest) -> VerificationOutcome:
        """
        Ask the backend to verify a finalized payment.

        Args:
            request: Request carrying signature, expected details, order id

        Returns:
            VerificationOutcome

        Raises:
            VerificationDelegateError: On an unexpected status or body
        """
        session = await self._get_session()
        signature = request.signature

        try:
            async with session.post(
                self.endpoint_url,
                json=request.to_payload(),
                headers=self._headers(),
            ) as response:
                status = response.status
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.reporter.warning(
                f"Verification backend unreachable for {signature[:16]}...: "
                f"{e or type(e).__name__}",
                context="Verification",
            )
            return self._record(VerificationOutcome.delegate_unavailable())

        outcome = self._classify(status, body, signature)
        return self._record(outcome)

    def _classify(self, status: int, body, signature: str) -> VerificationOutcome:
        if status in self.unavailable_status_codes:
            self.reporter.warning(
                f"Verification backend unavailable (HTTP {status}) for "
                f"{signature[:16]}..., deferring verification",
                context="Verification",
            )
            return VerificationOutcome.delegate_unavailable(status_code=status)

        if not isinstance(body, dict) or not isinstance(body.get("success"), bool):
            raise VerificationDelegateError(
                f"Unexpected verification response (HTTP {status})",
                status_code=status,
                details={"body": body},
            )

        if 200 <= status < 300:
            if body["success"]:
                if _temp_approved(body):
                    warning = body.get("warning")
                    self.reporter.info(
                        f"{signature[:16]}... temporarily approved: {warning}",
                        context="Verification",
                    )
                    return VerificationOutcome.temporarily_approved(warning)
                return VerificationOutcome.verified()
            return VerificationOutcome.rejected(_reason(body))

        if 400 <= status < 500 and not body["success"]:
            return VerificationOutcome.rejected(_reason(body))

        raise VerificationDelegateError(
            f"Verification backend error (HTTP {status}): {body.get('error')}",
            status_code=status,
            details={"body": body},
        )

    @staticmethod
    def _record(outcome: VerificationOutcome) -> VerificationOutcome:
        metrics.verification_outcomes_total.labels(outcome=outcome.kind.value).inc()
        return outcome

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()


def _temp_approved(body: dict) -> bool:
    if body.get("tempApproved"):
        return True
    verification = body.get("verification")
    return isinstance(verification, dict) and bool(verification.get("tempApproved"))


def _reason(body: dict) -> str:
    return str(body.get("error") or "Verification rejected")
