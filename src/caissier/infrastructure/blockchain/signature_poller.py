"""
Signature status poller.

Polls a signature until the network reports it finalized, with capped
exponential backoff between attempts. A finalized status is optionally
corroborated with getTransaction at finalized commitment before it is
reported as success.
"""

import asyncio
import random
from typing import Optional, Union

from caissier.domain.exceptions import RPCException
from caissier.domain.value_objects import (
    ConfirmationAttempt,
    ConfirmationLevel,
    PollOutcome,
    PollResult,
)
from caissier.infrastructure.blockchain.solana_rpc_client import SolanaRPCClient
from caissier.infrastructure.monitoring import metrics
from caissier.reporter import SystemReporter
from caissier.resilience import (
    RetryExhaustedError,
    RetryPolicy,
    compute_poll_delay_ms,
)

NOT_FOUND_AT_FINALIZED = "Transaction not found at finalized commitment"


class SignatureStatusPoller:
    """
    Polls getSignatureStatuses for one signature at a time.

    Outcomes:
    - FINALIZED_OK: finalized without error (and corroborated)
    - FINALIZED_ERR: finalized with an on-chain error, never retried
    - TIMEOUT: attempts used up before finality (not an error)
    - CANCELLED: cancel_event was set before an attempt

    An RPC error on the last allowed attempt propagates as RPCException.
    """

    def __init__(
        self,
        rpc_client: SolanaRPCClient,
        max_retries: int = 30,
        initial_delay_ms: int = 1000,
        backoff_factor: float = 1.5,
        max_delay_ms: int = 10000,
        max_jitter_ms: int = 1000,
        corroborate: bool = True,
        sleep=asyncio.sleep,
        rng: Optional[random.Random] = None,
        reporter: Optional[SystemReporter] = None,
    ):
        self.rpc_client = rpc_client
        self.max_retries = max_retries
        self.initial_delay_ms = initial_delay_ms
        self.backoff_factor = backoff_factor
        self.max_delay_ms = max_delay_ms
        self.max_jitter_ms = max_jitter_ms
        self.corroborate = corroborate
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.reporter = reporter or SystemReporter(name="caissier.poller")

    def compute_delay_ms(
        self, attempts: int, initial_delay_ms: Optional[int] = None
    ) -> float:
        """Delay before the next attempt after `attempts` attempts."""
        return compute_poll_delay_ms(
            attempts,
            initial_delay_ms=(
                self.initial_delay_ms
                if initial_delay_ms is None
                else initial_delay_ms
            ),
            factor=self.backoff_factor,
            max_delay_ms=self.max_delay_ms,
            max_jitter_ms=self.max_jitter_ms,
            rng=self._rng,
        )

    async def poll_until_finalized(
        self,
        signature: str,
        max_retries: Optional[int] = None,
        initial_delay_ms: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PollResult:
        """
        Poll a signature until finalized, failed, exhausted or cancelled.

        Args:
            signature: Transaction signature
            max_retries: Attempt limit (defaults to configured value)
            initial_delay_ms: Backoff base (defaults to configured value)
            cancel_event: Checked before every attempt

        Returns:
            PollResult

        Raises:
            RPCException: If the last allowed attempt failed at RPC level
        """
        limit = self.max_retries if max_retries is None else max_retries
        made = 0

        async def attempt_once() -> Union[PollResult, ConfirmationAttempt]:
            nonlocal made
            if cancel_event is not None and cancel_event.is_set():
                return PollResult(outcome=PollOutcome.CANCELLED, attempts=made)

            index = made
            made += 1
            return await self._check(signature, index)

        def log_retry(retry_state):
            outcome = retry_state.outcome
            if outcome.failed:
                self.reporter.warning(
                    f"Status check {retry_state.attempt_number}/{limit} for "
                    f"{signature[:16]}... failed: {outcome.exception()}",
                    context="Poller",
                )
            else:
                attempt = outcome.result()
                self.reporter.debug(
                    f"Status check {retry_state.attempt_number}/{limit} for "
                    f"{signature[:16]}...: {attempt.level.value}",
                    context="Poller",
                )

        policy = RetryPolicy(
            max_attempts=limit,
            backoff=lambda n: self.compute_delay_ms(n, initial_delay_ms) / 1000,
            retry_on_exception=lambda e: isinstance(e, RPCException),
            retry_on_result=lambda r: not isinstance(r, PollResult),
            sleep=self._sleep,
            before_sleep=log_retry,
        )

        try:
            result = await policy.run(attempt_once)
        except RetryExhaustedError as e:
            if e.last_exception is not None:
                self.reporter.error(
                    f"Status checks for {signature[:16]}... exhausted on "
                    f"RPC error: {e.last_exception}",
                    context="Poller",
                )
                raise e.last_exception
            result = PollResult(
                outcome=PollOutcome.TIMEOUT,
                attempts=e.attempts,
                last_attempt=e.last_result,
            )
            self.reporter.warning(
                f"{signature[:16]}... not finalized after {e.attempts} checks",
                context="Poller",
            )

        if result.attempts:
            metrics.poll_attempts.observe(result.attempts)
        return result

    async def _check(
        self, signature: str, index: int
    ) -> Union[PollResult, ConfirmationAttempt]:
        statuses = await self.rpc_client.get_signature_statuses(
            [signature],
            search_transaction_history=True,
        )
        status = statuses[0] if statuses else None

        if not status:
            return ConfirmationAttempt(index=index)
        if not isinstance(status, dict):
            raise RPCException(
                "Malformed signature status",
                details={"status": status},
            )

        attempt = ConfirmationAttempt(
            index=index,
            level=ConfirmationLevel.from_rpc(status.get("confirmationStatus")),
            err=status.get("err"),
        )
        if not attempt.is_final:
            return attempt

        if attempt.err:
            self.reporter.warning(
                f"{signature[:16]}... finalized with error: {attempt.err}",
                context="Poller",
            )
            return PollResult(
                outcome=PollOutcome.FINALIZED_ERR,
                attempts=index + 1,
                err=attempt.err,
                last_attempt=attempt,
            )

        if self.corroborate:
            failure = await self._corroborate(signature)
            if failure is not None:
                self.reporter.warning(
                    f"{signature[:16]}... failed corroboration: {failure}",
                    context="Poller",
                )
                return PollResult(
                    outcome=PollOutcome.FINALIZED_ERR,
                    attempts=index + 1,
                    err=failure,
                    last_attempt=attempt,
                )

        self.reporter.info(
            f"{signature[:16]}... finalized on check {index + 1}",
            context="Poller",
        )
        return PollResult(
            outcome=PollOutcome.FINALIZED_OK,
            attempts=index + 1,
            last_attempt=attempt,
        )

    async def _corroborate(self, signature: str):
        """Return an error payload if getTransaction contradicts success."""
        record = await self.rpc_client.get_transaction(signature, "finalized")
        if not record:
            return NOT_FOUND_AT_FINALIZED
        if not isinstance(record, dict):
            raise RPCException(
                "Malformed getTransaction response",
                details={"result": record},
            )
        meta = record.get("meta") or {}
        return meta.get("err") or None
