"""
Confirmation orchestrator.

Drives one payment from submission to a single terminal status:

    idle -> submitted -> polling -> finalizing -> verifying ->
        success | rejected | timed_out | cancelled | error

Each signature runs as its own asyncio task whose future is the only
authoritative result. Callers awaiting the result can go away without
stopping the flow: once a payment is on chain the verification side
effect has to happen whether or not anyone is watching.
"""

import asyncio
import inspect
import time
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from caissier.domain.entities import (
    PaymentTransaction,
    ReconciliationEntry,
    ReconciliationReason,
    TransactionRequest,
)
from caissier.domain.exceptions import (
    CaissierException,
    RPCException,
    RegistryError,
    VerificationDelegateError,
)
from caissier.domain.services import (
    IReconciliationLog,
    ISignatureRegistry,
    IVerificationDelegate,
)
from caissier.domain.value_objects import (
    ConfirmationState,
    ExpectedPaymentDetails,
    PollOutcome,
    TransactionStatus,
    VerificationKind,
)
from caissier.infrastructure.blockchain.signature_poller import (
    SignatureStatusPoller,
)
from caissier.infrastructure.blockchain.transaction_builder import (
    TransactionBuilder,
)
from caissier.infrastructure.monitoring import metrics
from caissier.reporter import SystemReporter
from caissier.resilience import RetryExhaustedError, RetryPolicy

StatusCallback = Callable[[TransactionStatus], Union[None, Awaitable[None]]]
SubmitFn = Callable[[PaymentTransaction], Awaitable[str]]

FAILED_ON_CHAIN = "Transaction failed on chain"
DEFERRED_WARNING = (
    "Payment confirmed on chain. Order verification is delayed and will "
    "complete shortly."
)
OWNER_PENDING = (
    "Payment is already being confirmed by another request. Please check "
    "{explorer} for final status."
)


class _Flow:
    """Mutable bookkeeping for one signature's confirmation."""

    def __init__(self, request: TransactionRequest):
        self.request = request
        self.state = ConfirmationState.IDLE
        self.status: Optional[TransactionStatus] = None
        self.future: asyncio.Future = asyncio.get_running_loop().create_future()
        self.cancel_event = asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        self.callbacks: List[StatusCallback] = []
        self.terminal_only: List[StatusCallback] = []
        self.duplicate = False
        self.reconcile: Optional[tuple] = None
        self.started_at = time.monotonic()

    @property
    def signature(self) -> str:
        return self.request.signature


class ConfirmationHandle:
    """Caller's view of a running (or finished) confirmation."""

    def __init__(self, flow: _Flow, orchestrator: "ConfirmationOrchestrator"):
        self._flow = flow
        self._orchestrator = orchestrator

    @property
    def signature(self) -> str:
        return self._flow.signature

    @property
    def state(self) -> ConfirmationState:
        return self._flow.state

    @property
    def status(self) -> Optional[TransactionStatus]:
        """Latest status emitted for this flow."""
        return self._flow.status

    def done(self) -> bool:
        return self._flow.future.done()

    async def result(self) -> TransactionStatus:
        """
        Wait for the terminal status.

        Cancelling the awaiting caller does not cancel the flow.
        """
        return await asyncio.shield(self._flow.future)

    def cancel(self) -> bool:
        """
        Ask the flow to stop before the next status check.

        Returns:
            False if the flow already reached finalizing (the payment is on
            chain and must be verified) or is finished, True otherwise
        """
        return self._orchestrator._request_cancel(self._flow)


class ConfirmationOrchestrator:
    """
    Payment confirmation state machine.

    Guarantees:
    - The verification delegate is called at most once per signature, and
      only after the poller reported the transaction finalized without error
    - Every flow ends in exactly one terminal TransactionStatus, recorded in
      the registry before it is delivered
    - Exceptions never reach the caller; they become terminal statuses
    """

    def __init__(
        self,
        poller: SignatureStatusPoller,
        delegate: IVerificationDelegate,
        registry: ISignatureRegistry,
        reconciliation_log: Optional[IReconciliationLog] = None,
        transaction_builder: Optional[TransactionBuilder] = None,
        settle_delay: float = 1.0,
        explorer_name: str = "Solscan",
        explorer_url_template: str = "https://solscan.io/tx/{signature}",
        terminal_wait_attempts: int = 60,
        terminal_wait_base_delay: float = 0.25,
        terminal_wait_max_delay: float = 5.0,
        sleep=asyncio.sleep,
        reporter: Optional[SystemReporter] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            poller: Signature status poller
            delegate: Verification backend
            registry: Processed-signature registry
            reconciliation_log: Where deferred outcomes are recorded
            transaction_builder: Needed only for submit_and_confirm
            settle_delay: Seconds to wait before the first status check
            explorer_name: Block explorer named in user-facing messages
            explorer_url_template: Explorer URL with a {signature} field
            terminal_wait_attempts: Registry reads while waiting for another
                worker to record the terminal status of a duplicate
            terminal_wait_base_delay: First delay between those reads
            terminal_wait_max_delay: Ceiling for the doubling delay
            sleep: Sleep coroutine (injectable for tests)
            reporter: Optional logger
        """
        self.poller = poller
        self.delegate = delegate
        self.registry = registry
        self.reconciliation_log = reconciliation_log
        self.transaction_builder = transaction_builder
        self.settle_delay = settle_delay
        self.explorer_name = explorer_name
        self.explorer_url_template = explorer_url_template
        self.terminal_wait_attempts = terminal_wait_attempts
        self.terminal_wait_base_delay = terminal_wait_base_delay
        self.terminal_wait_max_delay = terminal_wait_max_delay
        self._sleep = sleep
        self.reporter = reporter or SystemReporter(name="caissier.orchestrator")

        self._flows: Dict[str, _Flow] = {}

    # ================================================================
    # Public API
    # ================================================================

    async def start(
        self,
        request: TransactionRequest,
        on_status_update: Optional[StatusCallback] = None,
    ) -> ConfirmationHandle:
        """
        Start (or join) the confirmation of a payment.

        A second caller for a signature that is already in flight joins the
        running flow and only receives its terminal status.

        Args:
            request: Payment to confirm
            on_status_update: Optional sync or async status callback

        Returns:
            ConfirmationHandle
        """
        signature = request.signature

        if not request.reference.is_on_chain:
            return await self._settle_off_chain(request, on_status_update)

        existing = self._flows.get(signature)
        if existing is not None:
            metrics.confirmation_duplicates_total.labels(scope="in_process").inc()
            self.reporter.info(
                f"Joining in-flight confirmation for {signature[:16]}...",
                context="Orchestrator",
            )
            if on_status_update is not None:
                await self._attach_terminal(existing, on_status_update)
            return ConfirmationHandle(existing, self)

        flow = _Flow(request)
        if on_status_update is not None:
            flow.callbacks.append(on_status_update)
        flow.status = TransactionStatus.processing_status(
            signature,
            state=ConfirmationState.IDLE,
            explorer_url=self.explorer_url(signature),
        )
        self._flows[signature] = flow
        flow.task = asyncio.create_task(
            self._run(flow),
            name=f"confirm-{signature[:16]}",
        )
        return ConfirmationHandle(flow, self)

    async def confirm(
        self,
        request: TransactionRequest,
        on_status_update: Optional[StatusCallback] = None,
    ) -> TransactionStatus:
        """Start (or join) a confirmation and wait for its terminal status."""
        handle = await self.start(request, on_status_update)
        return await handle.result()

    async def submit_and_confirm(
        self,
        tx_or_instructions: Union[PaymentTransaction, Sequence[Instruction]],
        fee_payer: Union[Pubkey, str],
        submit: SubmitFn,
        expected_details: Optional[ExpectedPaymentDetails] = None,
        order_id: Optional[str] = None,
        on_status_update: Optional[StatusCallback] = None,
    ) -> TransactionStatus:
        """
        Prepare a transaction, hand it to submit, then confirm it.

        submit signs and sends the prepared transaction and returns its
        signature. Preparation or submission failures end in a terminal
        error status.
        """
        if self.transaction_builder is None:
            return await self._fail_before_submit(
                "Transaction builder not configured", on_status_update
            )

        try:
            transaction = await self.transaction_builder.prepare(
                tx_or_instructions, fee_payer
            )
        except (CaissierException, ValueError) as e:
            return await self._fail_before_submit(
                f"Failed to prepare transaction: {e}", on_status_update
            )

        try:
            signature = await submit(transaction)
        except Exception as e:
            return await self._fail_before_submit(
                f"Failed to submit transaction: {e}", on_status_update
            )

        request = TransactionRequest.for_signature(
            signature,
            expected_details=expected_details,
            order_id=order_id,
        )
        return await self.confirm(request, on_status_update)

    async def status(self, signature: str) -> Optional[TransactionStatus]:
        """Latest in-flight status, else the recorded terminal status."""
        flow = self._flows.get(signature)
        if flow is not None:
            return flow.status
        return await self.registry.get_terminal(signature)

    def in_flight(self) -> List[str]:
        """Signatures with a running flow."""
        return list(self._flows)

    def explorer_url(self, signature: Optional[str]) -> Optional[str]:
        if not signature:
            return None
        return self.explorer_url_template.format(signature=signature)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Wait for in-flight flows, then close clients.

        Flows still polling after timeout are cancelled and recorded for
        reconciliation. Flows that reached finalizing are never cancelled:
        shutdown keeps waiting for their verification to finish.
        """
        tasks = [flow.task for flow in self._flows.values() if flow.task]
        if tasks:
            self.reporter.info(
                f"Waiting for {len(tasks)} in-flight confirmation(s)",
                context="Orchestrator",
            )
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                await self._stop_pending(pending, timeout)

        await self.delegate.close()
        await self.poller.rpc_client.close()
        await self.registry.close()
        if self.reconciliation_log is not None:
            await self.reconciliation_log.close()

    async def _stop_pending(self, pending, timeout: float) -> None:
        finalizing = {
            flow.task
            for flow in self._flows.values()
            if flow.task in pending and flow.state.is_past_finalizing
        }
        abortable = [task for task in pending if task not in finalizing]

        if abortable:
            self.reporter.warning(
                f"{len(abortable)} confirmation(s) still polling after "
                f"{timeout}s, cancelling",
                context="Orchestrator",
            )
            for task in abortable:
                task.cancel()
            await asyncio.gather(*abortable, return_exceptions=True)

        if finalizing:
            self.reporter.critical(
                f"{len(finalizing)} finalized payment(s) still verifying after "
                f"{timeout}s, waiting for them to finish",
                context="Orchestrator",
            )
            await asyncio.gather(*finalizing, return_exceptions=True)

    # ================================================================
    # Flow
    # ================================================================

    async def _run(self, flow: _Flow) -> None:
        try:
            terminal = await self._execute(flow)
        except asyncio.CancelledError:
            flow.reconcile = (ReconciliationReason.CANCELLED, "flow task cancelled")
            await self._finish(flow, self._cancelled_status(flow.signature))
            raise
        except Exception as e:
            self.reporter.error(
                f"Confirmation of {flow.signature[:16]}... failed: {e}",
                context="Orchestrator",
            )
            terminal = TransactionStatus.failed(
                flow.signature,
                f"Failed to confirm transaction: {e}",
                state=ConfirmationState.ERROR,
                explorer_url=self.explorer_url(flow.signature),
            )
        await self._finish(flow, terminal)

    async def _execute(self, flow: _Flow) -> TransactionStatus:
        signature = flow.signature
        explorer_url = self.explorer_url(signature)

        if not await self.registry.register(signature):
            return await self._duplicate_status(flow)

        self._transition(flow, ConfirmationState.SUBMITTED)
        await self._emit(
            flow,
            TransactionStatus.processing_status(
                signature,
                state=ConfirmationState.SUBMITTED,
                explorer_url=explorer_url,
            ),
        )

        await self._sleep(self.settle_delay)
        self._transition(flow, ConfirmationState.POLLING)

        try:
            poll = await self.poller.poll_until_finalized(
                signature,
                cancel_event=flow.cancel_event,
            )
        except RPCException as e:
            flow.reconcile = (ReconciliationReason.TIMED_OUT, str(e))
            return TransactionStatus.failed(
                signature,
                "Failed to confirm transaction. Please check "
                f"{self.explorer_name} for status.",
                state=ConfirmationState.ERROR,
                explorer_url=explorer_url,
            )

        if poll.outcome == PollOutcome.CANCELLED:
            flow.reconcile = (
                ReconciliationReason.CANCELLED,
                f"cancelled after {poll.attempts} status checks",
            )
            return self._cancelled_status(signature)

        if poll.outcome == PollOutcome.FINALIZED_ERR:
            return TransactionStatus.failed(
                signature,
                FAILED_ON_CHAIN,
                state=ConfirmationState.REJECTED,
                explorer_url=explorer_url,
            )

        if poll.outcome == PollOutcome.TIMEOUT:
            flow.reconcile = (
                ReconciliationReason.TIMED_OUT,
                f"not finalized after {poll.attempts} status checks",
            )
            return TransactionStatus.failed(
                signature,
                "Transaction confirmation timeout. Please check "
                f"{self.explorer_name} for final status.",
                state=ConfirmationState.TIMED_OUT,
                explorer_url=explorer_url,
            )

        self._transition(flow, ConfirmationState.FINALIZING)
        return await self._verify(flow)

    async def _verify(self, flow: _Flow) -> TransactionStatus:
        signature = flow.signature
        explorer_url = self.explorer_url(signature)

        self._transition(flow, ConfirmationState.VERIFYING)
        try:
            outcome = await self.delegate.verify(flow.request)
        except VerificationDelegateError as e:
            flow.reconcile = (ReconciliationReason.DELEGATE_ERROR, str(e))
            self.reporter.error(
                f"Verification of {signature[:16]}... errored: {e}",
                context="Orchestrator",
            )
            return TransactionStatus.failed(
                signature,
                f"Payment verification error: {e}",
                state=ConfirmationState.ERROR,
                explorer_url=explorer_url,
            )

        if outcome.kind == VerificationKind.REJECTED:
            self.reporter.warning(
                f"Verification rejected {signature[:16]}...: {outcome.reason}",
                context="Orchestrator",
            )
            return TransactionStatus.failed(
                signature,
                f"Payment verification failed: {outcome.reason}",
                state=ConfirmationState.REJECTED,
                explorer_url=explorer_url,
            )

        warning = None
        if outcome.kind == VerificationKind.TEMPORARILY_APPROVED:
            warning = outcome.warning or DEFERRED_WARNING
            flow.reconcile = (ReconciliationReason.TEMPORARILY_APPROVED, warning)
        elif outcome.kind == VerificationKind.DELEGATE_UNAVAILABLE:
            warning = DEFERRED_WARNING
            flow.reconcile = (
                ReconciliationReason.DELEGATE_UNAVAILABLE,
                f"HTTP {outcome.status_code}" if outcome.status_code else None,
            )

        return TransactionStatus.confirmed(
            signature,
            warning=warning,
            explorer_url=explorer_url,
        )

    async def _duplicate_status(self, flow: _Flow) -> TransactionStatus:
        flow.duplicate = True
        signature = flow.signature
        metrics.confirmation_duplicates_total.labels(scope="registry").inc()

        recorded = await self._await_recorded_terminal(signature)
        if recorded is not None:
            self.reporter.info(
                f"{signature[:16]}... already confirmed ({recorded.state.value})",
                context="Orchestrator",
            )
            return recorded

        self.reporter.warning(
            f"{signature[:16]}... registered elsewhere with no terminal status "
            f"after {self.terminal_wait_attempts} reads",
            context="Orchestrator",
        )
        return TransactionStatus.failed(
            signature,
            OWNER_PENDING.format(explorer=self.explorer_name),
            state=ConfirmationState.TIMED_OUT,
            explorer_url=self.explorer_url(signature),
        )

    async def _await_recorded_terminal(
        self, signature: str
    ) -> Optional[TransactionStatus]:
        """
        Read the registry until the owning flow records its terminal status.

        The owner may live in another process, or may have died before
        recording. Returns None when the reads run out.
        """

        def backoff(attempts: int) -> float:
            return min(
                self.terminal_wait_base_delay * 2 ** (attempts - 1),
                self.terminal_wait_max_delay,
            )

        policy = RetryPolicy(
            max_attempts=self.terminal_wait_attempts,
            backoff=backoff,
            retry_on_exception=lambda e: isinstance(e, RegistryError),
            retry_on_result=lambda status: status is None,
            sleep=self._sleep,
        )
        try:
            return await policy.run(self.registry.get_terminal, signature)
        except RetryExhaustedError:
            return None

    async def _finish(self, flow: _Flow, terminal: TransactionStatus) -> None:
        if flow.future.done():
            return

        flow.state = terminal.state
        flow.status = terminal

        if not flow.duplicate:
            try:
                await self.registry.record_terminal(flow.signature, terminal)
            except RegistryError as e:
                self.reporter.error(
                    f"Could not record terminal status for "
                    f"{flow.signature[:16]}...: {e}",
                    context="Orchestrator",
                )
            await self._record_reconciliation(flow)
            metrics.confirmations_total.labels(state=terminal.state.value).inc()
            metrics.confirmation_duration_seconds.observe(
                time.monotonic() - flow.started_at
            )
            self.reporter.info(
                f"{flow.signature[:16]}... -> {terminal.state.value}",
                context="Orchestrator",
            )

        flow.future.set_result(terminal)
        if self._flows.get(flow.signature) is flow:
            del self._flows[flow.signature]

        for callback in flow.callbacks + flow.terminal_only:
            await self._deliver(callback, terminal)

    async def _record_reconciliation(self, flow: _Flow) -> None:
        if flow.reconcile is None or self.reconciliation_log is None:
            return

        reason, detail = flow.reconcile
        entry = ReconciliationEntry(
            signature=flow.signature,
            reason=reason,
            order_id=flow.request.order_id,
            detail=detail,
        )
        try:
            await self.reconciliation_log.record(entry)
        except RegistryError as e:
            self.reporter.error(
                f"Could not record {flow.signature[:16]}... for "
                f"reconciliation: {e}",
                context="Orchestrator",
            )
            return
        metrics.reconciliation_entries_total.labels(reason=reason.value).inc()

    # ================================================================
    # Helpers
    # ================================================================

    def _transition(self, flow: _Flow, state: ConfirmationState) -> None:
        flow.state = state
        if flow.status is not None and flow.status.processing:
            flow.status = TransactionStatus.processing_status(
                flow.signature,
                state=state,
                explorer_url=flow.status.explorer_url,
            )
        self.reporter.debug(
            f"{flow.signature[:16]}... -> {state.value}",
            context="Orchestrator",
            verbose_level=2,
        )

    async def _emit(self, flow: _Flow, status: TransactionStatus) -> None:
        flow.status = status
        for callback in flow.callbacks:
            await self._deliver(callback, status)

    async def _attach_terminal(self, flow: _Flow, callback: StatusCallback) -> None:
        if flow.future.done():
            await self._deliver(callback, flow.future.result())
        else:
            flow.terminal_only.append(callback)

    async def _deliver(self, callback: StatusCallback, status: TransactionStatus):
        try:
            result = callback(status)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.reporter.error(
                f"Status callback failed for {status.signature}: {e}",
                context="Orchestrator",
            )

    def _request_cancel(self, flow: _Flow) -> bool:
        if flow.future.done() or flow.state.is_past_finalizing:
            return False
        flow.cancel_event.set()
        self.reporter.info(
            f"Cancellation requested for {flow.signature[:16]}...",
            context="Orchestrator",
        )
        return True

    def _cancelled_status(self, signature: str) -> TransactionStatus:
        return TransactionStatus.failed(
            signature,
            "Confirmation cancelled before finalization. Please check "
            f"{self.explorer_name} for final status.",
            state=ConfirmationState.CANCELLED,
            explorer_url=self.explorer_url(signature),
        )

    async def _settle_off_chain(
        self,
        request: TransactionRequest,
        on_status_update: Optional[StatusCallback],
    ) -> ConfirmationHandle:
        flow = _Flow(request)
        terminal = TransactionStatus.confirmed(request.signature)
        flow.state = terminal.state
        flow.status = terminal
        flow.future.set_result(terminal)
        metrics.confirmations_total.labels(state=terminal.state.value).inc()
        self.reporter.info(
            f"{request.reference.kind.value} payment {request.signature} "
            "settles off chain",
            context="Orchestrator",
        )
        if on_status_update is not None:
            await self._deliver(on_status_update, terminal)
        return ConfirmationHandle(flow, self)

    async def _fail_before_submit(
        self,
        message: str,
        on_status_update: Optional[StatusCallback],
    ) -> TransactionStatus:
        self.reporter.error(message, context="Orchestrator")
        terminal = TransactionStatus.failed(
            None, message, state=ConfirmationState.ERROR
        )
        metrics.confirmations_total.labels(state=terminal.state.value).inc()
        if on_status_update is not None:
            await self._deliver(on_status_update, terminal)
        return terminal
