"""
Confirmation API routes.

Starts payment confirmations and reports their status.
"""

from fastapi import APIRouter, HTTPException, Request, Response, status

from caissier.domain.entities import TransactionRequest
from caissier.domain.value_objects import ExpectedPaymentDetails, PaymentReference
from caissier.presentation.schemas.confirmation import (
    ConfirmationRequest,
    ReconciliationEntryResponse,
    ReconciliationListResponse,
    TransactionStatusResponse,
)

router = APIRouter(tags=["confirmations"])


def _to_request(body: ConfirmationRequest) -> TransactionRequest:
    expected = None
    if body.expectedDetails is not None:
        expected = ExpectedPaymentDetails(
            amount=body.expectedDetails.amount,
            buyer=body.expectedDetails.buyer,
            recipient=body.expectedDetails.recipient,
        )
    return TransactionRequest(
        reference=PaymentReference.from_identifier(body.signature),
        expected_details=expected,
        order_id=body.orderId,
    )


@router.post(
    "/confirmations",
    response_model=TransactionStatusResponse,
    status_code=status.HTTP_200_OK,
    responses={202: {"model": TransactionStatusResponse}},
)
async def create_confirmation(
    body: ConfirmationRequest,
    req: Request,
    response: Response,
):
    """
    Confirm a submitted payment.

    Idempotent per signature: repeated calls never re-run verification.
    With wait=false the current status is returned with 202 while the
    confirmation continues in the background.
    """
    orchestrator = req.app.state.orchestrator

    try:
        request = _to_request(body)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    if body.wait:
        result = await orchestrator.confirm(request)
        return TransactionStatusResponse(**result.to_dict())

    handle = await orchestrator.start(request)
    current = handle.status
    if current.processing:
        response.status_code = status.HTTP_202_ACCEPTED
    return TransactionStatusResponse(**current.to_dict())


@router.get(
    "/confirmations/{signature}",
    response_model=TransactionStatusResponse,
)
async def get_confirmation(signature: str, req: Request):
    """Latest status of a confirmation, in flight or finished."""
    orchestrator = req.app.state.orchestrator

    current = await orchestrator.status(signature)
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No confirmation for signature {signature}",
        )
    return TransactionStatusResponse(**current.to_dict())


@router.get(
    "/reconciliation",
    response_model=ReconciliationListResponse,
)
async def list_reconciliation(req: Request, limit: int = 50):
    """Payments whose verification still has to be reconciled."""
    reconciliation_log = req.app.state.reconciliation_log

    entries = await reconciliation_log.pending(limit=max(1, min(limit, 500)))
    return ReconciliationListResponse(
        entries=[ReconciliationEntryResponse(**e.to_dict()) for e in entries]
    )
