"""Payment and transaction API endpoints.

Provides routes for:
- Creating a payment intent for a course
- Recording a confirmed purchase (enrolls the buyer)
- Admin: listing transactions and changing their status
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from learninghub.auth.dependencies import AdminUser, CurrentUser
from learninghub.core.responses import APIError, SuccessResponse
from learninghub.payments.schemas import (
    CreatePaymentIntentRequest,
    PaymentIntentResponse,
    PriceBreakdownResponse,
    RecordTransactionRequest,
    TransactionResponse,
    UpdateTransactionStatusRequest,
)
from learninghub.payments.service import PaymentError, PaymentService
from learninghub.progress.service import ProgressError


router = APIRouter(prefix="/v1/payments", tags=["payments"])
admin_router = APIRouter(prefix="/v1/admin/transactions", tags=["admin"])


async def get_payment_service(request: Request) -> PaymentService:
    service = getattr(request.app.state, "payment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment service unavailable",
        )
    return service


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]


def handle_payment_error(error: PaymentError | ProgressError) -> HTTPException:
    status_map = {
        "payments_not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
        "not_found": status.HTTP_404_NOT_FOUND,
        "user_not_found": status.HTTP_404_NOT_FOUND,
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "transaction_not_found": status.HTTP_404_NOT_FOUND,
        "validation_error": status.HTTP_400_BAD_REQUEST,
        "upstream_failure": status.HTTP_502_BAD_GATEWAY,
    }
    return APIError(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        message=error.message,
        code=error.code,
    )


@router.post("/intents", response_model=SuccessResponse[PaymentIntentResponse])
async def create_payment_intent(
    data: CreatePaymentIntentRequest,
    user: CurrentUser,
    service: PaymentServiceDep,
) -> SuccessResponse[PaymentIntentResponse]:
    try:
        intent, breakdown = await service.create_payment_intent(user.id, data.course_id)
    except PaymentError as e:
        raise handle_payment_error(e) from e

    return SuccessResponse(
        data=PaymentIntentResponse(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            amount=intent.amount,
            currency=intent.currency,
            breakdown=PriceBreakdownResponse.from_breakdown(breakdown),
        )
    )


@router.post("/transactions", response_model=SuccessResponse[TransactionResponse])
async def record_transaction(
    data: RecordTransactionRequest,
    user: CurrentUser,
    service: PaymentServiceDep,
) -> SuccessResponse[TransactionResponse]:
    """Record a succeeded payment; repeating the call is safe."""
    try:
        txn, created = await service.record_transaction(
            user.id,
            data.course_id,
            data.payment_intent_id,
            full_name=data.full_name,
            phone_number=data.phone_number,
        )
    except (PaymentError, ProgressError) as e:
        raise handle_payment_error(e) from e

    return SuccessResponse(
        data=TransactionResponse.from_transaction(txn),
        message="Transaction recorded" if created else "Transaction already recorded",
    )


@admin_router.get("", response_model=SuccessResponse[list[TransactionResponse]])
async def list_transactions(
    _admin: AdminUser,
    service: PaymentServiceDep,
) -> SuccessResponse[list[TransactionResponse]]:
    items = await service.list_transactions()
    return SuccessResponse(data=[TransactionResponse.from_transaction(t) for t in items])


@admin_router.patch(
    "/{transaction_id}/status", response_model=SuccessResponse[TransactionResponse]
)
async def update_transaction_status(
    transaction_id: str,
    data: UpdateTransactionStatusRequest,
    _admin: AdminUser,
    service: PaymentServiceDep,
) -> SuccessResponse[TransactionResponse]:
    try:
        txn = await service.update_status(transaction_id, data.status)
    except PaymentError as e:
        raise handle_payment_error(e) from e
    return SuccessResponse(
        data=TransactionResponse.from_transaction(txn),
        message="Transaction status updated successfully",
    )
