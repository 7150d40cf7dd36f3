"""Bill payment API endpoints."""

from fastapi import APIRouter, Query, Request, status

from courier.api.deps import BillsServiceDep, CurrentActor
from courier.core.rate_limit import limiter
from courier.schemas.bills import (
    BillPaymentRequest,
    BillPaymentResponse,
    SmartCardVerifyRequest,
    SmartCardVerifyResponse,
)

router = APIRouter(prefix="/bills", tags=["bills"])


@router.post(
    "",
    response_model=BillPaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pay a bill from the wallet",
)
@limiter.limit("20/minute")
async def pay_bill(
    request: Request,
    payload: BillPaymentRequest,
    actor: CurrentActor,
    service: BillsServiceDep,
) -> BillPaymentResponse:
    payment = await service.pay_bill(
        actor,
        payload.category,
        payload.provider,
        payload.account_number,
        payload.amount,
        phone=payload.phone,
        variation_code=payload.variation_code,
    )
    return BillPaymentResponse.model_validate(payment)


@router.post(
    "/verify-smart-card",
    response_model=SmartCardVerifyResponse,
    summary="Verify TV smart card",
)
async def verify_smart_card(
    payload: SmartCardVerifyRequest,
    actor: CurrentActor,
    service: BillsServiceDep,
) -> SmartCardVerifyResponse:
    content = await service.verify_smart_card(actor, payload.card_number, payload.service_id)
    return SmartCardVerifyResponse(content=content)


@router.get("", response_model=list[BillPaymentResponse], summary="List my bill payments")
async def list_bill_payments(
    actor: CurrentActor,
    service: BillsServiceDep,
    limit: int = Query(50, ge=1, le=200),
) -> list[BillPaymentResponse]:
    payments = await service.list_bill_payments(actor, limit)
    return [BillPaymentResponse.model_validate(p) for p in payments]
