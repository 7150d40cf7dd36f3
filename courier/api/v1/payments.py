"""
Payment and wallet API endpoints.

Order payments and wallet top-ups are collected through the payment
gateway's hosted checkout; clients open the returned authorization URL and
call the verify endpoint with the reference afterwards.
"""

from fastapi import APIRouter, Query, Request, status

from courier.api.deps import CurrentActor, CustomerActor, PaymentServiceDep, WalletServiceDep
from courier.core.logging import get_logger
from courier.core.rate_limit import limiter
from courier.schemas.payments import (
    OrderPaymentRequest,
    PaymentTransactionResponse,
    WalletResponse,
    WalletTopupRequest,
    WalletTransactionResponse,
)

logger = get_logger(__name__)

router = APIRouter(tags=["payments"])


@router.post(
    "/payments/orders",
    response_model=PaymentTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start order payment",
)
@limiter.limit("20/minute")
async def initialize_order_payment(
    request: Request,
    payload: OrderPaymentRequest,
    actor: CustomerActor,
    service: PaymentServiceDep,
) -> PaymentTransactionResponse:
    transaction = await service.initialize_order_payment(actor, payload.order_id, payload.email)
    return PaymentTransactionResponse.model_validate(transaction)


@router.post(
    "/payments/verify/{reference}",
    response_model=PaymentTransactionResponse,
    summary="Verify payment",
    description="Settle a pending payment with the gateway's verdict",
)
async def verify_payment(
    reference: str,
    actor: CurrentActor,
    service: PaymentServiceDep,
) -> PaymentTransactionResponse:
    transaction = await service.verify_payment(actor, reference)
    return PaymentTransactionResponse.model_validate(transaction)


@router.get(
    "/payments",
    response_model=list[PaymentTransactionResponse],
    summary="List my payments",
)
async def list_payments(
    actor: CurrentActor,
    service: PaymentServiceDep,
    limit: int = Query(50, ge=1, le=200),
) -> list[PaymentTransactionResponse]:
    transactions = await service.list_payments(actor, limit)
    return [PaymentTransactionResponse.model_validate(t) for t in transactions]


@router.get("/wallet", response_model=WalletResponse, summary="Get my wallet")
async def get_wallet(actor: CurrentActor, service: WalletServiceDep) -> WalletResponse:
    wallet = await service.get_wallet(actor)
    return WalletResponse.model_validate(wallet)


@router.get(
    "/wallet/transactions",
    response_model=list[WalletTransactionResponse],
    summary="Wallet ledger",
)
async def list_wallet_transactions(
    actor: CurrentActor,
    service: WalletServiceDep,
    limit: int = Query(50, ge=1, le=200),
) -> list[WalletTransactionResponse]:
    entries = await service.list_transactions(actor, limit)
    return [WalletTransactionResponse.model_validate(e) for e in entries]


@router.post(
    "/wallet/topup",
    response_model=PaymentTransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start wallet top-up",
)
@limiter.limit("20/minute")
async def initialize_wallet_topup(
    request: Request,
    payload: WalletTopupRequest,
    actor: CurrentActor,
    service: PaymentServiceDep,
) -> PaymentTransactionResponse:
    transaction = await service.initialize_wallet_topup(actor, payload.amount, payload.email)
    return PaymentTransactionResponse.model_validate(transaction)
