"""
Bid API endpoints.

Partners submit and withdraw offers on open orders; the order's customer
lists them and accepts or rejects them.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Header, status

from courier.api.deps import BidServiceDep, CurrentActor, CustomerActor, PartnerActor
from courier.core.logging import get_logger
from courier.schemas.bids import (
    BidAcceptanceResponse,
    BidAcceptRequest,
    BidCreateRequest,
    BidResponse,
)
from courier.schemas.orders import OrderResponse

logger = get_logger(__name__)

router = APIRouter(tags=["bids"])


@router.post(
    "/orders/{order_id}/bids",
    response_model=BidResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit bid",
)
async def submit_bid(
    order_id: UUID,
    payload: BidCreateRequest,
    actor: PartnerActor,
    service: BidServiceDep,
) -> BidResponse:
    bid = await service.submit_bid(
        actor,
        order_id,
        payload.bid_amount,
        payload.vehicle_type,
        payload.estimated_pickup_minutes,
        payload.message,
    )
    return BidResponse.model_validate(bid)


@router.get(
    "/orders/{order_id}/bids",
    response_model=list[BidResponse],
    summary="List bids on an order",
)
async def list_bids(order_id: UUID, actor: CurrentActor, service: BidServiceDep) -> list[BidResponse]:
    bids = await service.list_bids(actor, order_id)
    return [BidResponse.model_validate(b) for b in bids]


@router.post(
    "/bids/{bid_id}/accept",
    response_model=BidAcceptanceResponse,
    summary="Accept bid",
    description="Assign the bidding partner to the order and reject the other bids",
)
async def accept_bid(
    bid_id: UUID,
    actor: CustomerActor,
    service: BidServiceDep,
    payload: Optional[BidAcceptRequest] = None,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
) -> BidAcceptanceResponse:
    request_id = (payload.request_id if payload else None) or idempotency_key
    result = await service.accept_bid(actor, bid_id, request_id)
    return BidAcceptanceResponse(
        bid=BidResponse.model_validate(result.bid),
        order=OrderResponse.model_validate(result.order),
        replayed=result.replayed,
    )


@router.post("/bids/{bid_id}/reject", response_model=BidResponse, summary="Reject bid")
async def reject_bid(bid_id: UUID, actor: CustomerActor, service: BidServiceDep) -> BidResponse:
    bid = await service.reject_bid(actor, bid_id)
    return BidResponse.model_validate(bid)


@router.post("/bids/{bid_id}/withdraw", response_model=BidResponse, summary="Withdraw bid")
async def withdraw_bid(bid_id: UUID, actor: PartnerActor, service: BidServiceDep) -> BidResponse:
    bid = await service.withdraw_bid(actor, bid_id)
    return BidResponse.model_validate(bid)
