"""
Delivery order API endpoints.

This module implements the FastAPI router for fee quotes, order creation,
customer and partner order listings, the partner-side lifecycle actions,
cancellation, and the order tracking feed (history over HTTP and a
WebSocket push stream). Domain errors propagate to the application's
CourierError handler.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, Request, WebSocket, status

from courier.api.deps import CurrentActor, CustomerActor, OrderServiceDep, PartnerActor
from courier.api.streaming import (
    WS_NORMAL_CLOSURE,
    WS_POLICY_VIOLATION,
    WS_TRY_AGAIN_LATER,
    relay,
)
from courier.cache.redis_client import get_connected_redis_client
from courier.core.errors import CourierError
from courier.core.logging import get_logger
from courier.core.rate_limit import limiter
from courier.core.security import TokenError, actor_from_token
from courier.database.connection import get_session
from courier.schemas.orders import (
    CancelOrderRequest,
    DeliveryProofRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    QuoteRequest,
    QuoteResponse,
    TrackingEventResponse,
    TransitionNoteRequest,
)
from courier.services.orders.enums import OrderStatus, VehicleType
from courier.services.orders.service import OrderService
from courier.services.tracking.feed import TrackingFeed

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/quote",
    response_model=QuoteResponse,
    summary="Preview delivery fee",
)
async def quote_order(request: QuoteRequest, service: OrderServiceDep) -> QuoteResponse:
    fee = service.quote(request.distance_km, request.delivery_type, request.is_fragile)
    return QuoteResponse(
        base_fee=fee.base_fee,
        fragile_handling_fee=fee.fragile_handling_fee,
        total_cost=fee.total_cost,
        multiplier=fee.multiplier,
        estimated_duration_minutes=fee.estimated_duration_minutes,
        duration_range=fee.duration_range,
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create delivery order",
    description="Price and create an order that partners can bid on",
)
@limiter.limit("30/minute")
async def create_order(
    request: Request,
    payload: OrderCreateRequest,
    actor: CustomerActor,
    service: OrderServiceDep,
) -> OrderResponse:
    logger.info("Creating order", user_id=str(actor.user_id))
    order = await service.create_order(actor, **payload.model_dump())
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse, summary="List my orders")
async def list_my_orders(
    actor: CustomerActor,
    service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    orders = await service.list_customer_orders(actor, status_filter, skip, limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        skip=skip,
        limit=limit,
    )


@router.get("/open", response_model=OrderListResponse, summary="Orders open for bids")
async def list_open_orders(
    actor: PartnerActor,
    service: OrderServiceDep,
    vehicle_type: Optional[VehicleType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    orders = await service.list_open_orders(actor, vehicle_type, skip, limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        skip=skip,
        limit=limit,
    )


@router.get("/assigned", response_model=OrderListResponse, summary="Orders assigned to me")
async def list_assigned_orders(
    actor: PartnerActor,
    service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    orders = await service.list_partner_orders(actor, status_filter, skip, limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        skip=skip,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order")
async def get_order(order_id: UUID, actor: CurrentActor, service: OrderServiceDep) -> OrderResponse:
    order = await service.get_order(actor, order_id)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/pickup", response_model=OrderResponse, summary="Confirm pickup")
async def confirm_pickup(
    order_id: UUID,
    actor: PartnerActor,
    service: OrderServiceDep,
    payload: Optional[TransitionNoteRequest] = None,
) -> OrderResponse:
    order = await service.confirm_pickup(actor, order_id, payload.note if payload else None)
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/transit", response_model=OrderResponse, summary="Start transit")
async def start_transit(
    order_id: UUID,
    actor: PartnerActor,
    service: OrderServiceDep,
    payload: Optional[TransitionNoteRequest] = None,
) -> OrderResponse:
    order = await service.start_transit(actor, order_id, payload.note if payload else None)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/proof",
    response_model=OrderResponse,
    summary="Submit delivery proof",
    description="Attach proof of delivery and complete the order",
)
async def submit_delivery_proof(
    order_id: UUID,
    payload: DeliveryProofRequest,
    actor: PartnerActor,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.submit_delivery_proof(
        actor, order_id, payload.image_url, payload.notes
    )
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="Cancel order")
async def cancel_order(
    order_id: UUID,
    actor: CustomerActor,
    service: OrderServiceDep,
    payload: Optional[CancelOrderRequest] = None,
) -> OrderResponse:
    order = await service.cancel_order(actor, order_id, payload.reason if payload else None)
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/tracking",
    response_model=list[TrackingEventResponse],
    summary="Order tracking history",
)
async def get_tracking_history(
    order_id: UUID,
    actor: CurrentActor,
    service: OrderServiceDep,
    limit: Optional[int] = Query(None, ge=1, le=500),
) -> list[TrackingEventResponse]:
    events = await service.get_tracking_history(actor, order_id, limit)
    return [TrackingEventResponse.model_validate(e) for e in events]


def _is_terminal_event(payload: dict) -> bool:
    try:
        return OrderStatus(payload.get("status")).is_terminal()
    except ValueError:
        return False


@router.websocket("/{order_id}/tracking/stream")
async def stream_tracking(websocket: WebSocket, order_id: UUID, token: str = Query(...)) -> None:
    """
    Push an order's tracking events.

    Sends the stored history (newest-first) as the first message, then one
    message per live event. The stream closes after the order is delivered
    or cancelled. Authenticates with the ``token`` query parameter.
    """
    try:
        actor = actor_from_token(token)
    except TokenError:
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    redis_client = await get_connected_redis_client()

    try:
        async with get_session() as session:
            feed = TrackingFeed(session, redis_client)
            events = await OrderService(session, feed).get_tracking_history(actor, order_id)
            snapshot = [TrackingFeed.serialize(e) for e in events]
    except CourierError as e:
        logger.info("Tracking stream refused", order_id=str(order_id), error=e.code)
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    await websocket.send_json({"type": "history", "events": snapshot})

    if snapshot and _is_terminal_event(snapshot[0]):
        await websocket.close(code=WS_NORMAL_CLOSURE)
        return
    if redis_client is None:
        await websocket.close(code=WS_TRY_AGAIN_LATER)
        return

    await relay(
        websocket,
        feed.subscribe(order_id),
        lambda payload: {"type": "event", "event": payload},
        is_final=_is_terminal_event,
        order_id=str(order_id),
        stream="tracking",
    )
