"""
Order service orchestrating delivery order business logic.

This module implements the OrderService class for creating and pricing
delivery orders, reading them with per-actor visibility rules, and driving
the partner-side lifecycle (pickup, transit, delivery proof) and customer
cancellation through the order state machine. Every mutating operation
commits its order change and tracking event together, then pushes the event
to realtime subscribers.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Sequence, Type, TypeVar, Union

from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import (
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
)
from courier.core.logging import get_logger, log_performance
from courier.core.security import ActorContext
from courier.database.connection import commit_session
from courier.database.models.order import DeliveryOrder, DeliveryProof, TrackingEvent
from courier.services.bids.repository import BidRepository
from courier.services.orders.enums import (
    BiddingStatus,
    DeliveryType,
    OrderPaymentStatus,
    OrderStatus,
    VehicleType,
)
from courier.services.orders.identifiers import generate_order_number
from courier.services.orders.pricing import FeeQuote, FeeSchedule, quote, to_decimal
from courier.services.orders.repository import OrderRepository
from courier.services.orders.state_machine import OrderStateMachine, TransitionContext
from courier.services.partners.service import PartnerService
from courier.services.tracking.feed import TrackingFeed

logger = get_logger(__name__)

ORDER_CREATED_NOTE = "Order created, open for partner bids"
ESTIMATED_DELIVERY_WINDOW = timedelta(hours=2)
MAX_ADDRESS_LENGTH = 500
MAX_IMAGE_URL_LENGTH = 2048

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Union[E, str, None], field: str) -> E:
    """Coerce a request value into an enum member or raise InputValidationError."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise InputValidationError(f"{field} is required", field=field)
    try:
        return enum_cls.from_string(value)
    except ValueError as e:
        raise InputValidationError(str(e), field=field, value=value) from e


def _require_text(value: Optional[str], field: str, max_length: int = MAX_ADDRESS_LENGTH) -> str:
    if value is None or not str(value).strip():
        raise InputValidationError(f"{field} is required", field=field)
    value = str(value).strip()
    if len(value) > max_length:
        raise InputValidationError(
            f"{field} must be at most {max_length} characters",
            field=field,
        )
    return value


def _optional_non_negative(value: Any, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InputValidationError(f"{field} must be a number", field=field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InputValidationError(f"{field} must be a number", field=field) from e
    if not result.is_finite() or result < 0:
        raise InputValidationError(f"{field} cannot be negative", field=field, value=value)
    return result


def _optional_positive_int(value: Optional[int], field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InputValidationError(f"{field} must be a positive integer", field=field)
    return value


class OrderService:
    """
    Delivery order service.

    Attributes:
        session: Database session for the current unit of work
        repository: Order repository for data access
        bid_repository: Bid repository, used to close out bids and price
            the partner's earning
        state_machine: State machine for order lifecycle management
        tracking_feed: Tracking feed events are staged on
        fee_schedule: Rates used for pricing
        partner_service: Credits the partner when an order is delivered
    """

    def __init__(
        self,
        session: AsyncSession,
        tracking_feed: Optional[TrackingFeed] = None,
        fee_schedule: Optional[FeeSchedule] = None,
    ):
        self.session = session
        self.repository = OrderRepository(session)
        self.bid_repository = BidRepository(session)
        self.state_machine = OrderStateMachine(session)
        self.tracking_feed = tracking_feed or TrackingFeed(session)
        self.fee_schedule = fee_schedule or FeeSchedule.from_settings()
        self.partner_service = PartnerService(session)

    def quote(
        self,
        distance_km: Any,
        delivery_type: Union[DeliveryType, str],
        is_fragile: bool = False,
    ) -> FeeQuote:
        """Price a delivery without creating an order."""
        return quote(distance_km, delivery_type, is_fragile, self.fee_schedule)

    async def create_order(
        self,
        actor: ActorContext,
        *,
        pickup_address: str,
        dropoff_address: str,
        recipient_name: str,
        recipient_phone: str,
        vehicle_type: Union[VehicleType, str],
        delivery_type: Union[DeliveryType, str],
        distance_km: Any,
        package_description: Optional[str] = None,
        package_weight: Any = None,
        declared_value: Any = None,
        is_fragile: bool = False,
        bidding_window_minutes: Optional[int] = None,
        auto_accept_threshold: Optional[int] = None,
        min_bid_decrement: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> DeliveryOrder:
        """
        Create a priced order open for partner bids.

        A repeated idempotency_key from the same customer returns the order
        created by the first call.

        Raises:
            PermissionDeniedError: If the actor is not a customer
            InputValidationError: If any input is missing or malformed
        """
        if not actor.is_customer:
            raise PermissionDeniedError(
                "Only customers can create orders",
                actor_id=str(actor.user_id),
            )

        if idempotency_key is not None:
            idempotency_key = _require_text(idempotency_key, "idempotency_key", 100)
            existing = await self.repository.get_order_by_idempotency_key(
                actor.user_id, idempotency_key
            )
            if existing is not None:
                logger.info(
                    "Order creation replayed",
                    order_id=str(existing.id),
                    idempotency_key=idempotency_key,
                )
                return existing

        pickup = _require_text(pickup_address, "pickup_address")
        dropoff = _require_text(dropoff_address, "dropoff_address")
        name = _require_text(recipient_name, "recipient_name", 200)
        phone = _require_text(recipient_phone, "recipient_phone", 32)
        vehicle = parse_enum(VehicleType, vehicle_type, "vehicle_type")
        tier = parse_enum(DeliveryType, delivery_type, "delivery_type")
        weight = _optional_non_negative(package_weight, "package_weight")
        value = _optional_non_negative(declared_value, "declared_value")

        distance = to_decimal(distance_km, "distance_km")
        if distance <= 0:
            raise InputValidationError(
                "distance_km must be positive",
                field="distance_km",
                value=distance_km,
            )
        pricing = self.quote(distance, tier, bool(is_fragile))

        now = datetime.now(timezone.utc)
        order = DeliveryOrder(
            id=uuid.uuid4(),
            order_number=generate_order_number(),
            idempotency_key=idempotency_key,
            customer_id=actor.user_id,
            vehicle_type=vehicle,
            delivery_type=tier,
            pickup_address=pickup,
            dropoff_address=dropoff,
            recipient_name=name,
            recipient_phone=phone,
            distance_km=distance,
            estimated_duration_minutes=pricing.estimated_duration_minutes,
            package_description=package_description,
            package_weight=weight,
            declared_value=value,
            is_fragile=bool(is_fragile),
            base_fee=pricing.base_fee,
            fragile_handling_fee=pricing.fragile_handling_fee,
            total_cost=pricing.total_cost,
            status=OrderStatus.PENDING,
            bid_status=BiddingStatus.OPEN_FOR_BIDS,
            payment_status=OrderPaymentStatus.PENDING,
            bidding_window_minutes=_optional_positive_int(
                bidding_window_minutes, "bidding_window_minutes"
            ),
            auto_accept_threshold=_optional_positive_int(
                auto_accept_threshold, "auto_accept_threshold"
            ),
            min_bid_decrement=_optional_positive_int(min_bid_decrement, "min_bid_decrement"),
            estimated_delivery_time=now + ESTIMATED_DELIVERY_WINDOW,
        )
        event = TrackingEvent(
            status=OrderStatus.PENDING,
            notes=ORDER_CREATED_NOTE,
            actor_id=actor.user_id,
            created_at=now,
        )

        with log_performance(logger, "create_order", customer_id=str(actor.user_id)):
            try:
                await self.repository.create_order(order, event)
            except PreconditionFailedError:
                if idempotency_key is None:
                    raise
                # Lost a race with a concurrent create using the same key.
                existing = await self.repository.get_order_by_idempotency_key(
                    actor.user_id, idempotency_key
                )
                if existing is None:
                    raise
                return existing

            self.tracking_feed.stage(event)
            await commit_session(self.session)

        logger.info(
            "Order created successfully",
            order_id=str(order.id),
            order_number=order.order_number,
            total_cost=order.total_cost,
        )
        return order

    async def _load_order(self, order_id: uuid.UUID, for_update: bool = False) -> DeliveryOrder:
        order = await self.repository.get_order_by_id(order_id, for_update=for_update)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return order

    async def _partner_earning(self, order: DeliveryOrder) -> int:
        # The partner earns the accepted bid; total_cost only if none is linked.
        if order.selected_bid_id is not None:
            bid = await self.bid_repository.get_bid_by_id(order.selected_bid_id)
            if bid is not None:
                return bid.bid_amount
        return order.total_cost

    @staticmethod
    def can_view(actor: ActorContext, order: DeliveryOrder) -> bool:
        """Whether the actor may read the order."""
        if actor.is_admin or order.customer_id == actor.user_id:
            return True
        if order.partner_id is not None and order.partner_id == actor.user_id:
            return True
        return actor.is_partner and order.is_open_for_bids

    async def get_order(self, actor: ActorContext, order_id: uuid.UUID) -> DeliveryOrder:
        """
        Retrieve an order visible to the actor.

        Raises:
            NotFoundError: If the order does not exist
            PermissionDeniedError: If the actor may not see the order
        """
        order = await self._load_order(order_id)
        if not self.can_view(actor, order):
            raise PermissionDeniedError(
                "You do not have access to this order",
                order_id=str(order_id),
                actor_id=str(actor.user_id),
            )
        return order

    async def list_customer_orders(
        self,
        actor: ActorContext,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Sequence[DeliveryOrder]:
        if not actor.is_customer:
            raise PermissionDeniedError("Customer role required", actor_id=str(actor.user_id))
        return await self.repository.list_customer_orders(actor.user_id, status, skip, limit)

    async def list_open_orders(
        self,
        actor: ActorContext,
        vehicle_type: Optional[VehicleType] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Sequence[DeliveryOrder]:
        """Partner marketplace: orders still collecting bids."""
        if not actor.is_partner:
            raise PermissionDeniedError("Partner role required", actor_id=str(actor.user_id))
        return await self.repository.list_open_orders(vehicle_type, skip, limit)

    async def list_partner_orders(
        self,
        actor: ActorContext,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Sequence[DeliveryOrder]:
        if not actor.is_partner:
            raise PermissionDeniedError("Partner role required", actor_id=str(actor.user_id))
        return await self.repository.list_partner_orders(actor.user_id, status, skip, limit)

    async def get_tracking_history(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        limit: Optional[int] = None,
    ) -> Sequence[TrackingEvent]:
        await self.get_order(actor, order_id)
        return await self.tracking_feed.history(order_id, limit=limit)

    async def _transition(
        self,
        actor: ActorContext,
        order: DeliveryOrder,
        target_status: OrderStatus,
        notes: Optional[str] = None,
        proof: Optional[DeliveryProof] = None,
    ) -> TrackingEvent:
        event = await self.state_machine.apply_transition(
            order,
            target_status,
            TransitionContext(actor=actor, notes=notes, proof=proof),
        )
        self.tracking_feed.stage(event)
        return event

    async def confirm_pickup(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        note: Optional[str] = None,
    ) -> DeliveryOrder:
        """Assigned partner confirms the package was collected."""
        order = await self._load_order(order_id, for_update=True)
        await self._transition(actor, order, OrderStatus.PICKUP_CONFIRMED, note)
        await commit_session(self.session)
        return order

    async def start_transit(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        note: Optional[str] = None,
    ) -> DeliveryOrder:
        """Assigned partner starts navigating to the drop-off."""
        order = await self._load_order(order_id, for_update=True)
        await self._transition(actor, order, OrderStatus.IN_TRANSIT, note)
        await commit_session(self.session)
        return order

    async def submit_delivery_proof(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        image_url: str,
        notes: Optional[str] = None,
    ) -> DeliveryOrder:
        """
        Complete an in-transit order with photo proof.

        Raises:
            InputValidationError: If image_url is empty
            InvalidTransitionError: If the order is not in transit
            PermissionDeniedError: If the actor is not the assigned partner
        """
        image_url = _require_text(image_url, "image_url", MAX_IMAGE_URL_LENGTH)
        order = await self._load_order(order_id, for_update=True)

        proof = DeliveryProof(
            order_id=order.id,
            partner_id=actor.user_id,
            image_url=image_url,
            notes=notes,
        )
        await self._transition(actor, order, OrderStatus.DELIVERED, proof=proof)
        await self.repository.add_delivery_proof(proof)
        await self.partner_service.record_delivery(order, await self._partner_earning(order))
        await commit_session(self.session)

        logger.info(
            "Order delivered",
            order_id=str(order.id),
            partner_id=str(actor.user_id),
        )
        return order

    async def cancel_order(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> DeliveryOrder:
        """
        Cancel a non-terminal order and reject its outstanding bids.

        Raises:
            InvalidTransitionError: If the order is already delivered or cancelled
            PermissionDeniedError: If the actor is not the order's customer
        """
        order = await self._load_order(order_id, for_update=True)
        notes = f"Order cancelled: {reason}" if reason else None
        await self._transition(actor, order, OrderStatus.CANCELLED, notes)
        rejected = await self.bid_repository.reject_pending_bids(order.id)
        await commit_session(self.session)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            rejected_bids=rejected,
            reason=reason,
        )
        return order
