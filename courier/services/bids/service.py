"""
Bid service implementing the partner offer marketplace.

Partners submit priced offers against orders that are open for bids; the
order's customer accepts exactly one of them or rejects them individually.
Acceptance is one transaction: the order row is locked, the winning bid is
marked accepted, every other pending bid is rejected, and the order moves
to ``accepted`` through the state machine with its partner assigned. A
replayed acceptance carrying the same request id returns the stored result
without writing anything.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Sequence, Union

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
from courier.database.models.bid import Bid
from courier.database.models.order import DeliveryOrder
from courier.services.bids.repository import BidRepository
from courier.services.orders.enums import BidStatus, OrderStatus, VehicleType
from courier.services.orders.repository import OrderRepository
from courier.services.orders.service import parse_enum
from courier.services.orders.state_machine import OrderStateMachine, TransitionContext
from courier.services.tracking.feed import TrackingFeed

logger = get_logger(__name__)

MAX_BID_MESSAGE_LENGTH = 500


@dataclass
class BidAcceptance:
    """Outcome of accepting a bid."""

    bid: Bid
    order: DeliveryOrder
    replayed: bool = False


def _positive_int(value: object, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InputValidationError(f"{field} must be a positive integer", field=field, value=value)
    return value


class BidService:
    """
    Service for submitting, listing and deciding on bids.

    Attributes:
        session: Database session for the current unit of work
        repository: Bid repository
        order_repository: Order repository
        state_machine: Order state machine used for acceptance
        tracking_feed: Feed acceptance events are staged on
    """

    def __init__(self, session: AsyncSession, tracking_feed: Optional[TrackingFeed] = None):
        self.session = session
        self.repository = BidRepository(session)
        self.order_repository = OrderRepository(session)
        self.state_machine = OrderStateMachine(session)
        self.tracking_feed = tracking_feed or TrackingFeed(session)

    async def _load_order(self, order_id: uuid.UUID, for_update: bool = False) -> DeliveryOrder:
        order = await self.order_repository.get_order_by_id(order_id, for_update=for_update)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return order

    async def _load_bid(self, bid_id: uuid.UUID, for_update: bool = False) -> Bid:
        bid = await self.repository.get_bid_by_id(bid_id, for_update=for_update)
        if bid is None:
            raise NotFoundError("Bid not found", bid_id=str(bid_id))
        return bid

    @staticmethod
    def _require_order_customer(actor: ActorContext, order: DeliveryOrder) -> None:
        if actor.is_admin:
            return
        if order.customer_id != actor.user_id:
            raise PermissionDeniedError(
                "Only the order's customer can decide on its bids",
                order_id=str(order.id),
                actor_id=str(actor.user_id),
            )

    async def submit_bid(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        bid_amount: int,
        vehicle_type: Union[VehicleType, str],
        estimated_pickup_minutes: int,
        message: Optional[str] = None,
    ) -> Bid:
        """
        Submit a partner's offer against an open order.

        Raises:
            PermissionDeniedError: If the actor is not a partner or owns the order
            InputValidationError: If amount or pickup estimate is not positive
            PreconditionFailedError: If the order is no longer open for bids
        """
        if not actor.is_partner:
            raise PermissionDeniedError("Partner role required", actor_id=str(actor.user_id))

        amount = _positive_int(bid_amount, "bid_amount")
        minutes = _positive_int(estimated_pickup_minutes, "estimated_pickup_minutes")
        vehicle = parse_enum(VehicleType, vehicle_type, "vehicle_type")
        if message is not None and len(message) > MAX_BID_MESSAGE_LENGTH:
            raise InputValidationError(
                f"message must be at most {MAX_BID_MESSAGE_LENGTH} characters",
                field="message",
            )

        order = await self._load_order(order_id, for_update=True)

        if order.customer_id == actor.user_id:
            raise PermissionDeniedError(
                "You cannot bid on your own order",
                order_id=str(order.id),
            )
        if order.is_terminal or not order.is_open_for_bids:
            raise PreconditionFailedError(
                "Order is not open for bids",
                order_id=str(order.id),
                status=order.status,
                bid_status=order.bid_status,
            )

        existing = await self.repository.count_pending_bids_by_partner(order.id, actor.user_id)
        if existing:
            logger.warning(
                "Partner already has a pending bid on this order",
                order_id=str(order.id),
                partner_id=str(actor.user_id),
                pending_bids=existing,
            )

        bid = Bid(
            id=uuid.uuid4(),
            order_id=order.id,
            partner_id=actor.user_id,
            bid_amount=amount,
            vehicle_type=vehicle,
            estimated_pickup_minutes=minutes,
            message=message,
            status=BidStatus.PENDING,
        )
        if order.current_lowest_bid is None or amount < order.current_lowest_bid:
            order.current_lowest_bid = amount

        await self.repository.create_bid(bid)
        await commit_session(self.session)
        return bid

    async def list_bids(self, actor: ActorContext, order_id: uuid.UUID) -> Sequence[Bid]:
        """
        List bids on an order newest-first.

        The order's customer sees every bid; a partner sees only their own.
        """
        order = await self._load_order(order_id)

        if actor.is_admin or order.customer_id == actor.user_id:
            return await self.repository.list_bids(order.id)
        if actor.is_partner:
            return await self.repository.list_bids(order.id, partner_id=actor.user_id)

        raise PermissionDeniedError(
            "You do not have access to this order's bids",
            order_id=str(order_id),
            actor_id=str(actor.user_id),
        )

    async def accept_bid(
        self,
        actor: ActorContext,
        bid_id: uuid.UUID,
        request_id: Optional[str] = None,
    ) -> BidAcceptance:
        """
        Accept a pending bid and assign its partner to the order.

        Args:
            actor: Customer of the order
            bid_id: Bid to accept
            request_id: Client request id; replaying it returns the stored result

        Raises:
            NotFoundError: If the bid or its order does not exist
            PermissionDeniedError: If the actor is not the order's customer
            PreconditionFailedError: If the order is no longer open for bids
                or the bid is not pending
            ConcurrencyConflictError: If another acceptance won the race
        """
        bid = await self._load_bid(bid_id)

        with log_performance(logger, "accept_bid", bid_id=str(bid_id)):
            order = await self._load_order(bid.order_id, for_update=True)
            self._require_order_customer(actor, order)

            if (
                request_id is not None
                and order.accept_request_id == request_id
                and order.selected_bid_id == bid.id
            ):
                logger.info(
                    "Bid acceptance replayed",
                    bid_id=str(bid.id),
                    order_id=str(order.id),
                    request_id=request_id,
                )
                return BidAcceptance(bid=bid, order=order, replayed=True)

            if not order.is_open_for_bids or order.status != OrderStatus.PENDING:
                raise PreconditionFailedError(
                    "Order is not open for bids",
                    order_id=str(order.id),
                    bid_status=order.bid_status,
                )

            bid = await self._load_bid(bid_id, for_update=True)
            if bid.status != BidStatus.PENDING:
                raise PreconditionFailedError(
                    "Only pending bids can be accepted",
                    bid_id=str(bid.id),
                    bid_status=bid.status,
                )

            bid.status = BidStatus.ACCEPTED
            rejected = await self.repository.reject_pending_bids(order.id, exclude_bid_id=bid.id)

            event = await self.state_machine.apply_transition(
                order,
                OrderStatus.ACCEPTED,
                TransitionContext(actor=actor, bid=bid, request_id=request_id),
            )
            self.tracking_feed.stage(event)
            await commit_session(self.session)

        logger.info(
            "Bid accepted",
            bid_id=str(bid.id),
            order_id=str(order.id),
            partner_id=str(bid.partner_id),
            rejected_bids=rejected,
        )
        return BidAcceptance(bid=bid, order=order)

    async def reject_bid(self, actor: ActorContext, bid_id: uuid.UUID) -> Bid:
        """
        Reject a pending bid; rejecting an already rejected bid is a no-op.

        Raises:
            PreconditionFailedError: If the bid was accepted or withdrawn
        """
        bid = await self._load_bid(bid_id, for_update=True)
        order = await self._load_order(bid.order_id)
        self._require_order_customer(actor, order)

        if bid.status == BidStatus.REJECTED:
            return bid
        if bid.status != BidStatus.PENDING:
            raise PreconditionFailedError(
                "Only pending bids can be rejected",
                bid_id=str(bid.id),
                bid_status=bid.status,
            )

        bid.status = BidStatus.REJECTED
        await self.repository.save(bid)
        await commit_session(self.session)

        logger.info("Bid rejected", bid_id=str(bid.id), order_id=str(order.id))
        return bid

    async def withdraw_bid(self, actor: ActorContext, bid_id: uuid.UUID) -> Bid:
        """Withdraw the actor's own pending bid."""
        bid = await self._load_bid(bid_id, for_update=True)

        if bid.partner_id != actor.user_id and not actor.is_admin:
            raise PermissionDeniedError(
                "Only the bidding partner can withdraw this bid",
                bid_id=str(bid.id),
                actor_id=str(actor.user_id),
            )
        if bid.status == BidStatus.WITHDRAWN:
            return bid
        if bid.status != BidStatus.PENDING:
            raise PreconditionFailedError(
                "Only pending bids can be withdrawn",
                bid_id=str(bid.id),
                bid_status=bid.status,
            )

        bid.status = BidStatus.WITHDRAWN
        await self.repository.save(bid)
        await commit_session(self.session)

        logger.info("Bid withdrawn", bid_id=str(bid.id), partner_id=str(actor.user_id))
        return bid
