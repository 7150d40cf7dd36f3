"""Order state machine implementation with transition validation.

This module implements the OrderStateMachine class for managing delivery
order lifecycle transitions. Every applied transition validates the
transition table, runs the guard registered for it, applies side effects,
and records exactly one tracking event, all inside the caller's database
transaction. The order row is versioned, so a transition computed from a
stale read fails with ConcurrencyConflictError instead of overwriting a
concurrent change.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from courier.core.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    PermissionDeniedError,
    PreconditionFailedError,
    RemoteCallFailedError,
)
from courier.core.logging import get_logger
from courier.core.security import ActorContext
from courier.database.models.bid import Bid
from courier.database.models.order import DeliveryOrder, DeliveryProof, TrackingEvent
from courier.services.orders.enums import (
    BiddingStatus,
    BidStatus,
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)

logger = get_logger(__name__)

DEFAULT_TRANSITION_NOTES: Dict[OrderStatus, str] = {
    OrderStatus.ACCEPTED: "Bid accepted, partner assigned",
    OrderStatus.PICKUP_CONFIRMED: "Package picked up by partner",
    OrderStatus.IN_TRANSIT: "Partner en route to drop-off",
    OrderStatus.DELIVERED: "Delivery completed with proof",
    OrderStatus.CANCELLED: "Order cancelled by customer",
}


@dataclass
class TransitionContext:
    """Inputs a transition needs beyond the order itself."""

    actor: ActorContext
    notes: Optional[str] = None
    bid: Optional[Bid] = None
    proof: Optional[DeliveryProof] = None
    request_id: Optional[str] = None


class OrderStateMachine:
    """State machine for managing delivery order lifecycle transitions.

    Guards are keyed by (current, target) status and raise the domain error
    describing why the transition may not happen. Side effects are keyed by
    target status and mutate the order before it is flushed.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self._transition_guards: Dict[
            tuple[OrderStatus, OrderStatus],
            Callable[[DeliveryOrder, TransitionContext], None],
        ] = self._initialize_guards()
        self._side_effects: Dict[
            OrderStatus,
            Callable[[DeliveryOrder, TransitionContext], None],
        ] = self._initialize_side_effects()

    def _initialize_guards(
        self,
    ) -> Dict[tuple[OrderStatus, OrderStatus], Callable[[DeliveryOrder, TransitionContext], None]]:
        guards: Dict[
            tuple[OrderStatus, OrderStatus],
            Callable[[DeliveryOrder, TransitionContext], None],
        ] = {
            (OrderStatus.PENDING, OrderStatus.ACCEPTED): self._guard_bid_accepted,
            (OrderStatus.ACCEPTED, OrderStatus.PICKUP_CONFIRMED): self._guard_assigned_partner,
            (OrderStatus.ACCEPTED, OrderStatus.IN_TRANSIT): self._guard_assigned_partner,
            (OrderStatus.PICKUP_CONFIRMED, OrderStatus.IN_TRANSIT): self._guard_assigned_partner,
            (OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED): self._guard_delivery_proof,
        }
        for status in OrderStatus:
            if validate_order_status_transition(status, OrderStatus.CANCELLED):
                guards[(status, OrderStatus.CANCELLED)] = self._guard_order_customer
        return guards

    def _initialize_side_effects(
        self,
    ) -> Dict[OrderStatus, Callable[[DeliveryOrder, TransitionContext], None]]:
        return {
            OrderStatus.ACCEPTED: self._effect_partner_assigned,
            OrderStatus.DELIVERED: self._effect_delivered,
            OrderStatus.CANCELLED: self._effect_cancelled,
        }

    def validate_transition(
        self,
        order: DeliveryOrder,
        target_status: OrderStatus,
        context: TransitionContext,
    ) -> None:
        """Validate that the order may move to target_status.

        Raises:
            InvalidTransitionError: If the transition table forbids the move
            PreconditionFailedError: If a transition precondition is unmet
            PermissionDeniedError: If the actor may not drive the transition
        """
        current_status = order.status

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise InvalidTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(s.value for s in allowed),
            )

        guard = self._transition_guards.get((current_status, target_status))
        if guard is not None:
            guard(order, context)

    async def apply_transition(
        self,
        order: DeliveryOrder,
        target_status: OrderStatus,
        context: TransitionContext,
    ) -> TrackingEvent:
        """Apply a transition and record its tracking event.

        The order update and the event insert are flushed together; the
        caller's transaction commits or rolls back both.

        Returns:
            The tracking event recorded for the transition

        Raises:
            InvalidTransitionError, PreconditionFailedError,
            PermissionDeniedError: If validation fails (order unchanged)
            ConcurrencyConflictError: If the order changed since it was read
            RemoteCallFailedError: If the database write fails
        """
        self.validate_transition(order, target_status, context)

        old_status = order.status
        order.status = target_status

        side_effect = self._side_effects.get(target_status)
        if side_effect is not None:
            side_effect(order, context)

        event = self._record_status_change(order, target_status, context)

        try:
            await self.db.flush()
        except StaleDataError as e:
            await self.db.rollback()
            logger.warning(
                "Concurrent order modification detected",
                order_id=str(order.id),
                transition=f"{old_status.value}->{target_status.value}",
            )
            raise ConcurrencyConflictError(
                "Order was modified concurrently; reload and retry",
                order_id=str(order.id),
                target_status=target_status.value,
            ) from e
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Order transition violated a database constraint",
                order_id=str(order.id),
                transition=f"{old_status.value}->{target_status.value}",
                error=str(e.orig) if e.orig else str(e),
            )
            raise ConcurrencyConflictError(
                "Order transition conflicts with a concurrent change",
                order_id=str(order.id),
                target_status=target_status.value,
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "State transition failed",
                order_id=str(order.id),
                transition=f"{old_status.value}->{target_status.value}",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RemoteCallFailedError(
                "Failed to persist order transition",
                service="database",
                order_id=str(order.id),
            ) from e

        logger.info(
            "State transition applied",
            order_id=str(order.id),
            transition=f"{old_status.value}->{target_status.value}",
            actor_id=str(context.actor.user_id),
        )

        return event

    def get_allowed_transitions(self, order: DeliveryOrder) -> Set[OrderStatus]:
        return get_allowed_order_transitions(order.status)

    def _record_status_change(
        self,
        order: DeliveryOrder,
        new_status: OrderStatus,
        context: TransitionContext,
    ) -> TrackingEvent:
        event = TrackingEvent(
            order_id=order.id,
            status=new_status,
            notes=context.notes or DEFAULT_TRANSITION_NOTES.get(
                new_status, f"Status updated to {new_status.value}"
            ),
            actor_id=context.actor.user_id,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(event)
        return event

    # Transition Guards

    def _guard_bid_accepted(self, order: DeliveryOrder, context: TransitionContext) -> None:
        bid = context.bid
        if bid is None or bid.order_id != order.id or bid.status != BidStatus.ACCEPTED:
            raise PreconditionFailedError(
                "Order can only be accepted through an accepted bid",
                order_id=str(order.id),
                bid_id=str(bid.id) if bid is not None else None,
            )
        if order.bid_status != BiddingStatus.OPEN_FOR_BIDS:
            raise PreconditionFailedError(
                "Order is not open for bids",
                order_id=str(order.id),
                bid_status=order.bid_status.value,
            )

    def _guard_assigned_partner(self, order: DeliveryOrder, context: TransitionContext) -> None:
        if context.actor.is_admin:
            return
        if order.partner_id is None or order.partner_id != context.actor.user_id:
            raise PermissionDeniedError(
                "Only the assigned partner can advance this order",
                order_id=str(order.id),
                actor_id=str(context.actor.user_id),
            )

    def _guard_delivery_proof(self, order: DeliveryOrder, context: TransitionContext) -> None:
        self._guard_assigned_partner(order, context)
        proof = context.proof
        if proof is None or proof.order_id != order.id or not proof.image_url:
            raise PreconditionFailedError(
                "Delivery proof is required to complete an order",
                order_id=str(order.id),
            )

    def _guard_order_customer(self, order: DeliveryOrder, context: TransitionContext) -> None:
        if context.actor.is_admin:
            return
        if order.customer_id != context.actor.user_id:
            raise PermissionDeniedError(
                "Only the customer can cancel this order",
                order_id=str(order.id),
                actor_id=str(context.actor.user_id),
            )

    # Side Effects

    def _effect_partner_assigned(self, order: DeliveryOrder, context: TransitionContext) -> None:
        bid = context.bid
        order.partner_id = bid.partner_id
        order.selected_bid_id = bid.id
        order.bid_status = BiddingStatus.BID_ACCEPTED
        order.accept_request_id = context.request_id

    def _effect_delivered(self, order: DeliveryOrder, context: TransitionContext) -> None:
        order.actual_delivery_time = datetime.now(timezone.utc)

    def _effect_cancelled(self, order: DeliveryOrder, context: TransitionContext) -> None:
        if order.bid_status == BiddingStatus.OPEN_FOR_BIDS:
            order.bid_status = BiddingStatus.BIDS_CLOSED

