"""
Partner profile service.

A partner's profile is created on first access. It carries the online
toggle the marketplace shows to customers, the vehicle the partner works
with, lifetime earnings and the average of the ratings customers left on
delivered orders. Each delivered order credits its partner once with the
accepted bid's amount; each delivered order can be rated once, by its
customer only.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import (
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
)
from courier.core.logging import get_logger
from courier.core.security import ActorContext
from courier.database.connection import commit_session
from courier.database.models.order import DeliveryOrder
from courier.database.models.partner import PartnerEarning, PartnerProfile, Rating
from courier.services.orders.enums import OrderStatus, VehicleType
from courier.services.orders.identifiers import LAGOS_TZ
from courier.services.orders.repository import OrderRepository
from courier.services.partners.repository import PartnerRepository

logger = get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5
MAX_COMMENT_LENGTH = 1000
MAX_REGISTRATION_LENGTH = 32
RATING_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class EarningsSummary:
    """Partner earnings as shown on the partner dashboard."""

    today: int
    last_7_days: int
    total_earnings: int
    pending_payout: int
    completed_deliveries: int
    average_rating: Decimal


def start_of_day(now: datetime) -> datetime:
    """Midnight of ``now``'s calendar day in Lagos, as an aware UTC datetime."""
    local = now.astimezone(LAGOS_TZ)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def next_average(average: Decimal, count: int, rating: int) -> Decimal:
    """Running mean after adding one rating to ``count`` earlier ones."""
    total = Decimal(average) * count + rating
    return (total / (count + 1)).quantize(RATING_PLACES, rounding=ROUND_HALF_UP)


class PartnerService:
    """
    Partner profile service.

    Attributes:
        session: Database session for the current unit of work
        repository: Partner profile repository
        order_repository: Order repository used to check rated orders
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = PartnerRepository(session)
        self.order_repository = OrderRepository(session)

    @staticmethod
    def _require_partner(actor: ActorContext) -> None:
        if not actor.is_partner:
            raise PermissionDeniedError(
                "Only delivery partners have a partner profile",
                user_id=str(actor.user_id),
            )

    async def get_profile(self, actor: ActorContext) -> PartnerProfile:
        """Return the actor's own profile, creating it on first access."""
        self._require_partner(actor)
        profile = await self.repository.get_or_create_profile(actor.user_id)
        await commit_session(self.session)
        return profile

    async def get_public_profile(self, partner_id: uuid.UUID) -> PartnerProfile:
        profile = await self.repository.get_profile(partner_id)
        if profile is None:
            raise NotFoundError("Partner not found", partner_id=str(partner_id))
        return profile

    async def update_profile(
        self,
        actor: ActorContext,
        vehicle_type: Optional[Union[VehicleType, str]] = None,
        vehicle_registration: Optional[str] = None,
    ) -> PartnerProfile:
        """
        Change the partner's vehicle details. None leaves a field unchanged.

        Raises:
            InputValidationError: If the vehicle type is unknown or the
                registration is blank or too long
            PermissionDeniedError: If the actor is not a partner
        """
        self._require_partner(actor)

        if vehicle_type is not None:
            try:
                vehicle_type = VehicleType(vehicle_type)
            except ValueError as e:
                raise InputValidationError(
                    "Unknown vehicle type", field="vehicle_type", value=str(vehicle_type)
                ) from e
        if vehicle_registration is not None:
            vehicle_registration = vehicle_registration.strip().upper()
            if not vehicle_registration or len(vehicle_registration) > MAX_REGISTRATION_LENGTH:
                raise InputValidationError(
                    f"vehicle_registration must be 1 to {MAX_REGISTRATION_LENGTH} characters",
                    field="vehicle_registration",
                )

        profile = await self.repository.get_or_create_profile(actor.user_id, for_update=True)
        if vehicle_type is not None:
            profile.vehicle_type = vehicle_type
        if vehicle_registration is not None:
            profile.vehicle_registration = vehicle_registration
        await self.repository.save(profile)
        await commit_session(self.session)
        return profile

    async def set_online_status(self, actor: ActorContext, is_online: bool) -> PartnerProfile:
        """Mark the partner as taking jobs or not."""
        self._require_partner(actor)
        if not isinstance(is_online, bool):
            raise InputValidationError("is_online must be a boolean", field="is_online")

        profile = await self.repository.get_or_create_profile(actor.user_id, for_update=True)
        profile.is_online = is_online
        await self.repository.save(profile)
        await commit_session(self.session)

        logger.info(
            "Partner availability changed",
            partner_id=str(actor.user_id),
            is_online=is_online,
        )
        return profile

    async def get_earnings_summary(
        self,
        actor: ActorContext,
        now: Optional[datetime] = None,
    ) -> EarningsSummary:
        """
        Earnings for today and the last seven days, plus lifetime totals.

        Days follow the Lagos calendar; the seven-day window includes today.
        """
        self._require_partner(actor)
        now = now or datetime.now(timezone.utc)
        today_start = start_of_day(now)
        week_start = today_start - timedelta(days=6)

        profile = await self.repository.get_or_create_profile(actor.user_id)
        today = await self.repository.sum_earnings(actor.user_id, since=today_start)
        last_7_days = await self.repository.sum_earnings(actor.user_id, since=week_start)
        await commit_session(self.session)

        return EarningsSummary(
            today=today,
            last_7_days=last_7_days,
            total_earnings=profile.total_earnings,
            pending_payout=profile.pending_payout,
            completed_deliveries=profile.completed_deliveries,
            average_rating=Decimal(profile.average_rating),
        )

    async def record_delivery(self, order: DeliveryOrder, amount: int) -> PartnerEarning:
        """
        Credit the order's partner for a completed delivery.

        Does not commit; runs inside the delivery's transaction.
        """
        if order.partner_id is None:
            raise PreconditionFailedError(
                "Delivered order has no partner", order_id=str(order.id)
            )

        earning = PartnerEarning(
            id=uuid.uuid4(),
            partner_id=order.partner_id,
            order_id=order.id,
            amount=amount,
        )
        await self.repository.add_earning(earning)

        profile = await self.repository.get_or_create_profile(order.partner_id, for_update=True)
        profile.total_earnings += amount
        profile.pending_payout += amount
        profile.completed_deliveries += 1
        await self.repository.save(profile)

        logger.info(
            "Partner earning recorded",
            partner_id=str(order.partner_id),
            order_id=str(order.id),
            amount=amount,
        )
        return earning

    async def rate_order(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        rating: int,
        comment: Optional[str] = None,
    ) -> Rating:
        """
        Rate the partner who delivered an order.

        Raises:
            InputValidationError: If rating is not an integer from 1 to 5 or
                the comment is too long
            NotFoundError: If the order does not exist
            PermissionDeniedError: If the actor is not the order's customer
            PreconditionFailedError: If the order is not delivered or was
                already rated
        """
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InputValidationError("rating must be an integer", field="rating")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InputValidationError(
                f"rating must be between {MIN_RATING} and {MAX_RATING}", field="rating"
            )
        if comment is not None:
            comment = comment.strip() or None
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise InputValidationError(
                f"comment must be at most {MAX_COMMENT_LENGTH} characters", field="comment"
            )

        order = await self.order_repository.get_order_by_id(order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        if order.customer_id != actor.user_id:
            raise PermissionDeniedError(
                "Only the order's customer can rate it", order_id=str(order_id)
            )
        if order.status != OrderStatus.DELIVERED or order.partner_id is None:
            raise PreconditionFailedError(
                "Only delivered orders can be rated",
                order_id=str(order_id),
                status=order.status.value,
            )
        if await self.repository.get_rating_for_order(order.id) is not None:
            raise PreconditionFailedError("Order already rated", order_id=str(order_id))

        entry = Rating(
            id=uuid.uuid4(),
            order_id=order.id,
            customer_id=actor.user_id,
            partner_id=order.partner_id,
            rating=rating,
            comment=comment,
        )
        await self.repository.add_rating(entry)

        profile = await self.repository.get_or_create_profile(order.partner_id, for_update=True)
        profile.average_rating = next_average(
            profile.average_rating, profile.rating_count, rating
        )
        profile.rating_count += 1
        await self.repository.save(profile)
        await commit_session(self.session)

        logger.info(
            "Order rated",
            order_id=str(order.id),
            partner_id=str(order.partner_id),
            rating=rating,
            average_rating=str(profile.average_rating),
        )
        return entry
