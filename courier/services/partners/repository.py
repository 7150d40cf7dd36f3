"""Partner profile, rating and earning data access."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import PreconditionFailedError, RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.partner import PartnerEarning, PartnerProfile, Rating

logger = get_logger(__name__)


class PartnerRepository:
    """Repository for partner profiles and the ratings and earnings behind them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, **context: Any) -> None:
        await self.session.rollback()
        logger.error(
            "Partner repository operation failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
        raise RemoteCallFailedError(
            f"Database error during {operation}",
            service="database",
            operation=operation,
            **context,
        ) from error

    async def get_profile(self, user_id: uuid.UUID) -> Optional[PartnerProfile]:
        try:
            result = await self.session.execute(
                select(PartnerProfile).where(PartnerProfile.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_profile", e, user_id=str(user_id))

    async def get_or_create_profile(
        self,
        user_id: uuid.UUID,
        for_update: bool = False,
    ) -> PartnerProfile:
        """
        Load the partner's profile, creating an empty one on first access.

        Concurrent first accesses converge on one row through
        INSERT .. ON CONFLICT DO NOTHING.
        """
        insert_stmt = (
            pg_insert(PartnerProfile)
            .values(id=uuid.uuid4(), user_id=user_id)
            .on_conflict_do_nothing(index_elements=[PartnerProfile.user_id])
        )
        stmt = select(PartnerProfile).where(PartnerProfile.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        try:
            result = await self.session.execute(stmt)
            profile = result.scalar_one_or_none()
            if profile is None:
                await self.session.execute(insert_stmt)
                result = await self.session.execute(stmt)
                profile = result.scalar_one()
                logger.info("Partner profile created", user_id=str(user_id))
            return profile
        except SQLAlchemyError as e:
            await self._fail("get_or_create_profile", e, user_id=str(user_id))

    async def save(self, profile: PartnerProfile) -> PartnerProfile:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("save", e, user_id=str(profile.user_id))
        return profile

    async def get_rating_for_order(self, order_id: uuid.UUID) -> Optional[Rating]:
        try:
            result = await self.session.execute(
                select(Rating).where(Rating.order_id == order_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_rating_for_order", e, order_id=str(order_id))

    async def add_rating(self, rating: Rating) -> Rating:
        try:
            self.session.add(rating)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise PreconditionFailedError(
                "Order already rated",
                order_id=str(rating.order_id),
            ) from e
        except SQLAlchemyError as e:
            await self._fail("add_rating", e, order_id=str(rating.order_id))
        return rating

    async def add_earning(self, earning: PartnerEarning) -> PartnerEarning:
        try:
            self.session.add(earning)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise PreconditionFailedError(
                "Earning already recorded for this order",
                order_id=str(earning.order_id),
            ) from e
        except SQLAlchemyError as e:
            await self._fail("add_earning", e, order_id=str(earning.order_id))
        return earning

    async def sum_earnings(
        self,
        partner_id: uuid.UUID,
        since: Optional[datetime] = None,
    ) -> int:
        """Total earned by the partner, optionally only from ``since`` on."""
        stmt = select(func.coalesce(func.sum(PartnerEarning.amount), 0)).where(
            PartnerEarning.partner_id == partner_id
        )
        if since is not None:
            stmt = stmt.where(PartnerEarning.created_at >= since)

        try:
            result = await self.session.execute(stmt)
            return int(result.scalar_one())
        except SQLAlchemyError as e:
            await self._fail("sum_earnings", e, partner_id=str(partner_id))
