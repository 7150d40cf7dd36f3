"""
Bid data access repository.

Provides async methods for inserting bids, loading them (optionally
row-locked), listing an order's bids and bulk-rejecting the pending bids of
an order when it is assigned or cancelled.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.bid import Bid
from courier.services.orders.enums import BidStatus

logger = get_logger(__name__)


class BidRepository:
    """Repository for bid data access operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, **context: Any) -> None:
        await self.session.rollback()
        logger.error(
            "Bid repository operation failed",
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

    async def create_bid(self, bid: Bid) -> Bid:
        try:
            self.session.add(bid)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("create_bid", e, order_id=str(bid.order_id))

        logger.info(
            "Bid created",
            bid_id=str(bid.id),
            order_id=str(bid.order_id),
            partner_id=str(bid.partner_id),
            bid_amount=bid.bid_amount,
        )
        return bid

    async def get_bid_by_id(self, bid_id: uuid.UUID, for_update: bool = False) -> Optional[Bid]:
        stmt = select(Bid).where(Bid.id == bid_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_bid_by_id", e, bid_id=str(bid_id))

    async def list_bids(
        self,
        order_id: uuid.UUID,
        partner_id: Optional[uuid.UUID] = None,
        status: Optional[BidStatus] = None,
    ) -> Sequence[Bid]:
        """
        List an order's bids newest-first.

        Args:
            order_id: Order the bids were made against
            partner_id: Restrict to one partner's bids
            status: Restrict to one status
        """
        stmt = select(Bid).where(Bid.order_id == order_id)
        if partner_id is not None:
            stmt = stmt.where(Bid.partner_id == partner_id)
        if status is not None:
            stmt = stmt.where(Bid.status == status)
        stmt = stmt.order_by(Bid.created_at.desc(), Bid.id)

        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail("list_bids", e, order_id=str(order_id))

    async def count_pending_bids_by_partner(
        self,
        order_id: uuid.UUID,
        partner_id: uuid.UUID,
    ) -> int:
        stmt = select(func.count(Bid.id)).where(
            Bid.order_id == order_id,
            Bid.partner_id == partner_id,
            Bid.status == BidStatus.PENDING,
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one()
        except SQLAlchemyError as e:
            await self._fail("count_pending_bids_by_partner", e, order_id=str(order_id))

    async def reject_pending_bids(
        self,
        order_id: uuid.UUID,
        exclude_bid_id: Optional[uuid.UUID] = None,
    ) -> int:
        """
        Mark every pending bid on the order rejected.

        Returns:
            Number of bids rejected
        """
        stmt = (
            update(Bid)
            .where(Bid.order_id == order_id, Bid.status == BidStatus.PENDING)
            .values(status=BidStatus.REJECTED)
            .execution_options(synchronize_session="fetch")
        )
        if exclude_bid_id is not None:
            stmt = stmt.where(Bid.id != exclude_bid_id)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            await self._fail("reject_pending_bids", e, order_id=str(order_id))

        logger.info(
            "Pending bids rejected",
            order_id=str(order_id),
            rejected_count=result.rowcount,
        )
        return result.rowcount

    async def save(self, bid: Bid) -> Bid:
        """Flush pending changes to a loaded bid."""
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("save_bid", e, bid_id=str(bid.id))
        return bid
