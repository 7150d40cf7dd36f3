"""Bill payment data access."""

import uuid
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.payment import BillPayment

logger = get_logger(__name__)


class BillPaymentRepository:
    """Repository for bills aggregator purchases."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, **context: Any) -> None:
        await self.session.rollback()
        logger.error(
            "Bill payment repository operation failed",
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

    async def create_payment(self, payment: BillPayment) -> BillPayment:
        try:
            self.session.add(payment)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("create_payment", e, request_id=payment.request_id)
        return payment

    async def save(self, payment: BillPayment) -> BillPayment:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("save_payment", e, request_id=payment.request_id)
        return payment

    async def list_user_payments(self, user_id: uuid.UUID, limit: int = 50) -> Sequence[BillPayment]:
        stmt = (
            select(BillPayment)
            .where(BillPayment.user_id == user_id)
            .order_by(BillPayment.created_at.desc(), BillPayment.id)
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail("list_user_payments", e, user_id=str(user_id))
