"""
Payment repository for gateway transaction records.

References are unique; inserting a duplicate reference raises
PreconditionFailedError so a retried initialization can never be recorded
twice.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import PreconditionFailedError, RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.payment import PaymentTransaction

logger = get_logger(__name__)


class PaymentRepository:
    """
    Repository for payment transaction data access.

    Attributes:
        session: Async database session for executing queries
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, **context: Any) -> None:
        await self.session.rollback()
        logger.error(
            "Payment repository operation failed",
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

    async def create_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """
        Insert a payment transaction.

        Raises:
            PreconditionFailedError: If the reference already exists
            RemoteCallFailedError: If the insert fails
        """
        try:
            self.session.add(transaction)
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Duplicate payment reference",
                reference=transaction.reference,
            )
            raise PreconditionFailedError(
                "Payment reference already exists",
                reference=transaction.reference,
            ) from e
        except SQLAlchemyError as e:
            await self._fail("create_transaction", e, reference=transaction.reference)

        logger.info(
            "Payment transaction created",
            reference=transaction.reference,
            purpose=transaction.purpose.value,
            amount=transaction.amount,
        )
        return transaction

    async def get_by_reference(
        self,
        reference: str,
        for_update: bool = False,
    ) -> Optional[PaymentTransaction]:
        stmt = select(PaymentTransaction).where(PaymentTransaction.reference == reference)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_by_reference", e, reference=reference)

    async def list_user_transactions(
        self,
        user_id: uuid.UUID,
        limit: int = 50,
    ) -> Sequence[PaymentTransaction]:
        stmt = (
            select(PaymentTransaction)
            .where(PaymentTransaction.user_id == user_id)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id)
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail("list_user_transactions", e, user_id=str(user_id))

    async def save(self, transaction: PaymentTransaction) -> PaymentTransaction:
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("save_transaction", e, reference=transaction.reference)
        return transaction
