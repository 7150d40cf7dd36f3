"""Wallet and wallet ledger data access."""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.wallet import Wallet, WalletTransaction

logger = get_logger(__name__)


class WalletRepository:
    """Repository for wallets and their ledger entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, **context: Any) -> None:
        await self.session.rollback()
        logger.error(
            "Wallet repository operation failed",
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

    async def get_or_create_wallet(
        self,
        user_id: uuid.UUID,
        currency: str,
        for_update: bool = False,
    ) -> Wallet:
        """
        Load the user's wallet, creating an empty one on first access.

        Creation uses INSERT .. ON CONFLICT DO NOTHING so concurrent first
        accesses converge on the same row.
        """
        insert_stmt = (
            pg_insert(Wallet)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                balance=0,
                currency=currency,
                is_active=True,
            )
            .on_conflict_do_nothing(index_elements=[Wallet.user_id])
        )
        stmt = select(Wallet).where(Wallet.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        try:
            result = await self.session.execute(stmt)
            wallet = result.scalar_one_or_none()
            if wallet is None:
                await self.session.execute(insert_stmt)
                result = await self.session.execute(stmt)
                wallet = result.scalar_one()
                logger.info("Wallet created", user_id=str(user_id))
            return wallet
        except SQLAlchemyError as e:
            await self._fail("get_or_create_wallet", e, user_id=str(user_id))

    async def get_transaction_by_reference(self, reference: str) -> Optional[WalletTransaction]:
        try:
            result = await self.session.execute(
                select(WalletTransaction).where(WalletTransaction.reference == reference)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get_transaction_by_reference", e, reference=reference)

    async def add_transaction(self, entry: WalletTransaction) -> WalletTransaction:
        try:
            self.session.add(entry)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("add_transaction", e, reference=entry.reference)
        return entry

    async def list_transactions(
        self,
        wallet_id: uuid.UUID,
        limit: int = 50,
    ) -> Sequence[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id)
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail("list_transactions", e, wallet_id=str(wallet_id))
