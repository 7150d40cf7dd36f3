"""
Wallet service.

Balances are whole currency units. Every balance change locks the wallet
row and writes one ledger entry whose reference is unique, so crediting or
debiting the same reference twice returns the first entry instead of moving
money again. Credit and debit do not commit; callers own the transaction.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.config import get_settings
from courier.core.errors import InputValidationError, PreconditionFailedError
from courier.core.logging import get_logger
from courier.core.security import ActorContext
from courier.database.connection import commit_session
from courier.database.models.wallet import Wallet, WalletTransaction
from courier.services.payments.enums import WalletTransactionStatus, WalletTransactionType
from courier.services.wallet.repository import WalletRepository

logger = get_logger(__name__)


class WalletService:
    """Stored balance operations for customers and partners."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repository = WalletRepository(session)
        self.currency = get_settings().currency

    async def get_wallet(self, actor: ActorContext) -> Wallet:
        """Return the actor's wallet, creating it on first access."""
        wallet = await self.repository.get_or_create_wallet(actor.user_id, self.currency)
        await commit_session(self.session)
        return wallet

    async def list_transactions(
        self,
        actor: ActorContext,
        limit: int = 50,
    ) -> Sequence[WalletTransaction]:
        wallet = await self.repository.get_or_create_wallet(actor.user_id, self.currency)
        return await self.repository.list_transactions(wallet.id, limit=limit)

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InputValidationError("amount must be a positive integer", field="amount")

    async def _apply(
        self,
        user_id: uuid.UUID,
        transaction_type: WalletTransactionType,
        amount: int,
        reference: str,
        description: Optional[str],
    ) -> WalletTransaction:
        self._check_amount(amount)
        if not reference:
            raise InputValidationError("reference is required", field="reference")

        wallet = await self.repository.get_or_create_wallet(
            user_id, self.currency, for_update=True
        )

        existing = await self.repository.get_transaction_by_reference(reference)
        if existing is not None:
            logger.info(
                "Wallet transaction replayed",
                reference=reference,
                transaction_type=existing.transaction_type.value,
            )
            return existing

        if not wallet.is_active:
            raise PreconditionFailedError("Wallet is inactive", user_id=str(user_id))

        before = wallet.balance
        if transaction_type == WalletTransactionType.DEBIT:
            if before < amount:
                raise PreconditionFailedError(
                    "Insufficient wallet balance",
                    user_id=str(user_id),
                    balance=before,
                    amount=amount,
                )
            after = before - amount
        else:
            after = before + amount

        wallet.balance = after
        entry = WalletTransaction(
            id=uuid.uuid4(),
            wallet_id=wallet.id,
            transaction_type=transaction_type,
            amount=amount,
            balance_before=before,
            balance_after=after,
            description=description,
            reference=reference,
            status=WalletTransactionStatus.COMPLETED,
        )
        await self.repository.add_transaction(entry)

        logger.info(
            "Wallet balance changed",
            user_id=str(user_id),
            transaction_type=transaction_type.value,
            amount=amount,
            balance_after=after,
            reference=reference,
        )
        return entry

    async def credit(
        self,
        user_id: uuid.UUID,
        amount: int,
        reference: str,
        description: Optional[str] = None,
    ) -> WalletTransaction:
        """Add funds; idempotent per reference."""
        return await self._apply(
            user_id, WalletTransactionType.CREDIT, amount, reference, description
        )

    async def debit(
        self,
        user_id: uuid.UUID,
        amount: int,
        reference: str,
        description: Optional[str] = None,
    ) -> WalletTransaction:
        """
        Remove funds; idempotent per reference.

        Raises:
            PreconditionFailedError: If the balance is insufficient
        """
        return await self._apply(
            user_id, WalletTransactionType.DEBIT, amount, reference, description
        )
