"""Wallet balance and ledger models."""

import uuid
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from courier.database.base import BaseModel, enum_column
from courier.services.payments.enums import WalletTransactionStatus, WalletTransactionType


class Wallet(BaseModel):
    """A user's stored balance in whole currency units."""

    __tablename__ = "wallets"

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, unique=True)

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )


class WalletTransaction(BaseModel):
    """
    Ledger entry for one balance change.

    ``reference`` is unique, so crediting or debiting the same reference
    twice is rejected by the database.
    """

    __tablename__ = "wallet_transactions"

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
    )

    transaction_type: Mapped[WalletTransactionType] = mapped_column(
        enum_column(WalletTransactionType, "wallet_transaction_type"),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_before: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    reference: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    status: Mapped[WalletTransactionStatus] = mapped_column(
        enum_column(WalletTransactionStatus, "wallet_transaction_status"),
        nullable=False,
        default=WalletTransactionStatus.COMPLETED,
    )

    __table_args__ = (
        Index("ix_wallet_transactions_wallet_created", "wallet_id", "created_at"),
        CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
    )
