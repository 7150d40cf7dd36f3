"""
Payment models for gateway transactions and bill purchases.

Payment references and bill request ids are unique so a retried submission
can never be recorded twice.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from courier.database.base import BaseModel, enum_column
from courier.services.bills.enums import BillCategory, BillPaymentStatus
from courier.services.payments.enums import PaymentPurpose, PaymentTransactionStatus


class PaymentTransaction(BaseModel):
    """
    A payment collected through the payment gateway.

    Attributes:
        reference: Transaction reference sent to the gateway, unique
        order_id: Order being paid for (order payments only)
        user_id: Paying user
        amount: Amount in whole currency units
        purpose: Order payment or wallet top-up
        status: pending until verified with the gateway
        gateway_response: Last verification payload from the gateway
    """

    __tablename__ = "payment_transactions"

    reference: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")

    purpose: Mapped[PaymentPurpose] = mapped_column(
        enum_column(PaymentPurpose, "payment_purpose"),
        nullable=False,
    )

    status: Mapped[PaymentTransactionStatus] = mapped_column(
        enum_column(PaymentTransactionStatus, "payment_transaction_status"),
        nullable=False,
        default=PaymentTransactionStatus.PENDING,
    )

    authorization_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    gateway_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_transactions_amount_positive"),
        {"comment": "Payment gateway transactions"},
    )


class BillPayment(BaseModel):
    """
    A utility purchase made through the bills aggregator.

    Attributes:
        request_id: Aggregator request id, unique
        category: airtime, data, dstv or electric
        provider: Network or biller name as chosen by the user
        account_number: Phone, smart card or meter number
        wallet_reference: Reference of the wallet debit that funded it
        transaction_reference: Aggregator transaction id on success
    """

    __tablename__ = "bill_payments"

    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    category: Mapped[BillCategory] = mapped_column(
        enum_column(BillCategory, "bill_category"),
        nullable=False,
    )

    provider: Mapped[str] = mapped_column(String(50), nullable=False)

    service_id: Mapped[str] = mapped_column(String(50), nullable=False)

    account_number: Mapped[str] = mapped_column(String(50), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    payment_status: Mapped[BillPaymentStatus] = mapped_column(
        enum_column(BillPaymentStatus, "bill_payment_status"),
        nullable=False,
        default=BillPaymentStatus.PENDING,
    )

    wallet_reference: Mapped[str] = mapped_column(String(100), nullable=False)

    transaction_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    response_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    __table_args__ = (
        Index("ix_bill_payments_user_created", "user_id", "created_at"),
        CheckConstraint("amount > 0", name="ck_bill_payments_amount_positive"),
        {"comment": "Bills aggregator purchases"},
    )
