"""
Payment service coordinating the payment gateway with orders and wallets.

This module implements the PaymentService class. Initialization asks the
gateway for a hosted checkout URL and records a pending transaction under a
fresh unique reference. Verification asks the gateway for the outcome and
settles the transaction exactly once: a successful order payment marks the
order paid, a successful top-up credits the payer's wallet, and a failed or
reversed charge (or a success for the wrong amount) marks the transaction
failed. While the customer is still at checkout the transaction stays
pending and can be verified again. Verifying an already settled reference
returns the stored result without calling the gateway again.
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.config import get_settings
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
from courier.database.models.payment import PaymentTransaction
from courier.services.orders.enums import OrderPaymentStatus, OrderStatus
from courier.services.orders.identifiers import generate_transaction_reference
from courier.services.orders.repository import OrderRepository
from courier.services.payments.enums import PaymentPurpose, PaymentTransactionStatus
from courier.services.payments.paystack_client import MINOR_UNITS_PER_MAJOR, PaystackClient
from courier.services.payments.repository import PaymentRepository
from courier.services.wallet.service import WalletService

logger = get_logger(__name__)

GATEWAY_SUCCESS = "success"
# Any other gateway status (ongoing, pending, abandoned, ...) can still
# become a success, so the transaction stays pending.
GATEWAY_FAILED_STATUSES = frozenset({"failed", "reversed"})
MAX_TOPUP_AMOUNT = 10_000_000


def _validate_email(email: Optional[str]) -> str:
    email = (email or "").strip()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise InputValidationError("A valid email is required", field="email")
    return email


class PaymentService:
    """
    Payment service for order payments and wallet top-ups.

    Attributes:
        session: Database session for the current unit of work
        gateway: Payment gateway client
        repository: Payment transaction repository
        wallet_service: Wallet credited by successful top-ups
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: PaystackClient,
        wallet_service: Optional[WalletService] = None,
    ):
        self.session = session
        self.gateway = gateway
        self.repository = PaymentRepository(session)
        self.order_repository = OrderRepository(session)
        self.wallet_service = wallet_service or WalletService(session)
        self.currency = get_settings().currency

    async def _start(
        self,
        actor: ActorContext,
        email: str,
        amount: int,
        purpose: PaymentPurpose,
        order: Optional[DeliveryOrder] = None,
    ) -> PaymentTransaction:
        reference = generate_transaction_reference()
        response = await self.gateway.initialize_transaction(email, amount, reference)
        data = response.get("data") or {}

        transaction = PaymentTransaction(
            id=uuid.uuid4(),
            reference=reference,
            order_id=order.id if order is not None else None,
            user_id=actor.user_id,
            amount=amount,
            currency=self.currency,
            purpose=purpose,
            status=PaymentTransactionStatus.PENDING,
            authorization_url=data.get("authorization_url"),
        )
        await self.repository.create_transaction(transaction)
        if order is not None:
            order.payment_reference = reference
        await commit_session(self.session)

        logger.info(
            "Payment initialized",
            reference=reference,
            purpose=purpose.value,
            amount=amount,
            user_id=str(actor.user_id),
        )
        return transaction

    async def initialize_order_payment(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        email: str,
    ) -> PaymentTransaction:
        """
        Start paying for an order's total cost.

        Raises:
            NotFoundError: If the order does not exist
            PermissionDeniedError: If the actor is not the order's customer
            PreconditionFailedError: If the order is cancelled or already paid
            RemoteCallFailedError: If the gateway call fails
        """
        email = _validate_email(email)
        order = await self.order_repository.get_order_by_id(order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        if order.customer_id != actor.user_id and not actor.is_admin:
            raise PermissionDeniedError(
                "Only the order's customer can pay for it",
                order_id=str(order_id),
            )
        if order.status == OrderStatus.CANCELLED:
            raise PreconditionFailedError("Order is cancelled", order_id=str(order_id))
        if order.payment_status == OrderPaymentStatus.COMPLETED:
            raise PreconditionFailedError("Order is already paid", order_id=str(order_id))

        return await self._start(
            actor, email, order.total_cost, PaymentPurpose.ORDER, order=order
        )

    async def initialize_wallet_topup(
        self,
        actor: ActorContext,
        amount: int,
        email: str,
    ) -> PaymentTransaction:
        """Start a wallet top-up of amount whole currency units."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InputValidationError("amount must be a positive integer", field="amount")
        if amount > MAX_TOPUP_AMOUNT:
            raise InputValidationError(
                f"amount must be at most {MAX_TOPUP_AMOUNT}",
                field="amount",
            )
        email = _validate_email(email)
        return await self._start(actor, email, amount, PaymentPurpose.WALLET_TOPUP)

    async def verify_payment(self, actor: ActorContext, reference: str) -> PaymentTransaction:
        """
        Settle a pending transaction with the gateway's verdict.

        Raises:
            NotFoundError: If the reference is unknown
            PermissionDeniedError: If the transaction belongs to someone else
            RemoteCallFailedError: If the gateway call fails; the
                transaction stays pending
        """
        transaction = await self.repository.get_by_reference(reference, for_update=True)
        if transaction is None:
            raise NotFoundError("Payment not found", reference=reference)
        if transaction.user_id != actor.user_id and not actor.is_admin:
            raise PermissionDeniedError("Payment belongs to another user", reference=reference)

        if transaction.status.is_settled():
            logger.info(
                "Payment already settled",
                reference=reference,
                status=transaction.status.value,
            )
            return transaction

        response = await self.gateway.verify_transaction(reference)
        data: dict[str, Any] = response.get("data") or {}
        transaction.gateway_response = data

        gateway_status = data.get("status")
        expected_amount = transaction.amount * MINOR_UNITS_PER_MAJOR

        if gateway_status == GATEWAY_SUCCESS and data.get("amount") == expected_amount:
            transaction.status = PaymentTransactionStatus.COMPLETED
            await self._apply_success(transaction)
        elif gateway_status == GATEWAY_SUCCESS or gateway_status in GATEWAY_FAILED_STATUSES:
            if gateway_status == GATEWAY_SUCCESS:
                logger.warning(
                    "Gateway amount does not match transaction",
                    reference=reference,
                    expected=expected_amount,
                    received=data.get("amount"),
                )
            transaction.status = PaymentTransactionStatus.FAILED
            await self._apply_failure(transaction)

        await self.repository.save(transaction)
        await commit_session(self.session)

        logger.info(
            "Payment verified",
            reference=reference,
            status=transaction.status.value,
            gateway_status=gateway_status,
        )
        return transaction

    async def _apply_success(self, transaction: PaymentTransaction) -> None:
        if transaction.purpose == PaymentPurpose.WALLET_TOPUP:
            await self.wallet_service.credit(
                transaction.user_id,
                transaction.amount,
                reference=f"TOPUP-{transaction.reference}",
                description="Wallet top-up",
            )
            return

        order = await self._payment_order(transaction)
        if order is not None:
            order.payment_status = OrderPaymentStatus.COMPLETED
            order.payment_reference = transaction.reference

    async def _apply_failure(self, transaction: PaymentTransaction) -> None:
        if transaction.purpose != PaymentPurpose.ORDER:
            return
        order = await self._payment_order(transaction)
        if order is not None and order.payment_status != OrderPaymentStatus.COMPLETED:
            order.payment_status = OrderPaymentStatus.FAILED

    async def _payment_order(self, transaction: PaymentTransaction) -> Optional[DeliveryOrder]:
        if transaction.order_id is None:
            return None
        return await self.order_repository.get_order_by_id(transaction.order_id, for_update=True)

    async def list_payments(
        self,
        actor: ActorContext,
        limit: int = 50,
    ) -> Sequence[PaymentTransaction]:
        return await self.repository.list_user_transactions(actor.user_id, limit=limit)
