"""
Bills service: airtime, data, TV and electricity paid from the wallet.

A purchase runs as a compensated sequence of local transactions:

1. debit the wallet and record the bill as pending, then commit;
2. call the aggregator;
3. on delivery mark the bill completed; on a definite rejection mark it
   failed and credit the debited amount back, then re-raise the error.

When the aggregator's answer is lost (a timeout or server error after the
request was sent) the bill stays pending with its debit, since the purchase
may have gone through. A pending aggregator transaction also stays pending.

Each step commits on its own so a crash between steps leaves a pending bill
row that names the wallet debit to reconcile.
"""

import uuid
from typing import Any, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import InputValidationError, RemoteCallFailedError
from courier.core.logging import get_logger, log_performance
from courier.core.security import ActorContext
from courier.database.connection import commit_session
from courier.database.models.payment import BillPayment
from courier.services.bills.enums import BillCategory, BillPaymentStatus, NetworkProvider
from courier.services.bills.repository import BillPaymentRepository
from courier.services.bills.vtpass_client import VTPassClient
from courier.services.orders.identifiers import generate_bill_request_id
from courier.services.orders.service import parse_enum
from courier.services.wallet.service import WalletService

logger = get_logger(__name__)

MAX_BILL_AMOUNT = 1_000_000

# content.transactions.status values reported alongside code "000"
FAILED_TRANSACTION_STATUSES = frozenset({"failed", "reversed"})
UNSETTLED_TRANSACTION_STATUSES = frozenset({"initiated", "pending"})


def is_definite_rejection(error: RemoteCallFailedError) -> bool:
    """
    True when the aggregator certainly did not deliver the purchase.

    An aggregator response code or an HTTP 4xx is a definite answer.
    Timeouts and server errors may hide a request that was processed.
    """
    if error.context.get("code"):
        return True
    status_code = error.context.get("status_code")
    return isinstance(status_code, int) and 400 <= status_code < 500


def _require_digits(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value or not value.isdigit() or len(value) > 20:
        raise InputValidationError(f"{field} must be a number of up to 20 digits", field=field)
    return value


def _require_code(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InputValidationError(f"{field} is required", field=field)
    return value


class BillsService:
    """
    Service for purchasing utilities through the bills aggregator.

    Attributes:
        session: Database session for the current unit of work
        aggregator: Bills aggregator client
        wallet_service: Wallet the purchases are paid from
        repository: Bill payment repository
    """

    def __init__(
        self,
        session: AsyncSession,
        aggregator: VTPassClient,
        wallet_service: Optional[WalletService] = None,
    ):
        self.session = session
        self.aggregator = aggregator
        self.wallet_service = wallet_service or WalletService(session)
        self.repository = BillPaymentRepository(session)

    @staticmethod
    def resolve_service_id(category: BillCategory, provider: str) -> str:
        """Map a category and user-facing provider name to the aggregator service id."""
        if category == BillCategory.AIRTIME:
            return parse_enum(NetworkProvider, provider, "provider").service_id
        if category == BillCategory.DATA:
            return parse_enum(NetworkProvider, provider, "provider").data_service_id
        return _require_code(provider, "provider").lower()

    async def pay_bill(
        self,
        actor: ActorContext,
        category: Union[BillCategory, str],
        provider: str,
        account_number: str,
        amount: int,
        phone: Optional[str] = None,
        variation_code: Optional[str] = None,
    ) -> BillPayment:
        """
        Buy a utility and pay for it from the actor's wallet.

        Args:
            actor: Paying user
            category: airtime, data, dstv or electric
            provider: Network name (airtime, data) or biller service id
            account_number: Phone, smart card or meter number
            amount: Amount in whole currency units
            phone: Contact phone, required for TV and electricity
            variation_code: Bundle or package code, required for data and TV

        Raises:
            InputValidationError: If any input is missing or malformed
            PreconditionFailedError: If the wallet balance is insufficient
            RemoteCallFailedError: If the aggregator call fails. The wallet
                has been refunded when the aggregator rejected the purchase;
                otherwise the bill is left pending under its request_id
        """
        bill_category = parse_enum(BillCategory, category, "category")
        service_id = self.resolve_service_id(bill_category, provider)
        account = _require_digits(account_number, "account_number")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InputValidationError("amount must be a positive integer", field="amount")
        if amount > MAX_BILL_AMOUNT:
            raise InputValidationError(f"amount must be at most {MAX_BILL_AMOUNT}", field="amount")

        if bill_category in (BillCategory.DATA, BillCategory.DSTV):
            variation_code = _require_code(variation_code, "variation_code")
        if bill_category in (BillCategory.DSTV, BillCategory.ELECTRIC):
            phone = _require_digits(phone, "phone")

        request_id = generate_bill_request_id()
        wallet_reference = f"BILL-{request_id}"

        await self.wallet_service.debit(
            actor.user_id,
            amount,
            reference=wallet_reference,
            description=f"{bill_category.display_name} purchase",
        )
        payment = BillPayment(
            id=uuid.uuid4(),
            request_id=request_id,
            user_id=actor.user_id,
            category=bill_category,
            provider=provider,
            service_id=service_id,
            account_number=account,
            amount=amount,
            payment_status=BillPaymentStatus.PENDING,
            wallet_reference=wallet_reference,
        )
        await self.repository.create_payment(payment)
        await commit_session(self.session)

        try:
            with log_performance(logger, "bill_purchase", request_id=request_id):
                response = await self._purchase(
                    bill_category, service_id, account, amount, phone, variation_code, request_id
                )
        except RemoteCallFailedError as e:
            e.context.setdefault("request_id", request_id)
            if is_definite_rejection(e):
                await self._compensate(payment, e)
            else:
                await self._hold_for_reconciliation(payment, e)
            raise

        transactions = (response.get("content") or {}).get("transactions") or {}
        transaction_id = transactions.get("transactionId")
        transaction_status = str(transactions.get("status") or "").lower()
        payment.response_code = response.get("code")
        payment.transaction_reference = str(transaction_id) if transaction_id else None

        if transaction_status in FAILED_TRANSACTION_STATUSES:
            error = RemoteCallFailedError(
                response.get("response_description") or "Bill transaction failed",
                service="vtpass",
                code=response.get("code"),
                transaction_status=transaction_status,
                request_id=request_id,
            )
            await self._compensate(payment, error)
            raise error

        if transaction_status in UNSETTLED_TRANSACTION_STATUSES:
            await self.repository.save(payment)
            await commit_session(self.session)
            logger.info(
                "Bill payment awaiting delivery",
                request_id=request_id,
                transaction_status=transaction_status,
            )
            return payment

        payment.payment_status = BillPaymentStatus.COMPLETED
        await self.repository.save(payment)
        await commit_session(self.session)

        logger.info(
            "Bill payment completed",
            request_id=request_id,
            category=bill_category.value,
            amount=amount,
            user_id=str(actor.user_id),
        )
        return payment

    async def _purchase(
        self,
        category: BillCategory,
        service_id: str,
        account: str,
        amount: int,
        phone: Optional[str],
        variation_code: Optional[str],
        request_id: str,
    ) -> dict[str, Any]:
        if category == BillCategory.AIRTIME:
            return await self.aggregator.purchase_airtime(service_id, account, amount, request_id)
        if category == BillCategory.DATA:
            network = service_id[: -len("-data")]
            return await self.aggregator.purchase_data(network, account, variation_code, request_id)
        if category == BillCategory.DSTV:
            return await self.aggregator.pay_tv_subscription(
                account, service_id, variation_code, amount, phone, request_id
            )
        return await self.aggregator.pay_electricity(account, service_id, amount, phone, request_id)

    async def _compensate(self, payment: BillPayment, error: RemoteCallFailedError) -> None:
        payment.payment_status = BillPaymentStatus.FAILED
        payment.response_code = error.context.get("code")
        await self.repository.save(payment)
        await self.wallet_service.credit(
            payment.user_id,
            payment.amount,
            reference=f"REFUND-{payment.request_id}",
            description="Refund for failed bill payment",
        )
        await commit_session(self.session)

        logger.warning(
            "Bill payment failed, wallet refunded",
            request_id=payment.request_id,
            amount=payment.amount,
            code=error.context.get("code"),
        )

    async def _hold_for_reconciliation(
        self, payment: BillPayment, error: RemoteCallFailedError
    ) -> None:
        # The debit stays in place until the aggregator's outcome is known.
        await self.repository.save(payment)
        await commit_session(self.session)

        logger.error(
            "Bill payment outcome unknown, left pending for reconciliation",
            request_id=payment.request_id,
            wallet_reference=payment.wallet_reference,
            amount=payment.amount,
            last_error=error.context.get("last_error"),
        )

    async def verify_smart_card(
        self,
        actor: ActorContext,
        card_number: str,
        service_id: str,
    ) -> dict[str, Any]:
        """Look up the subscriber behind a smart card before paying."""
        card = _require_digits(card_number, "card_number")
        service = _require_code(service_id, "service_id").lower()
        response = await self.aggregator.verify_smart_card(card, service)
        logger.info(
            "Smart card verified",
            service_id=service,
            user_id=str(actor.user_id),
        )
        return response.get("content") or {}

    async def list_bill_payments(
        self,
        actor: ActorContext,
        limit: int = 50,
    ) -> Sequence[BillPayment]:
        return await self.repository.list_user_payments(actor.user_id, limit=limit)
