"""
Test suite for wallet balances and the wallet ledger.

Covers credits and debits, insufficient balance, replay by reference,
amount validation, and the get-or-create wallet read path.
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from courier.core.errors import (
    InputValidationError,
    PreconditionFailedError,
    RemoteCallFailedError,
)
from courier.database.models.wallet import Wallet, WalletTransaction
from courier.services.payments.enums import WalletTransactionType
from courier.services.wallet.repository import WalletRepository
from courier.services.wallet.service import WalletService


def make_wallet(user_id: uuid.UUID, balance: int = 0, is_active: bool = True) -> Wallet:
    return Wallet(
        id=uuid.uuid4(),
        user_id=user_id,
        balance=balance,
        currency="NGN",
        is_active=is_active,
    )


@pytest.fixture
def wallet_service(mock_session) -> WalletService:
    service = WalletService(mock_session)
    service.repository = AsyncMock()
    service.repository.get_transaction_by_reference.return_value = None
    return service


class TestBalanceChanges:
    """Test suite for credit and debit."""

    async def test_credit_adds_funds(self, wallet_service, mock_session, customer):
        wallet = make_wallet(customer.user_id, balance=500)
        wallet_service.repository.get_or_create_wallet.return_value = wallet

        entry = await wallet_service.credit(customer.user_id, 1500, "TOPUP-1", "Top up")

        assert wallet.balance == 2000
        assert entry.transaction_type == WalletTransactionType.CREDIT
        assert entry.balance_before == 500
        assert entry.balance_after == 2000
        assert entry.reference == "TOPUP-1"
        wallet_service.repository.get_or_create_wallet.assert_awaited_once_with(
            customer.user_id, "NGN", for_update=True
        )
        wallet_service.repository.add_transaction.assert_awaited_once_with(entry)
        mock_session.commit.assert_not_awaited()

    async def test_debit_removes_funds(self, wallet_service, customer):
        wallet = make_wallet(customer.user_id, balance=1000)
        wallet_service.repository.get_or_create_wallet.return_value = wallet

        entry = await wallet_service.debit(customer.user_id, 400, "BILL-1")

        assert wallet.balance == 600
        assert entry.transaction_type == WalletTransactionType.DEBIT

    async def test_debit_whole_balance(self, wallet_service, customer):
        wallet = make_wallet(customer.user_id, balance=400)
        wallet_service.repository.get_or_create_wallet.return_value = wallet

        await wallet_service.debit(customer.user_id, 400, "BILL-2")

        assert wallet.balance == 0

    async def test_insufficient_balance(self, wallet_service, customer):
        wallet = make_wallet(customer.user_id, balance=100)
        wallet_service.repository.get_or_create_wallet.return_value = wallet

        with pytest.raises(PreconditionFailedError) as exc_info:
            await wallet_service.debit(customer.user_id, 101, "BILL-3")

        assert exc_info.value.context["balance"] == 100
        assert wallet.balance == 100
        wallet_service.repository.add_transaction.assert_not_awaited()

    async def test_replayed_reference_returns_first_entry(self, wallet_service, customer):
        wallet = make_wallet(customer.user_id, balance=2000)
        wallet_service.repository.get_or_create_wallet.return_value = wallet
        first = WalletTransaction(
            reference="TOPUP-1",
            transaction_type=WalletTransactionType.CREDIT,
            amount=1500,
        )
        wallet_service.repository.get_transaction_by_reference.return_value = first

        entry = await wallet_service.credit(customer.user_id, 1500, "TOPUP-1")

        assert entry is first
        assert wallet.balance == 2000
        wallet_service.repository.add_transaction.assert_not_awaited()

    async def test_inactive_wallet(self, wallet_service, customer):
        wallet_service.repository.get_or_create_wallet.return_value = make_wallet(
            customer.user_id, balance=1000, is_active=False
        )

        with pytest.raises(PreconditionFailedError):
            await wallet_service.debit(customer.user_id, 10, "BILL-4")

    @pytest.mark.parametrize("amount", [0, -5, 1.5, True])
    async def test_invalid_amount(self, wallet_service, customer, amount):
        with pytest.raises(InputValidationError):
            await wallet_service.credit(customer.user_id, amount, "REF")

    async def test_reference_required(self, wallet_service, customer):
        with pytest.raises(InputValidationError):
            await wallet_service.credit(customer.user_id, 10, "")


class TestWalletReads:
    """Test suite for get_wallet and list_transactions."""

    async def test_get_wallet_commits_creation(self, wallet_service, mock_session, customer):
        wallet = make_wallet(customer.user_id)
        wallet_service.repository.get_or_create_wallet.return_value = wallet

        assert await wallet_service.get_wallet(customer) is wallet
        mock_session.commit.assert_awaited_once()

    async def test_list_transactions(self, wallet_service, customer):
        wallet = make_wallet(customer.user_id)
        wallet_service.repository.get_or_create_wallet.return_value = wallet
        wallet_service.repository.list_transactions.return_value = []

        await wallet_service.list_transactions(customer, limit=5)

        wallet_service.repository.list_transactions.assert_awaited_once_with(wallet.id, limit=5)


class TestWalletRepository:
    """Test suite for WalletRepository against a mocked session."""

    async def test_existing_wallet_is_returned_without_insert(self, mock_session, customer):
        wallet = make_wallet(customer.user_id)
        result = MagicMock()
        result.scalar_one_or_none.return_value = wallet
        mock_session.execute.return_value = result

        found = await WalletRepository(mock_session).get_or_create_wallet(customer.user_id, "NGN")

        assert found is wallet
        assert mock_session.execute.await_count == 1

    async def test_missing_wallet_is_inserted(self, mock_session, customer):
        wallet = make_wallet(customer.user_id)
        missing = MagicMock()
        missing.scalar_one_or_none.return_value = None
        created = MagicMock()
        created.scalar_one.return_value = wallet
        mock_session.execute.side_effect = [missing, MagicMock(), created]

        found = await WalletRepository(mock_session).get_or_create_wallet(customer.user_id, "NGN")

        assert found is wallet
        assert mock_session.execute.await_count == 3

    async def test_database_error_maps_to_remote_call_failure(self, mock_session, customer):
        mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(RemoteCallFailedError) as exc_info:
            await WalletRepository(mock_session).get_or_create_wallet(customer.user_id, "NGN")

        assert exc_info.value.service == "database"
        mock_session.rollback.assert_awaited_once()
