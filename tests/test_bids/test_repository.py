"""
Test suite for BidRepository.

Statements handed to the mocked session are compiled for PostgreSQL and
checked for the filters they carry.
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import RemoteCallFailedError
from courier.services.bids.repository import BidRepository
from courier.services.orders.enums import BidStatus


@pytest.fixture
def session() -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.rollback = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def bid_repository(session) -> BidRepository:
    return BidRepository(session=session)


def compiled(session: AsyncMock):
    stmt = session.execute.await_args.args[0]
    return stmt.compile(dialect=postgresql.dialect())


class TestRejectPendingBids:
    """Test suite for reject_pending_bids."""

    async def test_rejects_only_pending_bids_of_the_order(self, bid_repository, session):
        order_id = uuid.uuid4()
        winner_id = uuid.uuid4()
        session.execute.return_value = MagicMock(rowcount=3)

        rejected = await bid_repository.reject_pending_bids(order_id, exclude_bid_id=winner_id)

        assert rejected == 3
        statement = compiled(session)
        sql = str(statement)
        assert sql.startswith("UPDATE bids SET status=")
        assert "bids.order_id = " in sql
        assert "bids.status = " in sql
        assert "bids.id != " in sql
        params = statement.params
        assert params["status"] == BidStatus.REJECTED
        assert params["status_1"] == BidStatus.PENDING
        assert params["order_id_1"] == order_id
        assert params["id_1"] == winner_id

    async def test_without_exclusion_rejects_every_pending_bid(self, bid_repository, session):
        session.execute.return_value = MagicMock(rowcount=0)

        assert await bid_repository.reject_pending_bids(uuid.uuid4()) == 0

        sql = str(compiled(session))
        assert "bids.status = " in sql
        assert "bids.id != " not in sql

    async def test_database_error_is_reported(self, bid_repository, session):
        session.execute.side_effect = SQLAlchemyError("deadlock detected")

        with pytest.raises(RemoteCallFailedError) as exc_info:
            await bid_repository.reject_pending_bids(uuid.uuid4())

        assert exc_info.value.status_code == 503
        assert exc_info.value.context["operation"] == "reject_pending_bids"
        session.rollback.assert_awaited_once()


class TestBidQueries:
    """Test suite for bid reads."""

    async def test_get_for_update_locks_row(self, bid_repository, session):
        bid_id = uuid.uuid4()
        session.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=None))

        assert await bid_repository.get_bid_by_id(bid_id, for_update=True) is None

        sql = str(compiled(session))
        assert "WHERE bids.id = " in sql
        assert sql.endswith("FOR UPDATE")

    async def test_plain_get_does_not_lock(self, bid_repository, session):
        session.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=None))

        await bid_repository.get_bid_by_id(uuid.uuid4())

        assert "FOR UPDATE" not in str(compiled(session))

    async def test_list_bids_filters_and_orders_newest_first(self, bid_repository, session):
        order_id = uuid.uuid4()
        partner_id = uuid.uuid4()
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        session.execute.return_value = result

        await bid_repository.list_bids(order_id, partner_id=partner_id, status=BidStatus.PENDING)

        statement = compiled(session)
        sql = str(statement)
        assert "bids.partner_id = " in sql
        assert "ORDER BY bids.created_at DESC, bids.id" in sql
        assert statement.params["order_id_1"] == order_id
        assert statement.params["partner_id_1"] == partner_id

    async def test_count_pending_bids_by_partner(self, bid_repository, session):
        session.execute.return_value = MagicMock(scalar_one=MagicMock(return_value=2))

        assert await bid_repository.count_pending_bids_by_partner(uuid.uuid4(), uuid.uuid4()) == 2

        statement = compiled(session)
        assert "count(bids.id)" in str(statement)
        assert statement.params["status_1"] == BidStatus.PENDING
