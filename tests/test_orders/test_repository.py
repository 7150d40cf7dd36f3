"""
Test suite for OrderRepository.

Covers the marketplace queries (filters, ordering and page bounds compiled
for PostgreSQL), row locking, and how integrity and database errors are
surfaced.
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import PreconditionFailedError, RemoteCallFailedError
from courier.database.models.order import DeliveryProof, TrackingEvent
from courier.services.orders.enums import BiddingStatus, OrderStatus, VehicleType
from courier.services.orders.repository import MAX_PAGE_SIZE, OrderRepository


@pytest.fixture
def session() -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.rollback = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def order_repository(session) -> OrderRepository:
    return OrderRepository(session=session)


def rows(items=()):
    result = MagicMock()
    result.scalars.return_value.all.return_value = list(items)
    return result


def compiled(session: AsyncMock):
    stmt = session.execute.await_args.args[0]
    return stmt.compile(dialect=postgresql.dialect())


class TestOrderQueries:
    """Test suite for order reads."""

    async def test_get_for_update_locks_row(self, order_repository, session):
        order_id = uuid.uuid4()
        session.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=None))

        await order_repository.get_order_by_id(order_id, for_update=True)

        statement = compiled(session)
        assert str(statement).endswith("FOR UPDATE")
        assert statement.params["id_1"] == order_id

    async def test_open_orders_are_pending_and_open_for_bids(self, order_repository, session):
        session.execute.return_value = rows()

        await order_repository.list_open_orders(vehicle_type=VehicleType.BIKE)

        statement = compiled(session)
        sql = str(statement)
        assert "delivery_orders.bid_status = " in sql
        assert "delivery_orders.status = " in sql
        assert "delivery_orders.vehicle_type = " in sql
        assert "ORDER BY delivery_orders.created_at DESC, delivery_orders.id" in sql
        assert statement.params["bid_status_1"] == BiddingStatus.OPEN_FOR_BIDS
        assert statement.params["status_1"] == OrderStatus.PENDING
        assert statement.params["vehicle_type_1"] == VehicleType.BIKE

    async def test_page_size_is_capped(self, order_repository, session):
        session.execute.return_value = rows()

        await order_repository.list_customer_orders(uuid.uuid4(), skip=-5, limit=10_000)

        sql = str(compiled(session))
        assert "LIMIT" in sql
        assert MAX_PAGE_SIZE in compiled(session).params.values()
        assert 10_000 not in compiled(session).params.values()

    async def test_partner_orders_filter_by_partner_and_status(self, order_repository, session):
        partner_id = uuid.uuid4()
        session.execute.return_value = rows()

        await order_repository.list_partner_orders(partner_id, status=OrderStatus.IN_TRANSIT)

        params = compiled(session).params
        assert params["partner_id_1"] == partner_id
        assert params["status_1"] == OrderStatus.IN_TRANSIT

    async def test_tracking_events_newest_first(self, order_repository, session):
        session.execute.return_value = rows()

        await order_repository.list_tracking_events(uuid.uuid4(), limit=5)

        statement = compiled(session)
        assert "ORDER BY tracking_events.created_at DESC, tracking_events.id" in str(statement)
        assert 5 in statement.params.values()


class TestOrderWrites:
    """Test suite for inserts and error handling."""

    async def test_create_order_links_event(self, order_repository, session, make_order):
        order = make_order()
        event = TrackingEvent(status=OrderStatus.PENDING)

        result = await order_repository.create_order(order, event)

        assert result is order
        assert event.order_id == order.id
        assert [c.args[0] for c in session.add.call_args_list] == [order, event]

    async def test_duplicate_order_is_precondition_failure(
        self, order_repository, session, make_order
    ):
        session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(PreconditionFailedError):
            await order_repository.create_order(
                make_order(idempotency_key="k-1"), TrackingEvent(status=OrderStatus.PENDING)
            )

        session.rollback.assert_awaited_once()

    async def test_second_delivery_proof_rejected(self, order_repository, session):
        session.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        proof = DeliveryProof(order_id=uuid.uuid4(), image_url="https://img.test/p.jpg")

        with pytest.raises(PreconditionFailedError):
            await order_repository.add_delivery_proof(proof)

    async def test_database_error_is_reported(self, order_repository, session):
        session.execute.side_effect = SQLAlchemyError("connection lost")

        with pytest.raises(RemoteCallFailedError) as exc_info:
            await order_repository.list_open_orders()

        assert exc_info.value.service == "database"
        assert exc_info.value.status_code == 503
        session.rollback.assert_awaited_once()
