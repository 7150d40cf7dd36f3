"""
Fixtures for HTTP-level tests.

Requests go through the real application over httpx.ASGITransport. The
acting user and the domain services are swapped in through
``app.dependency_overrides``; the lifespan is not run, so no database or
Redis connection is opened.
"""

from typing import AsyncIterator
from unittest.mock import AsyncMock

import httpx
import pytest

from courier.api.deps import (
    get_bid_service,
    get_bills_service,
    get_current_actor,
    get_order_service,
    get_partner_service,
    get_payment_service,
    get_wallet_service,
)
from courier.core.security import ActorContext
from courier.main import app
from courier.services.orders.service import OrderService

API = "/api/v1"


class ActorSwitch:
    """Mutable holder for the user the next request authenticates as."""

    def __init__(self, actor: ActorContext):
        self.actor = actor

    def __call__(self) -> ActorContext:
        return self.actor


@pytest.fixture
def acting(customer) -> ActorSwitch:
    return ActorSwitch(customer)


@pytest.fixture
def order_service(mock_session, fee_schedule) -> OrderService:
    service = OrderService(mock_session, fee_schedule=fee_schedule)
    for name in (
        "create_order",
        "get_order",
        "list_customer_orders",
        "list_open_orders",
        "list_partner_orders",
        "confirm_pickup",
        "start_transit",
        "submit_delivery_proof",
        "cancel_order",
        "get_tracking_history",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def bid_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def payment_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def wallet_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def bills_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def partner_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
async def client(
    acting,
    order_service,
    bid_service,
    payment_service,
    wallet_service,
    bills_service,
    partner_service,
) -> AsyncIterator[httpx.AsyncClient]:
    app.dependency_overrides.update(
        {
            get_current_actor: acting,
            get_order_service: lambda: order_service,
            get_bid_service: lambda: bid_service,
            get_payment_service: lambda: payment_service,
            get_wallet_service: lambda: wallet_service,
            get_bills_service: lambda: bills_service,
            get_partner_service: lambda: partner_service,
        }
    )
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
async def anonymous_client() -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
