"""
Pytest configuration and shared test fixtures.

Provides mocked async sessions, actor contexts for each role, and factories
for orders and bids in a given lifecycle state. Service tests run against
the real services with their repositories replaced by AsyncMocks.
"""

import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("APP_ENVIRONMENT", "test")

from courier.cache.redis_client import RedisClient  # noqa: E402
from courier.core.security import ActorContext, ActorRole  # noqa: E402
from courier.database.models.bid import Bid  # noqa: E402
from courier.database.models.order import DeliveryOrder  # noqa: E402
from courier.services.orders.enums import (  # noqa: E402
    BiddingStatus,
    BidStatus,
    DeliveryType,
    OrderPaymentStatus,
    OrderStatus,
    VehicleType,
)
from courier.services.orders.pricing import FeeSchedule  # noqa: E402


# ============================================================================
# Session and actors
# ============================================================================


@pytest.fixture
def mock_session() -> AsyncMock:
    """
    Create mock async database session.

    ``info`` is a real dict so after-commit callbacks behave as in production.
    """
    session = AsyncMock(spec=AsyncSession)
    session.info = {}
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    return session


@pytest.fixture
def customer() -> ActorContext:
    return ActorContext(user_id=uuid.uuid4(), role=ActorRole.CUSTOMER)


@pytest.fixture
def partner() -> ActorContext:
    return ActorContext(user_id=uuid.uuid4(), role=ActorRole.PARTNER)


@pytest.fixture
def other_partner() -> ActorContext:
    return ActorContext(user_id=uuid.uuid4(), role=ActorRole.PARTNER)


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(user_id=uuid.uuid4(), role=ActorRole.ADMIN)


@pytest.fixture
def fee_schedule() -> FeeSchedule:
    """Default marketplace rates: 500 base, 100 per km, 10% fragile insurance."""
    return FeeSchedule(
        base_rate=Decimal("500"),
        per_km_rate=Decimal("100"),
        insurance_rate=Decimal("0.10"),
    )


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_order(customer: ActorContext) -> Callable[..., DeliveryOrder]:
    """Factory for detached orders; defaults to a fresh pending order."""

    def _make(
        status: OrderStatus = OrderStatus.PENDING,
        bid_status: BiddingStatus = BiddingStatus.OPEN_FOR_BIDS,
        customer_id: Optional[uuid.UUID] = None,
        partner_id: Optional[uuid.UUID] = None,
        **overrides: Any,
    ) -> DeliveryOrder:
        now = datetime.now(timezone.utc)
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "order_number": "ORD-TEST-00001",
            "customer_id": customer_id or customer.user_id,
            "partner_id": partner_id,
            "vehicle_type": VehicleType.BIKE,
            "delivery_type": DeliveryType.STANDARD,
            "pickup_address": "12 Allen Avenue, Ikeja",
            "dropoff_address": "3 Admiralty Way, Lekki",
            "recipient_name": "Ada Obi",
            "recipient_phone": "+2348012345678",
            "distance_km": Decimal("5"),
            "estimated_duration_minutes": 150,
            "is_fragile": False,
            "base_fee": 1000,
            "fragile_handling_fee": 0,
            "total_cost": 1000,
            "status": status,
            "bid_status": bid_status,
            "payment_status": OrderPaymentStatus.PENDING,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return DeliveryOrder(**fields)

    return _make


@pytest.fixture
def make_bid(partner: ActorContext) -> Callable[..., Bid]:
    def _make(
        order: DeliveryOrder,
        status: BidStatus = BidStatus.PENDING,
        partner_id: Optional[uuid.UUID] = None,
        bid_amount: int = 900,
    ) -> Bid:
        now = datetime.now(timezone.utc)
        return Bid(
            id=uuid.uuid4(),
            order_id=order.id,
            partner_id=partner_id or partner.user_id,
            bid_amount=bid_amount,
            vehicle_type=VehicleType.BIKE,
            estimated_pickup_minutes=15,
            status=status,
            created_at=now,
            updated_at=now,
        )

    return _make


@pytest.fixture
def assigned_order(make_order, partner: ActorContext) -> Callable[..., DeliveryOrder]:
    """Factory for orders that already have ``partner`` assigned."""

    def _make(status: OrderStatus = OrderStatus.ACCEPTED, **overrides: Any) -> DeliveryOrder:
        return make_order(
            status=status,
            bid_status=BiddingStatus.BID_ACCEPTED,
            partner_id=partner.user_id,
            **overrides,
        )

    return _make


@pytest.fixture
def mock_redis() -> MagicMock:
    """Connected Redis client double that records publishes."""
    client = MagicMock(spec=RedisClient)
    client.is_connected = True
    client.publish_json = AsyncMock(return_value=1)
    return client
