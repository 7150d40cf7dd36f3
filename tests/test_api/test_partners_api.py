"""HTTP tests for partner profiles, earnings and order ratings."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from courier.core.errors import PreconditionFailedError
from courier.database.models.partner import PartnerProfile, Rating
from courier.services.orders.enums import VehicleType
from courier.services.partners.service import EarningsSummary

API = "/api/v1"

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_profile(user_id: uuid.UUID, **overrides) -> PartnerProfile:
    fields = {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "vehicle_type": VehicleType.BIKE,
        "vehicle_registration": "LAG-123-XY",
        "is_online": False,
        "total_earnings": 0,
        "pending_payout": 0,
        "completed_deliveries": 4,
        "average_rating": Decimal("4.50"),
        "rating_count": 2,
    }
    fields.update(overrides)
    return PartnerProfile(**fields)


async def test_partner_goes_online(client, acting, partner, partner_service):
    acting.actor = partner
    partner_service.set_online_status.return_value = make_profile(
        partner.user_id, is_online=True
    )

    response = await client.patch(f"{API}/partners/me/status", json={"is_online": True})

    assert response.status_code == 200
    assert response.json()["is_online"] is True
    partner_service.set_online_status.assert_awaited_once_with(partner, True)


async def test_online_flag_must_be_boolean(client, acting, partner, partner_service):
    acting.actor = partner

    response = await client.patch(f"{API}/partners/me/status", json={"is_online": "yes"})

    assert response.status_code == 422
    partner_service.set_online_status.assert_not_awaited()


async def test_customer_cannot_read_partner_dashboard(client, partner_service):
    response = await client.get(f"{API}/partners/me/earnings")

    assert response.status_code == 403
    partner_service.get_earnings_summary.assert_not_awaited()


async def test_earnings_summary(client, acting, partner, partner_service):
    acting.actor = partner
    partner_service.get_earnings_summary.return_value = EarningsSummary(
        today=1200,
        last_7_days=5600,
        total_earnings=9000,
        pending_payout=4000,
        completed_deliveries=7,
        average_rating=Decimal("4.50"),
    )

    response = await client.get(f"{API}/partners/me/earnings")

    assert response.status_code == 200
    body = response.json()
    assert body["today"] == 1200
    assert body["last_7_days"] == 5600
    assert body["pending_payout"] == 4000


async def test_public_profile(client, partner, partner_service):
    partner_service.get_public_profile.return_value = make_profile(partner.user_id)

    response = await client.get(f"{API}/partners/{partner.user_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == str(partner.user_id)
    assert "total_earnings" not in body


async def test_customer_rates_delivered_order(client, customer, partner, partner_service):
    order_id = uuid.uuid4()
    partner_service.rate_order.return_value = Rating(
        id=uuid.uuid4(),
        order_id=order_id,
        customer_id=customer.user_id,
        partner_id=partner.user_id,
        rating=5,
        comment="Great",
        created_at=NOW,
    )

    response = await client.post(
        f"{API}/orders/{order_id}/rating", json={"rating": 5, "comment": "Great"}
    )

    assert response.status_code == 201
    assert response.json()["rating"] == 5
    partner_service.rate_order.assert_awaited_once_with(customer, order_id, 5, "Great")


async def test_rating_out_of_range_is_422(client, partner_service):
    response = await client.post(f"{API}/orders/{uuid.uuid4()}/rating", json={"rating": 6})

    assert response.status_code == 422
    partner_service.rate_order.assert_not_awaited()


async def test_second_rating_is_409(client, partner_service):
    partner_service.rate_order.side_effect = PreconditionFailedError("Order already rated")

    response = await client.post(f"{API}/orders/{uuid.uuid4()}/rating", json={"rating": 4})

    assert response.status_code == 409


async def test_partner_cannot_rate(client, acting, partner, partner_service):
    acting.actor = partner

    response = await client.post(f"{API}/orders/{uuid.uuid4()}/rating", json={"rating": 5})

    assert response.status_code == 403
    partner_service.rate_order.assert_not_awaited()
