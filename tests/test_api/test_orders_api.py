"""HTTP tests for the order endpoints and the shared error rendering."""

import uuid

from courier.core.errors import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    RemoteCallFailedError,
)
from courier.services.orders.enums import OrderStatus

API = "/api/v1"

ORDER_PAYLOAD = {
    "pickup_address": "12 Allen Avenue, Ikeja",
    "dropoff_address": "3 Admiralty Way, Lekki",
    "recipient_name": "Ada Obi",
    "recipient_phone": "+2348012345678",
    "vehicle_type": "bike",
    "delivery_type": "express",
    "distance_km": "2.35",
    "is_fragile": True,
}


class TestQuote:
    async def test_quote_prices_delivery(self, client):
        response = await client.post(
            f"{API}/orders/quote",
            json={"distance_km": 5, "delivery_type": "standard", "is_fragile": True},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["base_fee"] == 1000
        assert body["fragile_handling_fee"] == 100
        assert body["total_cost"] == 1100
        assert body["estimated_duration_minutes"] == 150

    async def test_negative_distance_is_422(self, client):
        response = await client.post(f"{API}/orders/quote", json={"distance_km": -1})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]["errors"][0]["loc"][-1] == "distance_km"


class TestCreateOrder:
    async def test_customer_creates_order(self, client, order_service, make_order, customer):
        order_service.create_order.return_value = make_order()

        response = await client.post(f"{API}/orders", json=ORDER_PAYLOAD)

        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        args, kwargs = order_service.create_order.await_args
        assert args == (customer,)
        assert kwargs["pickup_address"] == "12 Allen Avenue, Ikeja"
        assert kwargs["is_fragile"] is True

    async def test_partner_cannot_create_order(self, client, acting, partner, order_service):
        acting.actor = partner

        response = await client.post(f"{API}/orders", json=ORDER_PAYLOAD)

        assert response.status_code == 403
        order_service.create_order.assert_not_awaited()

    async def test_unauthenticated_request_is_401(self, anonymous_client):
        response = await anonymous_client.post(f"{API}/orders", json=ORDER_PAYLOAD)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestLifecycleEndpoints:
    async def test_partner_confirms_pickup(
        self, client, acting, partner, order_service, assigned_order
    ):
        acting.actor = partner
        order = assigned_order(status=OrderStatus.PICKUP_CONFIRMED)
        order_service.confirm_pickup.return_value = order

        response = await client.post(
            f"{API}/orders/{order.id}/pickup", json={"note": "Collected two boxes"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pickup_confirmed"
        order_service.confirm_pickup.assert_awaited_once_with(
            partner, order.id, "Collected two boxes"
        )

    async def test_invalid_transition_is_409(self, client, acting, partner, order_service):
        acting.actor = partner
        order_service.start_transit.side_effect = InvalidTransitionError(
            "Cannot start transit",
            current_state=OrderStatus.ACCEPTED,
            target_state=OrderStatus.IN_TRANSIT,
        )

        response = await client.post(f"{API}/orders/{uuid.uuid4()}/transit")

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "INVALID_TRANSITION"
        assert body["details"]["current_state"] == "accepted"
        assert body["details"]["target_state"] == "in_transit"

    async def test_proof_requires_image_url(self, client, acting, partner):
        acting.actor = partner

        response = await client.post(f"{API}/orders/{uuid.uuid4()}/proof", json={})

        assert response.status_code == 422

    async def test_customer_cancels(self, client, order_service, make_order, customer):
        order = make_order(status=OrderStatus.CANCELLED)
        order_service.cancel_order.return_value = order

        response = await client.post(
            f"{API}/orders/{order.id}/cancel", json={"reason": "Changed plans"}
        )

        assert response.status_code == 200
        order_service.cancel_order.assert_awaited_once_with(customer, order.id, "Changed plans")


class TestErrorRendering:
    async def test_not_found_carries_request_id(self, client, order_service):
        order_id = uuid.uuid4()
        order_service.get_order.side_effect = NotFoundError(
            "Order not found", order_id=str(order_id)
        )

        response = await client.get(
            f"{API}/orders/{order_id}", headers={"X-Request-ID": "req-123"}
        )

        assert response.status_code == 404
        assert response.json() == {
            "error": "NOT_FOUND",
            "message": "Order not found",
            "details": {"order_id": str(order_id)},
            "request_id": "req-123",
        }
        assert response.headers["X-Request-ID"] == "req-123"

    async def test_concurrency_conflict_is_409(self, client, order_service):
        order_service.get_order.side_effect = ConcurrencyConflictError("Order changed")

        response = await client.get(f"{API}/orders/{uuid.uuid4()}")

        assert response.status_code == 409
        assert response.json()["error"] == "CONCURRENCY_CONFLICT"

    async def test_database_outage_is_503(self, client, order_service):
        order_service.get_order.side_effect = RemoteCallFailedError(
            "Database unavailable", service="database"
        )

        response = await client.get(f"{API}/orders/{uuid.uuid4()}")

        assert response.status_code == 503

    async def test_unexpected_error_is_500(self, client, order_service):
        order_service.get_order.side_effect = RuntimeError("boom")

        response = await client.get(f"{API}/orders/{uuid.uuid4()}")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "INTERNAL_ERROR"
        assert "boom" not in body["message"]
