"""
Tests for the realtime WebSocket streams.

The relay is exercised against an in-memory socket double; the tracking and
chat routes run through Starlette's TestClient with the session, services
and Redis lookup patched out.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.websockets import WebSocketDisconnect

from courier.api.streaming import relay
from courier.core.errors import PermissionDeniedError
from courier.database.models.order import TrackingEvent
from courier.main import app
from courier.services.orders.enums import OrderStatus

API = "/api/v1"


class FakeWebSocket:
    """Accepted socket double with a queue of client frames."""

    def __init__(self):
        self.sent = []
        self.closed_with = None
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def receive(self):
        return await self.incoming.get()

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code=1000):
        self.closed_with = code

    def client_disconnects(self):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": 1001})


def wrap(payload):
    return {"type": "event", "event": payload}


class TestRelay:
    """Test suite for the subscription relay."""

    async def test_disconnect_without_events_releases_subscription(self):
        released = asyncio.Event()

        async def quiet_subscription():
            try:
                await asyncio.Event().wait()
                yield {"status": "accepted"}
            finally:
                released.set()

        websocket = FakeWebSocket()
        websocket.client_disconnects()

        await asyncio.wait_for(relay(websocket, quiet_subscription(), wrap), timeout=1)

        assert released.is_set()
        assert websocket.sent == []
        assert websocket.closed_with is None

    async def test_final_event_closes_stream(self):
        async def subscription():
            yield {"status": "in_transit"}
            yield {"status": "delivered"}
            yield {"status": "never_sent"}

        websocket = FakeWebSocket()

        await asyncio.wait_for(
            relay(
                websocket,
                subscription(),
                wrap,
                is_final=lambda payload: payload["status"] == "delivered",
            ),
            timeout=1,
        )

        assert [m["event"]["status"] for m in websocket.sent] == ["in_transit", "delivered"]
        assert websocket.closed_with == 1000

    async def test_redis_failure_asks_client_to_retry(self):
        async def broken_subscription():
            raise RedisConnectionError("connection reset")
            yield {}

        websocket = FakeWebSocket()

        await asyncio.wait_for(relay(websocket, broken_subscription(), wrap), timeout=1)

        assert websocket.closed_with == 1013


@asynccontextmanager
async def fake_session():
    yield AsyncMock()


@pytest.fixture
def ws_client():
    return TestClient(app)


def make_event(order_id, status):
    return TrackingEvent(
        id=uuid.uuid4(),
        order_id=order_id,
        status=status,
        notes=None,
        actor_id=uuid.uuid4(),
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestTrackingStream:
    """Test suite for the tracking WebSocket route."""

    def test_invalid_token_rejected(self, ws_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with ws_client.websocket_connect(
                f"{API}/orders/{uuid.uuid4()}/tracking/stream?token=not-a-jwt"
            ):
                pass

        assert exc_info.value.code == 1008

    def test_finished_order_closes_after_history(self, ws_client, customer):
        order_id = uuid.uuid4()
        service_cls = MagicMock()
        service_cls.return_value.get_tracking_history = AsyncMock(
            return_value=[make_event(order_id, OrderStatus.DELIVERED)]
        )
        redis_client = MagicMock()

        with patch("courier.api.v1.orders.actor_from_token", return_value=customer), patch(
            "courier.api.v1.orders.get_connected_redis_client",
            AsyncMock(return_value=redis_client),
        ), patch("courier.api.v1.orders.get_session", fake_session), patch(
            "courier.api.v1.orders.OrderService", service_cls
        ):
            with ws_client.websocket_connect(
                f"{API}/orders/{order_id}/tracking/stream?token=t"
            ) as websocket:
                history = websocket.receive_json()
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    websocket.receive_json()

        assert history["type"] == "history"
        assert history["events"][0]["status"] == "delivered"
        assert exc_info.value.code == 1000
        redis_client.subscribe_json.assert_not_called()


class TestChatStream:
    """Test suite for the chat WebSocket route."""

    def test_outsider_rejected(self, ws_client, other_partner):
        service_cls = MagicMock()
        service_cls.return_value.list_messages = AsyncMock(
            side_effect=PermissionDeniedError("Only the order's customer and partner")
        )

        with patch("courier.api.v1.messages.actor_from_token", return_value=other_partner), patch(
            "courier.api.v1.messages.get_connected_redis_client", AsyncMock(return_value=None)
        ), patch("courier.api.v1.messages.get_session", fake_session), patch(
            "courier.api.v1.messages.ChatService", service_cls
        ):
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with ws_client.websocket_connect(
                    f"{API}/orders/{uuid.uuid4()}/chat/stream?token=t"
                ):
                    pass

        assert exc_info.value.code == 1008

    def test_history_then_retry_later_without_redis(self, ws_client, customer):
        service_cls = MagicMock()
        service_cls.return_value.list_messages = AsyncMock(return_value=[])

        with patch("courier.api.v1.messages.actor_from_token", return_value=customer), patch(
            "courier.api.v1.messages.get_connected_redis_client", AsyncMock(return_value=None)
        ), patch("courier.api.v1.messages.get_session", fake_session), patch(
            "courier.api.v1.messages.ChatService", service_cls
        ):
            with ws_client.websocket_connect(
                f"{API}/orders/{uuid.uuid4()}/chat/stream?token=t"
            ) as websocket:
                history = websocket.receive_json()
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    websocket.receive_json()

        assert history == {"type": "history", "messages": []}
        assert exc_info.value.code == 1013
