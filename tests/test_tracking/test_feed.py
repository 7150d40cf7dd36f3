"""Tests for the order tracking feed and best-effort realtime publishing."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from courier.cache.redis_client import ChannelKeyManager, RedisClient
from courier.database.connection import AFTER_COMMIT_KEY, commit_session
from courier.database.models.order import TrackingEvent
from courier.services.orders.enums import OrderStatus
from courier.services.tracking.feed import TrackingFeed, publish_best_effort


@pytest.fixture
def channels() -> ChannelKeyManager:
    return ChannelKeyManager("test:tracking", "test:chat")


@pytest.fixture
def event() -> TrackingEvent:
    return TrackingEvent(
        id=uuid.uuid4(),
        order_id=uuid.uuid4(),
        status=OrderStatus.IN_TRANSIT,
        notes="Partner en route to drop-off",
        actor_id=uuid.uuid4(),
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_serialize(event):
    payload = TrackingFeed.serialize(event)

    assert payload == {
        "id": str(event.id),
        "order_id": str(event.order_id),
        "status": "in_transit",
        "notes": "Partner en route to drop-off",
        "actor_id": str(event.actor_id),
        "created_at": "2024-05-01T12:00:00+00:00",
    }


async def test_publish_uses_order_channel(mock_session, mock_redis, channels, event):
    feed = TrackingFeed(mock_session, mock_redis, channels)

    assert await feed.publish(event) is True

    channel, payload = mock_redis.publish_json.await_args.args
    assert channel == f"test:tracking:{event.order_id}"
    assert payload["status"] == "in_transit"


async def test_stage_publishes_only_after_commit(mock_session, mock_redis, channels, event):
    feed = TrackingFeed(mock_session, mock_redis, channels)

    feed.stage(event)
    mock_redis.publish_json.assert_not_awaited()
    assert len(mock_session.info[AFTER_COMMIT_KEY]) == 1

    await commit_session(mock_session)

    mock_redis.publish_json.assert_awaited_once()
    assert AFTER_COMMIT_KEY not in mock_session.info


async def test_publish_without_redis_is_skipped(mock_session, channels, event):
    feed = TrackingFeed(mock_session, None, channels)
    assert await feed.publish(event) is False


async def test_publish_best_effort_swallows_redis_errors(mock_redis):
    mock_redis.publish_json.side_effect = RedisConnectionError("gone")

    assert await publish_best_effort(mock_redis, "chan", {"a": 1}) is False


async def test_publish_best_effort_skips_disconnected_client():
    client = MagicMock(spec=RedisClient)
    client.is_connected = False
    client.publish_json = AsyncMock()

    assert await publish_best_effort(client, "chan", {}) is False
    client.publish_json.assert_not_awaited()


async def test_history_reads_repository(mock_session, channels):
    feed = TrackingFeed(mock_session, None, channels)
    feed.repository = AsyncMock()
    feed.repository.list_tracking_events.return_value = []
    order_id = uuid.uuid4()

    await feed.history(order_id, limit=10)

    feed.repository.list_tracking_events.assert_awaited_once_with(order_id, limit=10)


async def test_subscribe_yields_pushed_events(mock_session, channels):
    async def fake_stream(channel):
        yield {"status": "accepted"}
        yield {"status": "pickup_confirmed"}

    client = MagicMock(spec=RedisClient)
    client.subscribe_json = fake_stream
    feed = TrackingFeed(mock_session, client, channels)

    received = [payload async for payload in feed.subscribe(uuid.uuid4())]

    assert [p["status"] for p in received] == ["accepted", "pickup_confirmed"]


async def test_subscribe_without_redis_raises(mock_session, channels):
    feed = TrackingFeed(mock_session, None, channels)

    with pytest.raises(ConnectionError):
        async for _ in feed.subscribe(uuid.uuid4()):
            pass
