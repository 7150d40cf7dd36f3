"""
Order tracking feed.

The database is the source of truth for tracking history; Redis pub/sub is
only the push channel. Events are published after the transaction that
wrote them commits, and a failed publish is logged and dropped: clients
recover by re-reading ``history``.
"""

import uuid
from functools import partial
from typing import Any, AsyncIterator, Optional, Sequence

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.cache.redis_client import ChannelKeyManager, RedisClient
from courier.core.logging import get_logger
from courier.database.connection import run_after_commit
from courier.database.models.order import TrackingEvent
from courier.services.orders.repository import OrderRepository

logger = get_logger(__name__)


async def publish_best_effort(
    redis_client: Optional[RedisClient],
    channel: str,
    payload: dict[str, Any],
) -> bool:
    """
    Publish a JSON payload, logging instead of raising on failure.

    Returns:
        True if Redis accepted the message
    """
    if redis_client is None or not redis_client.is_connected:
        logger.debug("Realtime push skipped, Redis not connected", channel=channel)
        return False

    try:
        await redis_client.publish_json(channel, payload)
    except (RedisError, OSError) as e:
        logger.warning(
            "Realtime publish failed",
            channel=channel,
            error=str(e),
            error_type=type(e).__name__,
        )
        return False

    return True


class TrackingFeed:
    """
    Append-only per-order event feed with realtime fan-out.

    Attributes:
        session: Database session the events are written through
        redis_client: Push channel, None when Redis is unavailable
        channels: Channel naming helper
    """

    def __init__(
        self,
        session: AsyncSession,
        redis_client: Optional[RedisClient] = None,
        channels: Optional[ChannelKeyManager] = None,
    ):
        self.session = session
        self.redis_client = redis_client
        self.channels = channels or ChannelKeyManager.from_settings()
        self.repository = OrderRepository(session)

    @staticmethod
    def serialize(event: TrackingEvent) -> dict[str, Any]:
        return event.to_dict()

    async def history(
        self,
        order_id: uuid.UUID,
        limit: Optional[int] = None,
    ) -> Sequence[TrackingEvent]:
        """Return the order's tracking events newest-first."""
        return await self.repository.list_tracking_events(order_id, limit=limit)

    def stage(self, event: TrackingEvent) -> None:
        """Schedule the event for publishing once the transaction commits."""
        run_after_commit(self.session, partial(self.publish, event))

    async def publish(self, event: TrackingEvent) -> bool:
        """
        Push one event to subscribers of its order.

        Never raises for transport failures.
        """
        channel = self.channels.tracking_channel(event.order_id)
        published = await publish_best_effort(
            self.redis_client, channel, self.serialize(event)
        )
        if published:
            logger.debug(
                "Tracking event published",
                order_id=str(event.order_id),
                status=event.status.value,
            )
        return published

    async def subscribe(self, order_id: uuid.UUID) -> AsyncIterator[dict[str, Any]]:
        """
        Iterate over events pushed for an order.

        Raises:
            ConnectionError: If Redis is not connected
        """
        if self.redis_client is None:
            raise ConnectionError("Realtime tracking is unavailable")

        channel = self.channels.tracking_channel(order_id)
        async for payload in self.redis_client.subscribe_json(channel):
            yield payload
