"""
Redis client configuration with connection pooling and pub/sub support.

This module provides the Redis client used as the realtime push channel for
order tracking and chat. Publishing is fire-and-forget from the domain's
point of view: subscribers that miss a message recover by re-querying the
database.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Union
from uuid import UUID

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from courier.core.config import get_settings
from courier.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """
    Async Redis client with connection pooling and retry logic.

    Provides publish/subscribe primitives on top of a shared connection
    pool with health checks and structured logging.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        max_connections: Optional[int] = None,
        socket_timeout: Optional[float] = 5.0,
        socket_connect_timeout: float = 5.0,
        health_check_interval: int = 30,
    ):
        """
        Initialize Redis client.

        Args:
            url: Redis connection URL (defaults to settings.redis_url)
            max_connections: Maximum pool connections (defaults to settings)
            socket_timeout: Socket operation timeout in seconds
            socket_connect_timeout: Socket connection timeout in seconds
            health_check_interval: Health check interval in seconds
        """
        settings = get_settings()
        self._url = url or settings.redis_url
        self._max_connections = max_connections or settings.redis_max_connections
        self._socket_timeout = socket_timeout
        self._socket_connect_timeout = socket_connect_timeout
        self._health_check_interval = health_check_interval

        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._is_connected = False

        self._messages_published = 0

    @staticmethod
    def _sanitize_url(url: str) -> str:
        """Sanitize Redis URL for logging (remove password)."""
        if "@" in url:
            protocol, rest = url.split("://", 1)
            if "@" in rest:
                _, host_part = rest.split("@", 1)
                return f"{protocol}://***@{host_part}"
        return url

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> None:
        """
        Establish Redis connection and verify it with ping.

        Raises:
            ConnectionError: If connection cannot be established
        """
        if self._is_connected:
            logger.warning("Redis client already connected")
            return

        try:
            retry = Retry(ExponentialBackoff(base=0.1, cap=2.0), retries=3)

            self._pool = ConnectionPool.from_url(
                self._url,
                max_connections=self._max_connections,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_connect_timeout,
                retry_on_timeout=True,
                health_check_interval=self._health_check_interval,
                retry=retry,
                decode_responses=True,
            )
            self._client = Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connection established",
                url=self._sanitize_url(self._url),
                pool_size=self._max_connections,
            )

        except (ConnectionError, TimeoutError, OSError) as e:
            logger.error(
                "Failed to connect to Redis",
                error=str(e),
                url=self._sanitize_url(self._url),
            )
            await self._release()
            raise ConnectionError(f"Redis connection failed: {e}") from e

    async def _release(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None
        self._is_connected = False

    async def disconnect(self) -> None:
        """Close Redis connection and release the pool."""
        if not self._is_connected:
            return

        await self._release()
        logger.info("Redis connection closed", messages_published=self._messages_published)

    async def health_check(self) -> bool:
        """
        Perform Redis health check.

        Returns:
            True if Redis is healthy and responsive, False otherwise
        """
        if not self._is_connected or not self._client:
            logger.warning("Redis health check failed: not connected")
            return False

        try:
            await self._client.ping()
            return True
        except RedisError as e:
            logger.error(
                "Redis health check failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def _ensure_connected(self) -> Redis:
        """
        Ensure Redis client is connected.

        Raises:
            ConnectionError: If client is not connected
        """
        if not self._is_connected or self._client is None:
            raise ConnectionError("Redis client is not connected")
        return self._client

    async def publish(self, channel: str, message: Union[str, bytes]) -> int:
        """
        Publish a message on a channel.

        Returns:
            Number of subscribers that received the message

        Raises:
            ConnectionError: If Redis is not connected
            RedisError: If Redis operation fails
        """
        client = self._ensure_connected()

        try:
            receivers = await client.publish(channel, message)
        except RedisError as e:
            logger.error("Redis PUBLISH operation failed", channel=channel, error=str(e))
            raise

        self._messages_published += 1
        logger.debug("Redis PUBLISH operation", channel=channel, receivers=receivers)
        return receivers

    async def publish_json(self, channel: str, payload: dict[str, Any]) -> int:
        """
        Publish a JSON payload on a channel.

        Raises:
            TypeError: If payload is not JSON serializable
        """
        return await self.publish(channel, json.dumps(payload, default=str))

    @asynccontextmanager
    async def pubsub(self, *channels: str) -> AsyncIterator[PubSub]:
        """
        Open a pub/sub connection subscribed to channels.

        The subscription is dropped and the connection released when the
        context exits.
        """
        client = self._ensure_connected()
        pubsub = client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(*channels)
        logger.debug("Redis SUBSCRIBE", channels=channels)
        try:
            yield pubsub
        finally:
            await pubsub.unsubscribe(*channels)
            await pubsub.aclose()

    async def subscribe_json(self, channel: str) -> AsyncIterator[dict[str, Any]]:
        """
        Iterate over JSON messages published on a channel.

        Messages that are not valid JSON objects are logged and skipped.
        """
        async with self.pubsub(channel) as pubsub:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    payload = json.loads(message["data"])
                except (TypeError, json.JSONDecodeError) as e:
                    logger.warning(
                        "Discarding malformed pub/sub message",
                        channel=channel,
                        error=str(e),
                    )
                    continue
                if isinstance(payload, dict):
                    yield payload


class ChannelKeyManager:
    """
    Utility class for realtime channel names.

    Example:
        >>> manager = ChannelKeyManager("courier:tracking", "courier:chat")
        >>> manager.tracking_channel("42")
        'courier:tracking:42'
    """

    def __init__(self, tracking_prefix: str, chat_prefix: str):
        self.tracking_prefix = tracking_prefix
        self.chat_prefix = chat_prefix

    @classmethod
    def from_settings(cls) -> "ChannelKeyManager":
        settings = get_settings()
        return cls(settings.tracking_channel_prefix, settings.chat_channel_prefix)

    def tracking_channel(self, order_id: Union[UUID, str]) -> str:
        return f"{self.tracking_prefix}:{order_id}"

    def chat_channel(self, order_id: Union[UUID, str]) -> str:
        return f"{self.chat_prefix}:{order_id}"


_redis_client: Optional[RedisClient] = None


async def get_redis_client() -> RedisClient:
    """
    Get or create global Redis client instance.

    Raises:
        ConnectionError: If Redis connection fails
    """
    global _redis_client

    if _redis_client is None:
        client = RedisClient()
        await client.connect()
        _redis_client = client

    return _redis_client


async def close_redis_client() -> None:
    """Close global Redis client connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.disconnect()
        _redis_client = None


async def get_connected_redis_client() -> Optional[RedisClient]:
    """
    Get the global Redis client, or None when Redis is unreachable.

    Realtime push is best-effort, so callers that only publish degrade to
    database polling instead of failing the request.
    """
    try:
        return await get_redis_client()
    except ConnectionError as e:
        logger.warning("Redis unavailable, realtime push disabled", error=str(e))
        return None
