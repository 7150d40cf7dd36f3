"""
Order chat between a customer and the assigned partner.

Messages are stored in the database and pushed on the order's chat channel
after the transaction commits; ``subscribe`` reads that channel back for
the chat stream. Only the two parties of an assigned order can talk;
the receiver of a message is always the other party.
"""

import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from courier.cache.redis_client import ChannelKeyManager, RedisClient
from courier.core.errors import (
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
)
from courier.core.logging import get_logger
from courier.core.security import ActorContext
from courier.database.connection import commit_session, run_after_commit
from courier.database.models.message import ChatMessage
from courier.database.models.order import DeliveryOrder
from courier.services.messages.repository import MessageRepository
from courier.services.orders.repository import OrderRepository
from courier.services.tracking.feed import publish_best_effort

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 2000


class ChatService:
    """Send and read the chat thread attached to an order."""

    def __init__(
        self,
        session: AsyncSession,
        redis_client: Optional[RedisClient] = None,
        channels: Optional[ChannelKeyManager] = None,
    ):
        self.session = session
        self.repository = MessageRepository(session)
        self.order_repository = OrderRepository(session)
        self.redis_client = redis_client
        self.channels = channels or ChannelKeyManager.from_settings()

    async def _load_thread_order(self, actor: ActorContext, order_id: uuid.UUID) -> DeliveryOrder:
        order = await self.order_repository.get_order_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        if actor.user_id not in (order.customer_id, order.partner_id):
            raise PermissionDeniedError(
                "Only the order's customer and partner can use its chat",
                order_id=str(order_id),
                actor_id=str(actor.user_id),
            )
        return order

    @staticmethod
    def serialize(message: ChatMessage) -> dict:
        return message.to_dict()

    async def send_message(self, actor: ActorContext, order_id: uuid.UUID, body: str) -> ChatMessage:
        """
        Send a message to the other party of the order.

        Raises:
            InputValidationError: If the body is empty or too long
            PreconditionFailedError: If no partner is assigned yet
        """
        text = (body or "").strip()
        if not text:
            raise InputValidationError("Message body is required", field="body")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise InputValidationError(
                f"Message body must be at most {MAX_MESSAGE_LENGTH} characters",
                field="body",
            )

        order = await self._load_thread_order(actor, order_id)
        if order.partner_id is None:
            raise PreconditionFailedError(
                "Chat is available once a partner is assigned",
                order_id=str(order.id),
            )

        receiver_id = order.partner_id if actor.user_id == order.customer_id else order.customer_id
        message = ChatMessage(
            id=uuid.uuid4(),
            order_id=order.id,
            sender_id=actor.user_id,
            receiver_id=receiver_id,
            body=text,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        await self.repository.create_message(message)

        run_after_commit(
            self.session,
            partial(
                publish_best_effort,
                self.redis_client,
                self.channels.chat_channel(order.id),
                self.serialize(message),
            ),
        )
        await commit_session(self.session)

        logger.info(
            "Chat message sent",
            order_id=str(order.id),
            message_id=str(message.id),
            sender_id=str(actor.user_id),
        )
        return message

    async def list_messages(
        self,
        actor: ActorContext,
        order_id: uuid.UUID,
        limit: int = 50,
    ) -> Sequence[ChatMessage]:
        """List the thread newest-first and mark messages to the actor read."""
        order = await self._load_thread_order(actor, order_id)
        messages = await self.repository.list_messages(order.id, limit=limit)
        marked = await self.repository.mark_read(order.id, actor.user_id)
        if marked:
            await commit_session(self.session)
        return messages

    async def subscribe(self, order_id: uuid.UUID) -> AsyncIterator[dict[str, Any]]:
        """
        Iterate over messages pushed on an order's chat channel.

        Callers authorize the reader first, usually through ``list_messages``.

        Raises:
            ConnectionError: If Redis is not connected
        """
        if self.redis_client is None:
            raise ConnectionError("Realtime chat is unavailable")

        channel = self.channels.chat_channel(order_id)
        async for payload in self.redis_client.subscribe_json(channel):
            yield payload
