"""Chat message data access."""

import uuid
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.errors import RemoteCallFailedError
from courier.core.logging import get_logger
from courier.database.models.message import ChatMessage

logger = get_logger(__name__)


class MessageRepository:
    """Repository for order chat messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, operation: str, error: SQLAlchemyError, order_id: uuid.UUID) -> None:
        await self.session.rollback()
        logger.error(
            "Message repository operation failed",
            operation=operation,
            order_id=str(order_id),
            error=str(error),
        )
        raise RemoteCallFailedError(
            f"Database error during {operation}",
            service="database",
            order_id=str(order_id),
        ) from error

    async def create_message(self, message: ChatMessage) -> ChatMessage:
        try:
            self.session.add(message)
            await self.session.flush()
        except SQLAlchemyError as e:
            await self._fail("create_message", e, message.order_id)
        return message

    async def list_messages(self, order_id: uuid.UUID, limit: int = 50) -> Sequence[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.order_id == order_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id)
            .limit(limit)
        )
        try:
            result = await self.session.execute(stmt)
            return result.scalars().all()
        except SQLAlchemyError as e:
            await self._fail("list_messages", e, order_id)

    async def mark_read(self, order_id: uuid.UUID, receiver_id: uuid.UUID) -> int:
        """Mark every unread message addressed to receiver_id as read."""
        stmt = (
            update(ChatMessage)
            .where(
                ChatMessage.order_id == order_id,
                ChatMessage.receiver_id == receiver_id,
                ChatMessage.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            await self._fail("mark_read", e, order_id)
        return result.rowcount
