"""Test suite for the order chat service."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from courier.cache.redis_client import ChannelKeyManager, RedisClient
from courier.core.errors import (
    InputValidationError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
)
from courier.services.messages.service import MAX_MESSAGE_LENGTH, ChatService


@pytest.fixture
def chat_service(mock_session, mock_redis) -> ChatService:
    service = ChatService(
        mock_session,
        mock_redis,
        ChannelKeyManager("test:tracking", "test:chat"),
    )
    service.repository = AsyncMock()
    service.repository.mark_read.return_value = 0
    service.order_repository = AsyncMock()
    return service


class TestSendMessage:
    """Test suite for send_message."""

    async def test_customer_message_goes_to_partner(
        self, chat_service, mock_session, mock_redis, assigned_order, customer, partner
    ):
        order = assigned_order()
        chat_service.order_repository.get_order_by_id.return_value = order

        message = await chat_service.send_message(customer, order.id, "  Gate code is 1234 ")

        assert message.sender_id == customer.user_id
        assert message.receiver_id == partner.user_id
        assert message.body == "Gate code is 1234"
        assert message.is_read is False
        chat_service.repository.create_message.assert_awaited_once_with(message)
        mock_session.commit.assert_awaited_once()
        channel, payload = mock_redis.publish_json.await_args.args
        assert channel == f"test:chat:{order.id}"
        assert payload["body"] == "Gate code is 1234"

    async def test_partner_message_goes_to_customer(
        self, chat_service, assigned_order, customer, partner
    ):
        order = assigned_order()
        chat_service.order_repository.get_order_by_id.return_value = order

        message = await chat_service.send_message(partner, order.id, "Arriving in 5")

        assert message.receiver_id == customer.user_id

    async def test_requires_assigned_partner(self, chat_service, make_order, customer):
        order = make_order()
        chat_service.order_repository.get_order_by_id.return_value = order

        with pytest.raises(PreconditionFailedError):
            await chat_service.send_message(customer, order.id, "Hello?")

    async def test_outsider_denied(self, chat_service, assigned_order, other_partner):
        order = assigned_order()
        chat_service.order_repository.get_order_by_id.return_value = order

        with pytest.raises(PermissionDeniedError):
            await chat_service.send_message(other_partner, order.id, "Hi")

    @pytest.mark.parametrize("body", ["", "   ", None, "x" * (MAX_MESSAGE_LENGTH + 1)])
    async def test_invalid_body(self, chat_service, customer, body):
        with pytest.raises(InputValidationError):
            await chat_service.send_message(customer, uuid.uuid4(), body)

    async def test_missing_order(self, chat_service, customer):
        chat_service.order_repository.get_order_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await chat_service.send_message(customer, uuid.uuid4(), "Hi")


class TestListMessages:
    """Test suite for list_messages."""

    async def test_marks_incoming_messages_read(
        self, chat_service, mock_session, assigned_order, partner
    ):
        order = assigned_order()
        chat_service.order_repository.get_order_by_id.return_value = order
        chat_service.repository.list_messages.return_value = ["m2", "m1"]
        chat_service.repository.mark_read.return_value = 2

        messages = await chat_service.list_messages(partner, order.id, limit=10)

        assert messages == ["m2", "m1"]
        chat_service.repository.list_messages.assert_awaited_once_with(order.id, limit=10)
        chat_service.repository.mark_read.assert_awaited_once_with(order.id, partner.user_id)
        mock_session.commit.assert_awaited_once()

    async def test_nothing_to_mark_skips_commit(
        self, chat_service, mock_session, assigned_order, customer
    ):
        order = assigned_order()
        chat_service.order_repository.get_order_by_id.return_value = order
        chat_service.repository.list_messages.return_value = []

        await chat_service.list_messages(customer, order.id)

        mock_session.commit.assert_not_awaited()


class TestSubscribe:
    """Test suite for the chat subscription."""

    async def test_reads_order_chat_channel(self, mock_session):
        order_id = uuid.uuid4()
        seen = []

        async def fake_stream(channel):
            seen.append(channel)
            yield {"body": "On my way"}

        client = MagicMock(spec=RedisClient)
        client.subscribe_json = fake_stream
        service = ChatService(mock_session, client, ChannelKeyManager("test:tracking", "test:chat"))

        received = [payload async for payload in service.subscribe(order_id)]

        assert received == [{"body": "On my way"}]
        assert seen == [f"test:chat:{order_id}"]

    async def test_without_redis_raises(self, mock_session):
        service = ChatService(mock_session, None)

        with pytest.raises(ConnectionError):
            async for _ in service.subscribe(uuid.uuid4()):
                pass
