"""
Order chat API endpoints.

The thread is read and written over HTTP; ``/chat/stream`` pushes new
messages over a WebSocket to the order's customer and assigned partner.
"""

from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, status

from courier.api.deps import ChatServiceDep, CurrentActor
from courier.api.streaming import WS_POLICY_VIOLATION, WS_TRY_AGAIN_LATER, relay
from courier.cache.redis_client import get_connected_redis_client
from courier.core.errors import CourierError
from courier.core.logging import get_logger
from courier.core.security import TokenError, actor_from_token
from courier.database.connection import get_session
from courier.schemas.messages import MessageCreateRequest, MessageResponse
from courier.services.messages.service import ChatService

logger = get_logger(__name__)

router = APIRouter(prefix="/orders/{order_id}", tags=["messages"])


@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send chat message",
)
async def send_message(
    order_id: UUID,
    payload: MessageCreateRequest,
    actor: CurrentActor,
    service: ChatServiceDep,
) -> MessageResponse:
    message = await service.send_message(actor, order_id, payload.body)
    return MessageResponse.model_validate(message)


@router.get("/messages", response_model=list[MessageResponse], summary="Read chat thread")
async def list_messages(
    order_id: UUID,
    actor: CurrentActor,
    service: ChatServiceDep,
    limit: int = Query(50, ge=1, le=200),
) -> list[MessageResponse]:
    messages = await service.list_messages(actor, order_id, limit)
    return [MessageResponse.model_validate(m) for m in messages]


@router.websocket("/chat/stream")
async def stream_chat(websocket: WebSocket, order_id: UUID, token: str = Query(...)) -> None:
    """
    Push an order's chat messages.

    Sends the latest messages (newest-first) as the first message, marking
    those addressed to the reader as read, then one message per new chat
    message. Authenticates with the ``token`` query parameter.
    """
    try:
        actor = actor_from_token(token)
    except TokenError:
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    redis_client = await get_connected_redis_client()

    try:
        async with get_session() as session:
            service = ChatService(session, redis_client)
            messages = await service.list_messages(actor, order_id)
            snapshot = [ChatService.serialize(m) for m in messages]
    except CourierError as e:
        logger.info("Chat stream refused", order_id=str(order_id), error=e.code)
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    await websocket.send_json({"type": "history", "messages": snapshot})

    if redis_client is None:
        await websocket.close(code=WS_TRY_AGAIN_LATER)
        return

    await relay(
        websocket,
        service.subscribe(order_id),
        lambda payload: {"type": "message", "message": payload},
        order_id=str(order_id),
        stream="chat",
    )
