"""
WebSocket relay for realtime order streams.

A stream forwards payloads from a Redis subscription to one client while
listening for the client's disconnect, so a quiet channel never keeps a
subscription alive after the client has gone.
"""

import asyncio
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from redis.exceptions import RedisError

from courier.core.logging import get_logger

logger = get_logger(__name__)

WS_NORMAL_CLOSURE = 1000
WS_POLICY_VIOLATION = 1008
WS_TRY_AGAIN_LATER = 1013


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client frames carry nothing on these streams and are discarded.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


async def _forward(
    websocket: WebSocket,
    source: AsyncIterator[dict[str, Any]],
    wrap: Callable[[dict[str, Any]], dict[str, Any]],
    is_final: Optional[Callable[[dict[str, Any]], bool]],
) -> bool:
    async with aclosing(source) as stream:
        async for payload in stream:
            await websocket.send_json(wrap(payload))
            if is_final is not None and is_final(payload):
                return True
    return False


async def relay(
    websocket: WebSocket,
    source: AsyncIterator[dict[str, Any]],
    wrap: Callable[[dict[str, Any]], dict[str, Any]],
    is_final: Optional[Callable[[dict[str, Any]], bool]] = None,
    **log_context: Any,
) -> None:
    """
    Forward a subscription to an accepted WebSocket until either side ends.

    The subscription is closed as soon as the client disconnects. After a
    payload for which ``is_final`` is true the socket is closed normally; a
    Redis failure closes it with 1013 so the client reconnects later.

    Args:
        websocket: Accepted client connection
        source: Async iterator of pushed payloads
        wrap: Builds the message sent for each payload
        is_final: Predicate marking the last payload of the stream
        **log_context: Fields added to the stream's log lines
    """
    forward_task = asyncio.create_task(_forward(websocket, source, wrap, is_final))
    disconnect_task = asyncio.create_task(_wait_for_disconnect(websocket))

    try:
        done, _ = await asyncio.wait(
            {forward_task, disconnect_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        for task in (forward_task, disconnect_task):
            task.cancel()
        await asyncio.gather(forward_task, disconnect_task, return_exceptions=True)

    if forward_task not in done:
        logger.debug("Stream client disconnected", **log_context)
        return

    try:
        finished = forward_task.result()
    except WebSocketDisconnect:
        logger.debug("Stream client disconnected", **log_context)
        return
    except (RedisError, ConnectionError) as e:
        logger.warning("Stream interrupted", error=str(e), **log_context)
        await websocket.close(code=WS_TRY_AGAIN_LATER)
        return

    if finished:
        logger.debug("Stream reached its final event", **log_context)
    await websocket.close(code=WS_NORMAL_CLOSURE)
