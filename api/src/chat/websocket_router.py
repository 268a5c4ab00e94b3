"""WebSocket API for live course chat.

Provides:
- WS /ws/courses/{course_id}/chat - New messages of one course
"""

import asyncio
import contextlib
import json
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from jose import JWTError

from src.auth.dependencies import user_from_token
from src.auth.permissions import Capability, check_capability
from src.auth.schemas import UserResponse
from src.core.logging import get_logger
from src.core.redis import course_chat_channel, get_redis
from src.courses.dependencies import CourseServiceDep, can_view_course


logger = get_logger(__name__)

router = APIRouter(tags=["chat-ws"])


class ConnectionManager:
    """Manage WebSocket connections by course."""

    def __init__(self) -> None:
        # course_id -> list of active connections
        self.active_connections: dict[str, list[WebSocket]] = {}

    async def connect(self, course_id: str, websocket: WebSocket) -> None:
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self.active_connections.setdefault(course_id, []).append(websocket)
        logger.info("chat_websocket_connected", course_id=course_id)

    def disconnect(self, course_id: str, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        if course_id in self.active_connections:
            if websocket in self.active_connections[course_id]:
                self.active_connections[course_id].remove(websocket)
            if not self.active_connections[course_id]:
                del self.active_connections[course_id]
        logger.info("chat_websocket_disconnected", course_id=course_id)

    def connection_count(self, course_id: str) -> int:
        return len(self.active_connections.get(course_id, []))


# Global connection manager instance
manager = ConnectionManager()


def authenticate_websocket(token: str) -> UserResponse | None:
    """Authenticate a chat WebSocket using a JWT access token.

    Returns the principal if the token is valid and its role may chat, None otherwise.
    """
    try:
        user = user_from_token(token)
    except (JWTError, KeyError, ValueError) as e:
        logger.warning("websocket_auth_failed", error=str(e))
        return None
    if not check_capability(user.role, Capability.CHAT):
        return None
    return user


def is_for_course(event: dict[str, Any], course_id: str) -> bool:
    """Whether a channel event belongs to the socket's course.

    The channel carries every course's messages.
    """
    return event.get("course_id") == course_id


async def redis_subscriber(course_id: str, websocket: WebSocket) -> None:
    """Subscribe to the chat channel and forward this course's events."""
    redis_client = get_redis()
    if not redis_client:
        logger.warning("redis_not_available_for_pubsub", course_id=course_id)
        return

    pubsub = redis_client.pubsub()
    channel = course_chat_channel()

    try:
        await pubsub.subscribe(channel)
        logger.info("subscribed_to_channel", course_id=course_id, channel=channel)

        while True:
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message and message["type"] == "message":
                try:
                    event = json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning("chat_event_invalid_json", channel=channel)
                    event = None

                if isinstance(event, dict) and is_for_course(event, course_id):
                    try:
                        await websocket.send_json(event)
                    except WebSocketDisconnect:
                        break

            # Small delay to prevent busy loop
            await asyncio.sleep(0.1)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning("redis_subscriber_error", course_id=course_id, error=str(e))
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.close()
        logger.info("unsubscribed_from_channel", course_id=course_id, channel=channel)


@router.websocket("/ws/courses/{course_id}/chat")
async def course_chat_websocket(
    websocket: WebSocket,
    course_id: UUID,
    course_service: CourseServiceDep,
    token: str = Query(..., description="JWT access token"),
) -> None:
    """WebSocket endpoint for live course chat.

    Connect with: ws://host/ws/courses/<course_id>/chat?token=<jwt_token>

    Messages received:
    - {"type": "chat_message", "course_id": ..., "data": {...}} - New message
    - {"type": "ping"} - Keep-alive ping (every 30s)

    Messages you can send:
    - {"type": "ping"} - Answered with {"type": "pong"}
    """
    user = authenticate_websocket(token)
    if not user:
        await websocket.close(code=4001, reason="Authentication failed")
        return
    user_id = user.id

    course = await course_service.get_course(course_id)
    # Hidden courses look missing, as on the REST routes
    if not course or not can_view_course(user, course):
        await websocket.close(code=4004, reason="Curso nao encontrado")
        return

    course_id_str = str(course_id)
    await manager.connect(course_id_str, websocket)

    # Without Redis the socket stays open but receives no messages
    subscriber_task = None
    if get_redis():
        subscriber_task = asyncio.create_task(redis_subscriber(course_id_str, websocket))

    try:
        await websocket.send_json(
            {
                "type": "connected",
                "course_id": course_id_str,
                "live": subscriber_task is not None,
            }
        )

        # Keep-alive ping loop
        ping_interval = 30
        last_ping = asyncio.get_event_loop().time()

        while True:
            try:
                message = await asyncio.wait_for(
                    websocket.receive_json(),
                    timeout=ping_interval,
                )

                if message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

            except TimeoutError:
                current_time = asyncio.get_event_loop().time()
                if current_time - last_ping >= ping_interval:
                    await websocket.send_json({"type": "ping"})
                    last_ping = current_time

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(
            "chat_websocket_error",
            course_id=course_id_str,
            user_id=str(user_id),
            error=str(e),
        )
    finally:
        if subscriber_task and not subscriber_task.done():
            subscriber_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await subscriber_task

        manager.disconnect(course_id_str, websocket)
