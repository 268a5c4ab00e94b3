# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Course chat service layer.

Business logic for:
- Listing the most recent messages of a course (oldest first)
- Posting messages and publishing them to Redis for live delivery
"""

import contextlib
import json
from typing import TYPE_CHECKING
from uuid import UUID

from src.chat.models import ChatMessage, create_chat_message
from src.core.logging import get_logger
from src.core.redis import course_chat_channel


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 100


class ChatError(Exception):
    """Base chat error."""

    def __init__(self, message: str, code: str = "chat_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class EmptyMessageError(ChatError):
    """Blank message text."""

    def __init__(self, message: str = "Mensagem vazia"):
        super().__init__(message, "empty_message")


class ChatService:
    """Service for course chat messages."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: "Redis | None" = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        """Initialize with Cassandra session and optional Redis."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self.history_limit = history_limit
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_message = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_chats
            (course_id, created_at, message_id, user_id, user_name, user_avatar,
             message)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        # Partition is clustered newest first
        self._get_recent = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.course_chats
            WHERE course_id = ?
            LIMIT ?
        """)

    async def list_messages(self, course_id: UUID) -> list[ChatMessage]:
        """Most recent messages of a course in ascending creation order."""
        rows = await self.session.aexecute(
            self._get_recent, [course_id, self.history_limit]
        )
        messages = [ChatMessage.from_row(row) for row in rows]
        messages.reverse()
        return messages

    async def post_message(
        self,
        course_id: UUID,
        user_id: UUID,
        user_name: str,
        text: str,
        user_avatar: str | None = None,
    ) -> ChatMessage | None:
        """Store a message and publish it.

        Returns:
            The stored message, or None for blank text (nothing is stored).
        """
        text = text.strip()
        if not text:
            return None

        message = create_chat_message(
            course_id=course_id,
            user_id=user_id,
            user_name=user_name,
            message=text,
            user_avatar=user_avatar,
        )
        await self.session.aexecute(
            self._insert_message,
            [
                message.course_id,
                message.created_at,
                message.id,
                message.user_id,
                message.user_name,
                message.user_avatar,
                message.message,
            ],
        )

        logger.info(
            "chat_message_posted",
            course_id=str(course_id),
            message_id=str(message.id),
            length=len(text),
        )

        await self._publish_message(message)
        return message

    async def _publish_message(self, message: ChatMessage) -> None:
        """Publish message to Redis Pub/Sub for real-time delivery."""
        if not self.redis:
            return

        payload = {
            "type": "chat_message",
            "course_id": str(message.course_id),
            "data": message.to_dict(),
        }

        # Non-critical: the message is already stored
        with contextlib.suppress(Exception):
            await self.redis.publish(course_chat_channel(), json.dumps(payload))
