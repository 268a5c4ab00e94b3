"""Database models for course chat.

Cassandra table definitions for:
- Course chats: one partition per course, newest message first
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_CHATS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_chats (
    course_id UUID,
    created_at TIMESTAMP,
    message_id UUID,
    user_id UUID,
    user_name TEXT,
    user_avatar TEXT,
    message TEXT,
    PRIMARY KEY ((course_id), created_at, message_id)
) WITH CLUSTERING ORDER BY (created_at DESC, message_id ASC)
"""

CHAT_TABLES_CQL = [
    COURSE_CHATS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class ChatMessage:
    """A message posted to a course chat."""

    id: UUID
    course_id: UUID
    user_id: UUID
    user_name: str
    user_avatar: str | None
    message: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "ChatMessage":
        """Create ChatMessage from Cassandra row."""
        created_at = row.created_at
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        return cls(
            id=row.message_id,
            course_id=row.course_id,
            user_id=row.user_id,
            user_name=row.user_name or "",
            user_avatar=row.user_avatar,
            message=row.message or "",
            created_at=created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "id": str(self.id),
            "course_id": str(self.course_id),
            "user_id": str(self.user_id),
            "user_name": self.user_name,
            "user_avatar": self.user_avatar,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


def create_chat_message(
    course_id: UUID,
    user_id: UUID,
    user_name: str,
    message: str,
    user_avatar: str | None = None,
) -> ChatMessage:
    """Create a new message with server-assigned id and timestamp."""
    return ChatMessage(
        id=uuid4(),
        course_id=course_id,
        user_id=user_id,
        user_name=user_name,
        user_avatar=user_avatar,
        message=message,
        created_at=datetime.now(UTC),
    )
