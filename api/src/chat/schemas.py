"""Pydantic schemas for course chat."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from src.chat.models import ChatMessage


class PostMessageRequest(BaseModel):
    """New chat message. Surrounding whitespace is dropped."""

    message: str = Field(..., max_length=2000, description="Message text")


class ChatMessageResponse(BaseModel):
    """Single chat message."""

    id: UUID
    course_id: UUID
    user_id: UUID
    user_name: str
    user_avatar: str | None = None
    message: str
    created_at: datetime

    @classmethod
    def from_message(cls, message: ChatMessage) -> "ChatMessageResponse":
        return cls(
            id=message.id,
            course_id=message.course_id,
            user_id=message.user_id,
            user_name=message.user_name,
            user_avatar=message.user_avatar,
            message=message.message,
            created_at=message.created_at,
        )


class ChatMessageListResponse(BaseModel):
    """Most recent messages of a course, oldest first."""

    items: list[ChatMessageResponse]
    total: int
