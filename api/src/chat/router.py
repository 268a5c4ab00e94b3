"""Course chat API routes.

Endpoints for:
- GET /v1/courses/{course_id}/chat - Recent messages, oldest first
- POST /v1/courses/{course_id}/chat - Post a message
"""

from fastapi import APIRouter, status

from src.auth.dependencies import ChatUser
from src.chat.dependencies import ChatServiceDep, handle_chat_error
from src.chat.schemas import (
    ChatMessageListResponse,
    ChatMessageResponse,
    PostMessageRequest,
)
from src.chat.service import EmptyMessageError
from src.courses.dependencies import ViewableCourse


router = APIRouter(
    prefix="/v1/courses/{course_id}/chat",
    tags=["chat"],
)


@router.get(
    "",
    response_model=ChatMessageListResponse,
    summary="List course chat messages",
)
async def list_messages(
    course: ViewableCourse,
    service: ChatServiceDep,
    user: ChatUser,
) -> ChatMessageListResponse:
    """Most recent messages of the course in ascending time order."""
    messages = await service.list_messages(course.id)
    return ChatMessageListResponse(
        items=[ChatMessageResponse.from_message(m) for m in messages],
        total=len(messages),
    )


@router.post(
    "",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a chat message",
)
async def post_message(
    data: PostMessageRequest,
    course: ViewableCourse,
    service: ChatServiceDep,
    user: ChatUser,
) -> ChatMessageResponse:
    """Post a message as the current user. Blank messages are rejected."""
    message = await service.post_message(
        course_id=course.id,
        user_id=user.id,
        user_name=user.name or user.email,
        text=data.message,
        user_avatar=user.avatar_url,
    )
    if message is None:
        raise handle_chat_error(EmptyMessageError())
    return ChatMessageResponse.from_message(message)
