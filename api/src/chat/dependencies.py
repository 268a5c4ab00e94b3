"""Dependencies for chat routes."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.chat.service import ChatError, ChatService


# Service getter function (set by main.py)
_chat_service_getter: Callable[[], ChatService] | None = None


def set_chat_service_getter(getter: Callable[[], ChatService]) -> None:
    """Set the chat service getter function."""
    global _chat_service_getter  # noqa: PLW0603 - Required for DI pattern
    _chat_service_getter = getter


def get_chat_service(request: Request) -> ChatService:
    """Get ChatService instance.

    Tries request.app.state first, then falls back to getter function.
    """
    if hasattr(request.app.state, "chat_service"):
        return request.app.state.chat_service

    if _chat_service_getter is not None:
        return _chat_service_getter()

    msg = "ChatService not configured"
    raise RuntimeError(msg)


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]


def handle_chat_error(error: ChatError) -> HTTPException:
    """Convert chat errors to HTTP exceptions."""
    status_map = {
        "empty_message": status.HTTP_400_BAD_REQUEST,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
