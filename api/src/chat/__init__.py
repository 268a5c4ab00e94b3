"""Course chat module.

Provides:
- Per-course message feed (most recent messages, oldest first)
- Live delivery over WebSocket through Redis Pub/Sub
"""

from .models import CHAT_TABLES_CQL, ChatMessage, create_chat_message


__all__ = [
    "CHAT_TABLES_CQL",
    "ChatMessage",
    "create_chat_message",
]
