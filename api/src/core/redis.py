# ruff: noqa: PLW0603
"""Async Redis client for live course chat.

Chat events for every course go to one channel; each websocket drops
the events whose ``course_id`` is not its own.
"""

import redis.asyncio as redis

from src.config import get_settings
from src.core.logging import get_logger


logger = get_logger(__name__)

COURSE_CHAT_CHANNEL = "chat:courses"

_client: redis.Redis | None = None


def course_chat_channel() -> str:
    return COURSE_CHAT_CHANNEL


async def init_redis() -> redis.Redis:
    """Connect and ping. On failure the client stays unset and the error propagates."""
    global _client

    settings = get_settings()
    client = redis.from_url(
        settings.redis_url,
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        health_check_interval=settings.redis_health_check_interval,
    )
    try:
        await client.ping()
    except redis.RedisError:
        await client.aclose()
        raise

    _client = client
    logger.info("redis_connected", url=settings.redis_url)
    return client


def get_redis() -> redis.Redis | None:
    return _client


async def shutdown_redis() -> None:
    global _client

    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("redis_disconnected")
