"""Tests for ChatService."""

import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session

from src.chat.service import ChatService
from src.core.redis import course_chat_channel


@pytest.fixture
def mock_session():
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda query: Mock(query_string=query))
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def mock_redis():
    redis_mock = AsyncMock()
    redis_mock.publish = AsyncMock(return_value=1)
    return redis_mock


@pytest.fixture
def chat_service(mock_session, mock_redis) -> ChatService:
    return ChatService(session=mock_session, keyspace="test_keyspace", redis=mock_redis)


@pytest.fixture
def course_id() -> UUID:
    return uuid4()


def message_row(course_id: UUID, text: str, created_at: datetime) -> Mock:
    return Mock(
        message_id=uuid4(),
        course_id=course_id,
        user_id=uuid4(),
        user_name="Ana",
        user_avatar=None,
        message=text,
        created_at=created_at,
    )


class TestPostMessage:
    """Tests for ChatService.post_message."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t "])
    async def test_blank_message_is_not_stored(
        self, chat_service, mock_session, mock_redis, course_id, text
    ):
        """Whitespace-only messages are dropped."""
        result = await chat_service.post_message(course_id, uuid4(), "Ana", text)

        assert result is None
        mock_session.aexecute.assert_not_called()
        mock_redis.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_message_is_trimmed_and_stored(
        self, chat_service, mock_session, course_id
    ):
        """The trimmed text is written under the course partition."""
        user_id = uuid4()

        message = await chat_service.post_message(
            course_id, user_id, "Ana", "  Ola turma!  ", user_avatar="https://cdn/ana.png"
        )

        assert message is not None
        assert message.message == "Ola turma!"
        assert message.user_id == user_id
        assert message.created_at.tzinfo is not None
        mock_session.aexecute.assert_awaited_once()
        params = mock_session.aexecute.await_args.args[1]
        assert params[0] == course_id
        assert params[2] == message.id
        assert params[6] == "Ola turma!"

    @pytest.mark.asyncio
    async def test_message_is_published_with_course(
        self, chat_service, mock_redis, course_id
    ):
        """The event names the course so sockets can filter it."""
        message = await chat_service.post_message(course_id, uuid4(), "Ana", "Oi")

        mock_redis.publish.assert_awaited_once()
        channel, raw = mock_redis.publish.await_args.args
        event = json.loads(raw)
        assert channel == course_chat_channel()
        assert event["type"] == "chat_message"
        assert event["course_id"] == str(course_id)
        assert event["data"]["id"] == str(message.id)

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_message(
        self, chat_service, mock_redis, course_id
    ):
        """A Redis failure does not lose the stored message."""
        mock_redis.publish.side_effect = ConnectionError("redis down")

        message = await chat_service.post_message(course_id, uuid4(), "Ana", "Oi")

        assert message is not None

    @pytest.mark.asyncio
    async def test_without_redis(self, mock_session, course_id):
        """Without Redis messages are still stored."""
        service = ChatService(session=mock_session, keyspace="test_keyspace")

        message = await service.post_message(course_id, uuid4(), "Ana", "Oi")

        assert message is not None
        mock_session.aexecute.assert_awaited_once()


class TestListMessages:
    """Tests for ChatService.list_messages."""

    @pytest.mark.asyncio
    async def test_oldest_first(self, chat_service, mock_session, course_id):
        """History is returned oldest first."""
        base = datetime(2024, 6, 1, 10, 0)
        # storage returns newest first
        rows = [
            message_row(course_id, "terceira", base + timedelta(minutes=2)),
            message_row(course_id, "segunda", base + timedelta(minutes=1)),
            message_row(course_id, "primeira", base),
        ]
        mock_session.aexecute.return_value = rows

        messages = await chat_service.list_messages(course_id)

        assert [m.message for m in messages] == ["primeira", "segunda", "terceira"]
        assert all(m.created_at.tzinfo is not None for m in messages)

    @pytest.mark.asyncio
    async def test_history_limit(self, mock_session, course_id):
        """The configured limit is passed to the query."""
        service = ChatService(session=mock_session, keyspace="test_keyspace", history_limit=100)
        mock_session.aexecute.return_value = []

        await service.list_messages(course_id)

        mock_session.aexecute.assert_awaited_once_with(service._get_recent, [course_id, 100])
