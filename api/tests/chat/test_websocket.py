"""Tests for the course chat WebSocket."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.auth.security import create_access_token, create_refresh_token
from src.chat.websocket_router import (
    ConnectionManager,
    authenticate_websocket,
    is_for_course,
)
from src.courses.dependencies import get_course_service
from src.courses.models import Course
from src.main import app


def access_token(user_id: UUID, role: str = UserRole.STUDENT.value) -> str:
    return create_access_token(
        {"sub": str(user_id), "email": "a@example.com", "role": role, "name": "Aluno"}
    )


class TestIsForCourse:
    """The broad channel is filtered per socket by course id."""

    def test_matching_course(self) -> None:
        """Events of the socket's course pass."""
        course_id = str(uuid4())
        assert is_for_course({"type": "chat_message", "course_id": course_id}, course_id)

    def test_other_course_is_dropped(self) -> None:
        """Events of another course are dropped."""
        event = {"type": "chat_message", "course_id": str(uuid4())}
        assert not is_for_course(event, str(uuid4()))

    def test_event_without_course(self) -> None:
        """Events without a course id are dropped."""
        assert not is_for_course({"type": "ping"}, str(uuid4()))


class TestAuthenticateWebsocket:
    """Tests for token checks on the socket query string."""

    def test_valid_student_token(self) -> None:
        """A student access token yields the principal."""
        user_id = uuid4()
        user = authenticate_websocket(access_token(user_id))
        assert user is not None
        assert user.id == user_id
        assert user.role == UserRole.STUDENT.value

    def test_refresh_token_rejected(self) -> None:
        """Refresh tokens cannot open a socket."""
        token, _ = create_refresh_token(
            {"sub": str(uuid4()), "email": "a@example.com", "role": "student"}
        )
        assert authenticate_websocket(token) is None

    def test_unknown_role_rejected(self) -> None:
        """Roles without the chat capability are refused."""
        assert authenticate_websocket(access_token(uuid4(), role="guest")) is None

    def test_garbage_token(self) -> None:
        """Undecodable tokens are refused."""
        assert authenticate_websocket("not-a-token") is None


class TestConnectionManager:
    """Tests for per-course connection bookkeeping."""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self) -> None:
        """The course entry disappears with its last socket."""
        manager = ConnectionManager()
        websocket = Mock()
        websocket.accept = AsyncMock()
        course_id = str(uuid4())

        await manager.connect(course_id, websocket)
        assert manager.connection_count(course_id) == 1

        manager.disconnect(course_id, websocket)
        assert manager.connection_count(course_id) == 0
        assert course_id not in manager.active_connections


@pytest.fixture
def course_service() -> Iterator[Mock]:
    service = Mock()
    service.get_course = AsyncMock(return_value=None)
    app.dependency_overrides[get_course_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


class TestCourseChatSocket:
    """Tests for WS /ws/courses/{course_id}/chat."""

    def test_published_course_connects(self, client: TestClient, course_service) -> None:
        """Without Redis the socket opens but reports no live feed."""
        course = Course(title="Farmacologia", status="published", tutor_id=uuid4())
        course_service.get_course.return_value = course

        with client.websocket_connect(
            f"/ws/courses/{course.id}/chat?token={access_token(uuid4())}"
        ) as websocket:
            greeting = websocket.receive_json()

        assert greeting == {"type": "connected", "course_id": str(course.id), "live": False}

    def test_missing_course_is_refused(self, client: TestClient, course_service) -> None:
        """An unknown course id closes the socket before it is accepted."""
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(
                f"/ws/courses/{uuid4()}/chat?token={access_token(uuid4())}"
            ) as websocket:
                websocket.receive_json()

        assert exc.value.code == 4004

    def test_draft_course_hidden_from_students(
        self, client: TestClient, course_service
    ) -> None:
        """A student cannot follow the chat of a course that is not published."""
        course = Course(title="Farmacologia", status="draft", tutor_id=uuid4())
        course_service.get_course.return_value = course

        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(
                f"/ws/courses/{course.id}/chat?token={access_token(uuid4())}"
            ) as websocket:
                websocket.receive_json()

        assert exc.value.code == 4004

    def test_draft_course_open_to_its_tutor(self, client: TestClient, course_service) -> None:
        """The owning tutor still reaches the chat of a draft course."""
        tutor_id = uuid4()
        course = Course(title="Farmacologia", status="draft", tutor_id=tutor_id)
        course_service.get_course.return_value = course

        with client.websocket_connect(
            f"/ws/courses/{course.id}/chat?token={access_token(tutor_id, 'tutor')}"
        ) as websocket:
            assert websocket.receive_json()["type"] == "connected"

    def test_bad_token_is_refused(self, client: TestClient, course_service) -> None:
        """Authentication is checked before the course is loaded."""
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/ws/courses/{uuid4()}/chat?token=bad") as websocket:
                websocket.receive_json()

        assert exc.value.code == 4001
        course_service.get_course.assert_not_awaited()
