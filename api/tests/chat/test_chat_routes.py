"""Tests for chat HTTP routes."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.security import create_access_token
from src.chat.dependencies import get_chat_service
from src.chat.models import create_chat_message
from src.courses.dependencies import get_course_service
from src.courses.models import Course
from src.main import app


@pytest.fixture
def published_course() -> Course:
    return Course(title="Farmacologia", status="published", tutor_id=uuid4())


@pytest.fixture
def chat_service() -> Mock:
    service = Mock()
    service.list_messages = AsyncMock(return_value=[])
    service.post_message = AsyncMock(return_value=None)
    return service


@pytest.fixture
def overrides(published_course, chat_service) -> Iterator[None]:
    course_service = Mock()
    course_service.get_course = AsyncMock(return_value=published_course)
    app.dependency_overrides[get_course_service] = lambda: course_service
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    yield
    app.dependency_overrides.clear()


def auth_headers(role: str = "student") -> dict[str, str]:
    token = create_access_token(
        {"sub": str(uuid4()), "email": "aluno@example.com", "role": role, "name": "Aluno"}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.usefixtures("overrides")
class TestChatRoutes:
    """Tests for the course chat REST routes."""

    def test_blank_message_is_rejected(
        self, client: TestClient, published_course, chat_service
    ) -> None:
        """A blank message is a 400 with a readable message."""
        response = client.post(
            f"/v1/courses/{published_course.id}/chat",
            json={"message": "   "},
            headers=auth_headers(),
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Mensagem vazia"

    def test_post_message(self, client: TestClient, published_course, chat_service) -> None:
        """The raw text and sender name reach the service."""
        stored = create_chat_message(
            course_id=published_course.id,
            user_id=uuid4(),
            user_name="Aluno",
            message="Ola",
        )
        chat_service.post_message.return_value = stored

        response = client.post(
            f"/v1/courses/{published_course.id}/chat",
            json={"message": " Ola "},
            headers=auth_headers(),
        )

        assert response.status_code == 201
        assert response.json()["id"] == str(stored.id)
        kwargs = chat_service.post_message.await_args.kwargs
        assert kwargs["text"] == " Ola "
        assert kwargs["user_name"] == "Aluno"

    def test_list_requires_token(self, client: TestClient, published_course) -> None:
        """Reading history needs an access token."""
        response = client.get(f"/v1/courses/{published_course.id}/chat")
        assert response.status_code == 401

    def test_hidden_course_looks_missing(
        self, client: TestClient, published_course
    ) -> None:
        """Chat of an unpublished course is a 404 for students."""
        published_course.status = "draft"

        response = client.get(
            f"/v1/courses/{published_course.id}/chat", headers=auth_headers()
        )

        assert response.status_code == 404
