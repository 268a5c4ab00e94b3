"""Tests for enrollment and progress routes."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.security import create_access_token
from src.courses.dependencies import get_course_service
from src.courses.models import Course
from src.main import app
from src.progress.models import Enrollment, EnrollmentState
from src.progress.service import AlreadyEnrolledError, EnrollmentInProgressError


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def course() -> Course:
    return Course(title="Farmacologia", status="published", tutor_id=uuid4())


@pytest.fixture
def progress_service() -> Mock:
    service = Mock()
    service.enroll = AsyncMock()
    service.get_enrollment = AsyncMock(return_value=None)
    service.enrollment_state = AsyncMock(return_value=EnrollmentState.NOT_ENROLLED)
    service.toggle_completion = AsyncMock()
    return service


@pytest.fixture
def wired(progress_service, course) -> Iterator[Mock]:
    course_service = Mock()
    course_service.get_course = AsyncMock(return_value=course)
    app.dependency_overrides[get_course_service] = lambda: course_service
    app.state.progress_service = progress_service
    yield course_service
    app.dependency_overrides.clear()
    del app.state.progress_service


def headers(user_id: UUID, role: str = "student") -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user_id), "email": "aluno@example.com", "role": role, "name": "Aluno"}
    )
    return {"Authorization": f"Bearer {token}"}


class TestEnroll:
    """Tests for POST /v1/enrollments."""

    def test_enroll(self, client: TestClient, wired, progress_service, course, student_id):
        """A new enrollment starts at 0 with no completions."""
        progress_service.enroll.return_value = Enrollment(course.id, student_id)

        response = client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers(student_id)
        )

        assert response.status_code == 201
        body = response.json()
        assert body["progress"] == 0
        assert body["status"] == "active"
        assert body["completed_lessons"] == []

    @pytest.mark.parametrize("error", [AlreadyEnrolledError, EnrollmentInProgressError])
    def test_second_enroll_conflicts(
        self, client: TestClient, wired, progress_service, course, student_id, error
    ):
        """Duplicate or concurrent enrollment is a 409."""
        progress_service.enroll.side_effect = error()

        response = client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers(student_id)
        )

        assert response.status_code == 409

    def test_draft_course_is_hidden(
        self, client: TestClient, wired, progress_service, course, student_id
    ):
        """Unpublished courses cannot be joined by students."""
        course.status = "draft"

        response = client.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers(student_id)
        )

        assert response.status_code == 404
        progress_service.enroll.assert_not_awaited()

    def test_requires_token(self, client: TestClient, wired, course):
        """Enrolling needs an access token."""
        response = client.post("/v1/enrollments", json={"course_id": str(course.id)})

        assert response.status_code == 401


class TestCompletion:
    """Tests for lesson completion toggles."""

    def test_toggle_without_enrollment(
        self, client: TestClient, wired, progress_service, course, student_id
    ):
        """Toggling without an enrollment is a 404."""
        response = client.put(
            f"/v1/progress/courses/{course.id}/lessons/{uuid4()}",
            json={"completed": True},
            headers=headers(student_id),
        )

        assert response.status_code == 404
        progress_service.toggle_completion.assert_not_awaited()

    def test_toggle_returns_recomputed_enrollment(
        self, client: TestClient, wired, progress_service, course, student_id
    ):
        """The response carries the recomputed progress."""
        lesson_id = uuid4()
        enrollment = Enrollment(course.id, student_id)
        progress_service.get_enrollment.return_value = enrollment
        progress_service.toggle_completion.return_value = Enrollment(
            course.id, student_id, progress=50, completions={lesson_id: True}
        )

        response = client.put(
            f"/v1/progress/courses/{course.id}/lessons/{lesson_id}",
            json={"completed": True},
            headers=headers(student_id),
        )

        assert response.status_code == 200
        assert response.json()["progress"] == 50
        assert response.json()["completed_lessons"] == [str(lesson_id)]
        progress_service.toggle_completion.assert_awaited_once_with(
            enrollment, lesson_id, True
        )


def test_enrollment_state(client: TestClient, wired, progress_service, course, student_id):
    """The state endpoint reports an enroll call in flight."""
    progress_service.enrollment_state.return_value = EnrollmentState.ENROLLING

    response = client.get(
        f"/v1/enrollments/{course.id}/state", headers=headers(student_id)
    )

    assert response.status_code == 200
    assert response.json() == {"course_id": str(course.id), "state": "enrolling"}
