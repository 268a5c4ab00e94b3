"""Enrollment and lesson completion service layer.

Business logic for:
- Course enrollment (at most once per user and course)
- Lesson completion toggles with progress recomputation
- Enrollment state and progress queries
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from cassandra.query import BatchStatement, BatchType

from .calculator import compute_progress
from .models import (
    Enrollment,
    EnrollmentState,
    EnrollmentStatus,
    LessonCompletion,
)
from .schemas import CourseProgressResponse


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.courses.service import ContentService

logger = structlog.get_logger(__name__)

COMPLETE_PERCENT = 100


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    """User not enrolled in course."""

    def __init__(self, message: str = "Usuario nao inscrito no curso"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(ProgressError):
    """User already enrolled."""

    def __init__(self, message: str = "Usuario ja inscrito no curso"):
        super().__init__(message, "already_enrolled")


class EnrollmentInProgressError(ProgressError):
    """An enroll call for the same pair is still running."""

    def __init__(self, message: str = "Inscricao em andamento"):
        super().__init__(message, "enrollment_in_progress")


class ContentNotInCourseError(ProgressError):
    """Lesson id is not part of the course."""

    def __init__(self, message: str = "Aula nao pertence ao curso"):
        super().__init__(message, "content_not_in_course")


class ProgressPersistenceError(ProgressError):
    """Completion change could not be stored and was rolled back."""

    def __init__(self, message: str = "Nao foi possivel salvar o progresso"):
        super().__init__(message, "progress_persistence_failed")


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for enrollments and lesson completion."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        content_service: "ContentService",
    ):
        """Initialize with Cassandra session and the content source."""
        self.session = session
        self.keyspace = keyspace
        self.content_service = content_service
        # (user_id, course_id) pairs with an enroll call in flight
        self._pending: set[tuple[UUID, UUID]] = set()
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Enrollments
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, status, progress, enrolled_at, completed_at,
             last_updated)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, progress = ?, completed_at = ?, last_updated = ?
            WHERE course_id = ? AND user_id = ?
        """)

        # Enrollments by user (lookup)
        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        self._upsert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, course_id, status, progress, last_updated)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        # Lesson completions
        self._get_completions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_completions
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_completion = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_completions
            (user_id, course_id, content_id, completed_at)
            VALUES (?, ?, ?, ?)
        """)

        self._delete_completion = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.lesson_completions
            WHERE user_id = ? AND course_id = ? AND content_id = ?
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll user in a course.

        Returns:
            Enrollment with no completions and progress 0

        Raises:
            AlreadyEnrolledError: If user already enrolled
            EnrollmentInProgressError: If another enroll for the pair is running
        """
        key = (user_id, course_id)
        if key in self._pending:
            raise EnrollmentInProgressError

        self._pending.add(key)
        try:
            enrollment = Enrollment(course_id=course_id, user_id=user_id)

            result = await self.session.aexecute(
                self._insert_enrollment,
                [
                    enrollment.course_id,
                    enrollment.user_id,
                    enrollment.status,
                    enrollment.progress,
                    enrollment.enrolled_at,
                    enrollment.completed_at,
                    enrollment.last_updated,
                ],
            )
            if not result.was_applied:
                logger.info(
                    "enrollment_exists",
                    user_id=str(user_id),
                    course_id=str(course_id),
                )
                raise AlreadyEnrolledError

            await self.session.aexecute(
                self._upsert_enrollment_by_user,
                [
                    enrollment.user_id,
                    enrollment.enrolled_at,
                    enrollment.course_id,
                    enrollment.status,
                    enrollment.progress,
                    enrollment.last_updated,
                ],
            )
        finally:
            self._pending.discard(key)

        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=str(course_id),
        )
        return enrollment

    def is_enrolling(self, user_id: UUID, course_id: UUID) -> bool:
        return (user_id, course_id) in self._pending

    async def enrollment_state(self, user_id: UUID, course_id: UUID) -> EnrollmentState:
        """not-enrolled, enrolling (call in flight) or enrolled."""
        if self.is_enrolling(user_id, course_id):
            return EnrollmentState.ENROLLING

        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        if result.one():
            return EnrollmentState.ENROLLED
        return EnrollmentState.NOT_ENROLLED

    async def _load_completions(self, user_id: UUID, course_id: UUID) -> list[LessonCompletion]:
        rows = await self.session.aexecute(self._get_completions, [user_id, course_id])
        return [LessonCompletion.from_row(row) for row in rows]

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by user and course, with its completion map."""
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        if not row:
            return None

        completions = await self._load_completions(user_id, course_id)
        return Enrollment.from_row(
            row, completions={c.content_id: True for c in completions}
        )

    async def get_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user (newest first, without completions)."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    # ==========================================================================
    # Completion Operations
    # ==========================================================================

    async def toggle_completion(
        self,
        enrollment: Enrollment,
        content_id: UUID,
        completed: bool,
    ) -> Enrollment:
        """Mark a lesson complete or incomplete and recompute progress.

        Setting the value the lesson already has changes nothing. On a
        failed write the enrollment is restored to its prior state.

        Raises:
            ContentNotInCourseError: If the lesson is not part of the course
            ProgressPersistenceError: If the change could not be stored
        """
        content_ids = await self.content_service.content_ids(enrollment.course_id)
        if content_id not in content_ids:
            raise ContentNotInCourseError

        if enrollment.is_lesson_completed(content_id) == completed:
            return enrollment

        snapshot = (
            dict(enrollment.completions),
            enrollment.progress,
            enrollment.status,
            enrollment.completed_at,
            enrollment.last_updated,
        )

        now = datetime.now(UTC)
        if completed:
            enrollment.completions[content_id] = True
        else:
            enrollment.completions.pop(content_id, None)
        self._recompute(enrollment, content_ids, now)

        batch = BatchStatement(batch_type=BatchType.LOGGED)
        if completed:
            batch.add(
                self._insert_completion,
                [enrollment.user_id, enrollment.course_id, content_id, now],
            )
        else:
            batch.add(
                self._delete_completion,
                [enrollment.user_id, enrollment.course_id, content_id],
            )
        batch.add(
            self._update_enrollment,
            [
                enrollment.status,
                enrollment.progress,
                enrollment.completed_at,
                enrollment.last_updated,
                enrollment.course_id,
                enrollment.user_id,
            ],
        )
        batch.add(
            self._upsert_enrollment_by_user,
            [
                enrollment.user_id,
                enrollment.enrolled_at,
                enrollment.course_id,
                enrollment.status,
                enrollment.progress,
                enrollment.last_updated,
            ],
        )

        try:
            await self.session.aexecute(batch)
        except Exception as e:
            (
                enrollment.completions,
                enrollment.progress,
                enrollment.status,
                enrollment.completed_at,
                enrollment.last_updated,
            ) = snapshot
            logger.exception(
                "completion_toggle_failed",
                user_id=str(enrollment.user_id),
                course_id=str(enrollment.course_id),
                content_id=str(content_id),
                error=str(e),
            )
            raise ProgressPersistenceError from e

        logger.info(
            "lesson_completion_toggled",
            user_id=str(enrollment.user_id),
            course_id=str(enrollment.course_id),
            content_id=str(content_id),
            completed=completed,
            progress=enrollment.progress,
        )
        return enrollment

    @staticmethod
    def _recompute(enrollment: Enrollment, content_ids: set[UUID], now: datetime) -> None:
        # Completions of lessons removed from the course no longer count
        current = {
            cid: done for cid, done in enrollment.completions.items() if cid in content_ids
        }
        enrollment.progress = compute_progress(current, len(content_ids))
        enrollment.last_updated = now

        if enrollment.progress >= COMPLETE_PERCENT:
            if not enrollment.is_completed:
                enrollment.completed_at = now
            enrollment.status = EnrollmentStatus.COMPLETED.value
        else:
            enrollment.status = EnrollmentStatus.ACTIVE.value
            enrollment.completed_at = None

    async def get_course_progress(self, user_id: UUID, course_id: UUID) -> CourseProgressResponse:
        """Progress of an enrollment against the course's current lessons.

        Raises:
            NotEnrolledError: If user not enrolled
        """
        enrollment = await self.get_enrollment(user_id, course_id)
        if not enrollment:
            raise NotEnrolledError

        contents = await self.content_service.list_contents(course_id)
        completions = {
            item.id: enrollment.is_lesson_completed(item.id) for item in contents.items
        }
        completed = sum(1 for done in completions.values() if done)

        return CourseProgressResponse(
            course_id=course_id,
            progress=compute_progress(completions, len(contents.items)),
            lessons_completed=completed,
            lessons_total=len(contents.items),
            status=EnrollmentStatus(enrollment.status),
            completions=completions,
        )
