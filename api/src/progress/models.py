"""Database models for enrollments and lesson completion.

Cassandra table definitions for:
- Enrollments: one row per (course, user) with the course progress
- Enrollments by user: lookup for "my courses"
- Lesson completions: one row per completed lesson of an enrollment

Marking a lesson incomplete deletes its completion row, so the completion
map of an enrollment is exactly the set of rows in its partition.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.utils.timestamps import as_utc


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ACTIVE = "active"  # Cursando
    COMPLETED = "completed"  # Concluiu todas as aulas


class EnrollmentState(str, Enum):
    """Enrollment state of a (user, course) pair as seen by the client."""

    NOT_ENROLLED = "not-enrolled"
    ENROLLING = "enrolling"  # Inscricao em andamento, nao persistido
    ENROLLED = "enrolled"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partition per course: the roster of a course
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    user_id UUID,
    status TEXT,
    progress INT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_updated TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# Partition per user: "my courses", newest enrollment first
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    course_id UUID,
    status TEXT,
    progress INT,
    last_updated TIMESTAMP,
    PRIMARY KEY (user_id, enrolled_at, course_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, course_id ASC)
"""

# One row per completed lesson; unmarking deletes the row
LESSON_COMPLETIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_completions (
    user_id UUID,
    course_id UUID,
    content_id UUID,
    completed_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), content_id)
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    LESSON_COMPLETIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonCompletion:
    """A completed lesson of an enrollment."""

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        content_id: UUID,
        completed_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.content_id = content_id
        self.completed_at = as_utc(completed_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "LessonCompletion":
        """Create LessonCompletion instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            content_id=row.content_id,
            completed_at=row.completed_at,
        )

    def __repr__(self) -> str:
        return f"<LessonCompletion {self.content_id} at {self.completed_at}>"


class Enrollment:
    """Course enrollment entity.

    Attributes:
        course_id: Course UUID
        user_id: User UUID
        status: active or completed
        progress: Percent of course lessons completed (0-100)
        completions: Content id -> completed flag
        enrolled_at: Enrollment timestamp
        completed_at: When progress first reached 100
        last_updated: Last completion change
    """

    def __init__(
        self,
        course_id: UUID,
        user_id: UUID,
        status: str = EnrollmentStatus.ACTIVE.value,
        progress: int = 0,
        completions: dict[UUID, bool] | None = None,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        last_updated: datetime | None = None,
    ):
        self.course_id = course_id
        self.user_id = user_id
        self.status = status
        self.progress = progress
        self.completions = completions if completions is not None else {}
        self.enrolled_at = as_utc(enrolled_at) or datetime.now(UTC)
        self.completed_at = as_utc(completed_at)
        self.last_updated = as_utc(last_updated) or self.enrolled_at

    @property
    def is_completed(self) -> bool:
        """Check if course is completed."""
        return self.status == EnrollmentStatus.COMPLETED.value

    def is_lesson_completed(self, content_id: UUID) -> bool:
        return self.completions.get(content_id, False)

    @classmethod
    def from_row(
        cls,
        row: Any,
        completions: dict[UUID, bool] | None = None,
    ) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            status=row.status or EnrollmentStatus.ACTIVE.value,
            progress=row.progress or 0,
            completions=completions,
            enrolled_at=row.enrolled_at,
            completed_at=getattr(row, "completed_at", None),
            last_updated=row.last_updated,
        )

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status} {self.progress}%>"
        )
