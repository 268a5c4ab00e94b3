"""Pydantic schemas for enrollments and lesson completion.

Request and response models for:
- Course enrollment
- Lesson completion toggle
- Progress queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import Enrollment, EnrollmentState, EnrollmentStatus


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    course_id: UUID
    user_id: UUID
    status: EnrollmentStatus
    progress: int = Field(description="0-100 percentage")
    completed_lessons: list[UUID] = Field(default_factory=list)
    enrolled_at: datetime
    completed_at: datetime | None = None
    last_updated: datetime

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            course_id=entity.course_id,
            user_id=entity.user_id,
            status=EnrollmentStatus(entity.status),
            progress=entity.progress,
            completed_lessons=sorted(
                (cid for cid, done in entity.completions.items() if done), key=str
            ),
            enrolled_at=entity.enrolled_at,
            completed_at=entity.completed_at,
            last_updated=entity.last_updated,
        )


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int


class EnrollmentStateResponse(BaseModel):
    """Tri-state enrollment check for the enroll button."""

    course_id: UUID
    state: EnrollmentState


# ==============================================================================
# Completion Schemas
# ==============================================================================


class ToggleCompletionRequest(BaseModel):
    """Mark a lesson complete or incomplete."""

    completed: bool = Field(..., description="New completion value")


class CourseProgressResponse(BaseModel):
    """Progress summary of one enrollment."""

    course_id: UUID
    progress: int
    lessons_completed: int
    lessons_total: int
    status: EnrollmentStatus
    completions: dict[UUID, bool] = Field(
        default_factory=dict,
        description="Content id -> completed, for every lesson of the course",
    )
