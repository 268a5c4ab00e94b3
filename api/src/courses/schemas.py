"""Pydantic schemas for course management.

Request and response models for:
- Courses: CRUD operations
- Content items: CRUD, move and drag reorder
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.courses.models import ContentKind, CourseLevel, CourseStatus, normalize_tags
from src.courses.sequencing import MoveDirection


@dataclass
class FileUpload:
    """File received with a create request, uploaded before any row is written."""

    content: bytes
    content_type: str
    filename: str | None = None


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request (multipart form fields)."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )
    price: Decimal = Field(Decimal("0"), ge=0, description="Course price (0 = free)")
    level: CourseLevel = Field(CourseLevel.ALL_LEVELS, description="Target level")
    duration: str | None = Field(None, max_length=100, description="Duration label")
    category: str | None = Field(None, max_length=100, description="Category")
    tags: str | None = Field(None, max_length=500, description="Comma-separated tags")
    status: CourseStatus = Field(CourseStatus.DRAFT, description="Initial status")

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: str | None) -> str | None:
        return normalize_tags(v) if v else v


class UpdateCourseRequest(BaseModel):
    """Course update request."""

    title: str | None = Field(
        None, min_length=3, max_length=200, description="Course title"
    )
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )
    price: Decimal | None = Field(None, ge=0, description="Course price")
    level: CourseLevel | None = Field(None, description="Target level")
    duration: str | None = Field(None, max_length=100)
    category: str | None = Field(None, max_length=100)
    tags: str | None = Field(None, max_length=500)
    status: CourseStatus | None = Field(None, description="Publication status")
    thumbnail_url: str | None = Field(
        None, max_length=500, description="Thumbnail image URL"
    )


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    price: Decimal
    level: CourseLevel
    duration: str | None = None
    category: str | None = None
    tags: str = ""
    status: CourseStatus
    thumbnail_url: str | None = None
    tutor_id: UUID
    created_at: datetime
    updated_at: datetime | None = None


class CourseListResponse(BaseModel):
    """Course list response."""

    items: list[CourseResponse]
    total: int


# ==============================================================================
# Content Schemas
# ==============================================================================


class CreateContentRequest(BaseModel):
    """Content item creation request (multipart form fields).

    content_type is taken from the uploaded file when one is sent.
    """

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    content_type: ContentKind | None = Field(None, description="video or document")
    file_url: str | None = Field(
        None, max_length=1000, description="External file URL (no upload)"
    )
    duration: str | None = Field(None, max_length=50, description="Duration label")
    expected_version: int | None = Field(
        None, ge=0, description="Content version the client rendered"
    )


class UpdateContentRequest(BaseModel):
    """Content metadata update; sequence changes go through move/reorder."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    file_url: str | None = Field(None, max_length=1000)
    duration: str | None = Field(None, max_length=50)


class MoveContentRequest(BaseModel):
    """One-step move of a content item."""

    direction: MoveDirection
    expected_version: int | None = Field(None, ge=0)


class ReorderContentRequest(BaseModel):
    """Drag-and-drop reorder between two 0-based display positions."""

    source_index: int = Field(..., ge=0)
    destination_index: int = Field(..., ge=0)
    expected_version: int | None = Field(None, ge=0)


class ContentResponse(BaseModel):
    """Content item response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    description: str | None = None
    content_type: ContentKind
    file_url: str | None = None
    duration: str | None = None
    sequence: int
    created_by: UUID | None = None
    has_transcript: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class ContentListResponse(BaseModel):
    """Ordered content of a course with the version to send back on writes."""

    items: list[ContentResponse]
    total: int
    version: int
