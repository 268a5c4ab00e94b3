"""Database models for course management.

Cassandra table definitions for:
- Courses: main course table plus lookups by tutor and by status
- Course contents: every lesson of a course in one partition, with a
  static version column guarding sequence changes
- Content index: content_id -> course_id
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.utils.timestamps import as_utc


class CourseStatus(str, Enum):
    """Course publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class CourseLevel(str, Enum):
    """Target audience level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ALL_LEVELS = "all-levels"


class ContentKind(str, Enum):
    """Lesson content type."""

    VIDEO = "video"
    DOCUMENT = "document"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    price DECIMAL,
    level TEXT,
    duration TEXT,
    category TEXT,
    tags TEXT,
    status TEXT,
    thumbnail_url TEXT,
    tutor_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSES_BY_TUTOR_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses_by_tutor (
    tutor_id UUID,
    created_at TIMESTAMP,
    course_id UUID,
    title TEXT,
    status TEXT,
    PRIMARY KEY (tutor_id, created_at, course_id)
) WITH CLUSTERING ORDER BY (created_at DESC, course_id ASC)
"""

COURSES_BY_STATUS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses_by_status (
    status TEXT,
    created_at TIMESTAMP,
    course_id UUID,
    title TEXT,
    tutor_id UUID,
    PRIMARY KEY (status, created_at, course_id)
) WITH CLUSTERING ORDER BY (created_at DESC, course_id ASC)
"""

# One partition per course; content_version is bumped by every
# sequence-changing write through a conditional batch.
COURSE_CONTENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_contents (
    course_id UUID,
    content_id UUID,
    content_version INT STATIC,
    title TEXT,
    description TEXT,
    content_type TEXT,
    file_url TEXT,
    duration TEXT,
    sequence INT,
    created_by UUID,
    transcript TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (course_id, content_id)
)
"""

COURSE_CONTENT_INDEX_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_content_index (
    content_id UUID PRIMARY KEY,
    course_id UUID
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSES_BY_TUTOR_TABLE_CQL,
    COURSES_BY_STATUS_TABLE_CQL,
    COURSE_CONTENTS_TABLE_CQL,
    COURSE_CONTENT_INDEX_TABLE_CQL,
]


def normalize_tags(tags: str | list[str] | None) -> str:
    """Join tags into the stored comma-separated form.

    >>> normalize_tags(" python,  web ,,api ")
    'python, web, api'
    """
    if not tags:
        return ""
    parts = tags.split(",") if isinstance(tags, str) else tags
    return ", ".join(part.strip() for part in parts if part.strip())


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        price: Price (0 = free)
        level: Target level
        duration: Free-form duration label ("6 semanas")
        category: Catalog category
        tags: Comma-joined tags
        status: draft, published or archived
        thumbnail_url: Cover image URL
        tutor_id: Owning tutor
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        price: Decimal | None = None,
        level: str = CourseLevel.ALL_LEVELS.value,
        duration: str | None = None,
        category: str | None = None,
        tags: str | list[str] | None = None,
        status: str = CourseStatus.DRAFT.value,
        thumbnail_url: str | None = None,
        tutor_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.description = description
        self.price = price if price is not None else Decimal("0")
        self.level = level or CourseLevel.ALL_LEVELS.value
        self.duration = duration
        self.category = category
        self.tags = normalize_tags(tags)
        self.status = status
        self.thumbnail_url = thumbnail_url
        self.tutor_id = tutor_id
        self.created_at = as_utc(created_at) or datetime.now(UTC)
        self.updated_at = as_utc(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title or "",
            description=row.description,
            price=row.price,
            level=row.level,
            duration=row.duration,
            category=row.category,
            tags=row.tags,
            status=row.status,
            thumbnail_url=row.thumbnail_url,
            tutor_id=row.tutor_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def is_published(self) -> bool:
        return self.status == CourseStatus.PUBLISHED.value

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status})>"


class ContentItem:
    """A lesson (video or document) of a course.

    `sequence` is the 1-based display position inside the course.
    `transcript` holds {start, end, text} segments, stored as JSON text.
    """

    def __init__(
        self,
        course_id: UUID,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        content_type: str = ContentKind.VIDEO.value,
        file_url: str | None = None,
        duration: str | None = None,
        sequence: int = 1,
        created_by: UUID | None = None,
        transcript: list[dict[str, Any]] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.title = title.strip()
        self.description = description
        self.content_type = content_type
        self.file_url = file_url
        self.duration = duration
        self.sequence = sequence
        self.created_by = created_by
        self.transcript = transcript
        self.created_at = as_utc(created_at) or datetime.now(UTC)
        self.updated_at = as_utc(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "ContentItem":
        """Create ContentItem instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            id=row.content_id,
            title=row.title or "",
            description=row.description,
            content_type=row.content_type,
            file_url=row.file_url,
            duration=row.duration,
            sequence=row.sequence,
            created_by=row.created_by,
            transcript=json.loads(row.transcript) if row.transcript else None,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def transcript_json(self) -> str | None:
        """Transcript serialized for storage."""
        if self.transcript is None:
            return None
        return json.dumps(self.transcript)

    def __repr__(self) -> str:
        return f"<ContentItem {self.sequence}. {self.title}>"
