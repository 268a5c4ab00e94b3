"""Course management service layer.

Business logic for:
- Course CRUD with thumbnail upload and lookup tables
- Content items of a course: create, update, delete, move and reorder

Every write that changes sequences is one conditional logged batch over
the course's content partition. The batch bumps the static
content_version column only if it still holds the version that was read,
so either all affected items move or none do.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import structlog
from cassandra.query import BatchStatement, BatchType

from src.courses.models import (
    ContentItem,
    ContentKind,
    Course,
    CourseStatus,
    normalize_tags,
)
from src.courses.schemas import (
    ContentResponse,
    CourseResponse,
    CreateContentRequest,
    CreateCourseRequest,
    FileUpload,
    UpdateContentRequest,
    UpdateCourseRequest,
)
from src.courses.sequencing import (
    InvalidPositionError,
    MoveDirection,
    SequencePlan,
    index_of,
    move_adjacent,
    move_to,
    next_sequence,
    order_items,
    remove_at,
)
from src.storage.service import StorageError
from src.utils.magic_bytes import lesson_kind


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.storage.service import FirebaseStorageService


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Curso nao encontrado"):
        super().__init__(message, "course_not_found")


class ContentNotFoundError(CourseError):
    """Content item not found."""

    def __init__(self, message: str = "Conteudo nao encontrado"):
        super().__init__(message, "content_not_found")


class ConcurrentReorderError(CourseError):
    """Content order changed since it was read."""

    def __init__(
        self,
        message: str = "A ordem do conteudo foi alterada por outra sessao. "
        "Recarregue e tente novamente",
    ):
        super().__init__(message, "concurrent_reorder")


class InvalidContentPositionError(CourseError):
    """Position outside the content list."""

    def __init__(self, message: str = "Posicao de conteudo invalida"):
        super().__init__(message, "invalid_position")


class FileUploadError(CourseError):
    """Thumbnail or lesson file could not be stored; nothing was written."""

    def __init__(
        self,
        message: str = "Falha no envio do arquivo",
        storage_error: StorageError | None = None,
    ):
        super().__init__(message, "upload_failed")
        self.storage_error = storage_error


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for course management."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        storage: "FirebaseStorageService | None" = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.storage = storage
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, price, level, duration, category, tags,
             status, thumbnail_url, tutor_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET title = ?, description = ?, price = ?, level = ?, duration = ?,
                category = ?, tags = ?, status = ?, thumbnail_url = ?,
                updated_at = ?
            WHERE id = ?
        """)
        self._delete_course = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses WHERE id = ?"
        )

        # Lookup tables
        self._insert_course_by_status = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses_by_status
            (status, created_at, course_id, title, tutor_id)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._delete_course_by_status = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses_by_status WHERE status = ? AND created_at = ? AND course_id = ?"
        )
        self._get_courses_by_status = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses_by_status WHERE status = ? LIMIT ?"
        )
        self._insert_course_by_tutor = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses_by_tutor
            (tutor_id, created_at, course_id, title, status)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._delete_course_by_tutor = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses_by_tutor WHERE tutor_id = ? AND created_at = ? AND course_id = ?"
        )
        self._get_courses_by_tutor = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses_by_tutor WHERE tutor_id = ? LIMIT ?"
        )

        # Content cleanup on course deletion
        self._get_content_ids = self.session.prepare(
            f"SELECT content_id FROM {self.keyspace}.course_contents WHERE course_id = ?"
        )
        self._delete_all_contents = self.session.prepare(
            f"DELETE FROM {self.keyspace}.course_contents WHERE course_id = ?"
        )
        self._delete_content_index = self.session.prepare(
            f"DELETE FROM {self.keyspace}.course_content_index WHERE content_id = ?"
        )

    async def _upload_thumbnail(self, course: Course, thumbnail: FileUpload) -> str:
        if self.storage is None:
            raise FileUploadError("Armazenamento de arquivos nao configurado")
        try:
            result = await self.storage.upload_thumbnail(
                content=thumbnail.content,
                content_type=thumbnail.content_type,
                entity_type="course",
                entity_id=str(course.id),
                filename=thumbnail.filename,
            )
        except StorageError as e:
            logger.warning(
                "course_thumbnail_upload_failed",
                course_id=str(course.id),
                code=e.code,
                error=e.message,
            )
            raise FileUploadError(e.message, storage_error=e) from e
        return str(result["file_url"])

    async def create_course(
        self,
        data: CreateCourseRequest,
        tutor_id: UUID,
        thumbnail: FileUpload | None = None,
    ) -> Course:
        """Create a course, uploading its thumbnail first.

        Raises:
            FileUploadError: If the thumbnail upload fails (no course is written)
        """
        course = Course(
            title=data.title,
            description=data.description,
            price=data.price,
            level=data.level.value,
            duration=data.duration,
            category=data.category,
            tags=data.tags,
            status=data.status.value,
            tutor_id=tutor_id,
        )

        if thumbnail is not None:
            course.thumbnail_url = await self._upload_thumbnail(course, thumbnail)

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.price,
                course.level,
                course.duration,
                course.category,
                course.tags,
                course.status,
                course.thumbnail_url,
                course.tutor_id,
                course.created_at,
                course.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_course_by_status,
            [course.status, course.created_at, course.id, course.title, course.tutor_id],
        )
        await self.session.aexecute(
            self._insert_course_by_tutor,
            [course.tutor_id, course.created_at, course.id, course.title, course.status],
        )

        logger.info(
            "course_created",
            course_id=str(course.id),
            tutor_id=str(tutor_id),
            has_thumbnail=course.thumbnail_url is not None,
        )
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        rows = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = rows.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by ID or raise CourseNotFoundError."""
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError
        return course

    async def _save(self, course: Course, old_status: str) -> None:
        course.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_course,
            [
                course.title,
                course.description,
                course.price,
                course.level,
                course.duration,
                course.category,
                course.tags,
                course.status,
                course.thumbnail_url,
                course.updated_at,
                course.id,
            ],
        )

        if old_status != course.status:
            await self.session.aexecute(
                self._delete_course_by_status,
                [old_status, course.created_at, course.id],
            )
        await self.session.aexecute(
            self._insert_course_by_status,
            [course.status, course.created_at, course.id, course.title, course.tutor_id],
        )
        await self.session.aexecute(
            self._insert_course_by_tutor,
            [course.tutor_id, course.created_at, course.id, course.title, course.status],
        )

    async def update_course(self, course_id: UUID, data: UpdateCourseRequest) -> Course:
        """Update course fields that were sent.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.require_course(course_id)
        old_status = course.status

        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        for field_name, value in updates.items():
            setattr(course, field_name, getattr(value, "value", value))
        if "title" in updates:
            course.title = course.title.strip()
        if "tags" in updates:
            course.tags = normalize_tags(course.tags)

        await self._save(course, old_status)
        logger.info(
            "course_updated",
            course_id=str(course_id),
            fields=sorted(updates),
        )
        return course

    async def replace_thumbnail(self, course_id: UUID, thumbnail: FileUpload) -> Course:
        """Upload a new cover image and point the course at it.

        Raises:
            CourseNotFoundError: If course doesn't exist
            FileUploadError: If upload fails (course unchanged)
        """
        course = await self.require_course(course_id)
        course.thumbnail_url = await self._upload_thumbnail(course, thumbnail)
        await self._save(course, course.status)
        return course

    async def delete_course(self, course_id: UUID) -> None:
        """Delete a course with its content items."""
        course = await self.require_course(course_id)

        rows = await self.session.aexecute(self._get_content_ids, [course_id])
        content_ids = [row.content_id for row in rows if row.content_id is not None]

        await self.session.aexecute(self._delete_all_contents, [course_id])
        for content_id in content_ids:
            await self.session.aexecute(self._delete_content_index, [content_id])

        await self.session.aexecute(
            self._delete_course_by_status,
            [course.status, course.created_at, course.id],
        )
        await self.session.aexecute(
            self._delete_course_by_tutor,
            [course.tutor_id, course.created_at, course.id],
        )
        await self.session.aexecute(self._delete_course, [course_id])

        logger.info(
            "course_deleted",
            course_id=str(course_id),
            contents_removed=len(content_ids),
        )

    async def _load_listed(self, rows: Any) -> list[Course]:
        courses = []
        for row in rows:
            course = await self.get_course(row.course_id)
            if course:
                courses.append(course)
        return courses

    async def list_published(self, limit: int = 50) -> list[Course]:
        """Catalog: published courses, newest first."""
        rows = await self.session.aexecute(
            self._get_courses_by_status, [CourseStatus.PUBLISHED.value, limit]
        )
        return await self._load_listed(rows)

    async def list_by_tutor(self, tutor_id: UUID, limit: int = 50) -> list[Course]:
        """Courses owned by a tutor, any status."""
        rows = await self.session.aexecute(
            self._get_courses_by_tutor, [tutor_id, limit]
        )
        return await self._load_listed(rows)

    def to_response(self, course: Course) -> CourseResponse:
        """Convert Course to response schema."""
        return CourseResponse.model_validate(course)


# ==============================================================================
# Content Service
# ==============================================================================


@dataclass
class CourseContents:
    """Content items of a course in display order, with the partition version."""

    items: list[ContentItem]
    version: int


class ContentService:
    """Service for the ordered content items of a course."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        storage: "FirebaseStorageService | None" = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.storage = storage
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_contents = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_contents WHERE course_id = ?"
        )
        self._get_content = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_contents WHERE course_id = ? AND content_id = ?"
        )
        self._bump_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_contents
            SET content_version = ?
            WHERE course_id = ?
            IF content_version = ?
        """)
        self._insert_content = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_contents
            (course_id, content_id, title, description, content_type, file_url,
             duration, sequence, created_by, transcript, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_sequence = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_contents
            SET sequence = ?, updated_at = ?
            WHERE course_id = ? AND content_id = ?
        """)
        self._update_content = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_contents
            SET title = ?, description = ?, file_url = ?, duration = ?,
                updated_at = ?
            WHERE course_id = ? AND content_id = ?
        """)
        self._update_transcript = self.session.prepare(f"""
            UPDATE {self.keyspace}.course_contents
            SET transcript = ?, updated_at = ?
            WHERE course_id = ? AND content_id = ?
        """)
        self._delete_content = self.session.prepare(
            f"DELETE FROM {self.keyspace}.course_contents WHERE course_id = ? AND content_id = ?"
        )

        # content_id -> course_id
        self._get_index = self.session.prepare(
            f"SELECT course_id FROM {self.keyspace}.course_content_index WHERE content_id = ?"
        )
        self._insert_index = self.session.prepare(
            f"INSERT INTO {self.keyspace}.course_content_index (content_id, course_id) VALUES (?, ?)"
        )
        self._delete_index = self.session.prepare(
            f"DELETE FROM {self.keyspace}.course_content_index WHERE content_id = ?"
        )

    # --------------------------------------------------------------------------
    # Reads
    # --------------------------------------------------------------------------

    async def list_contents(self, course_id: UUID) -> CourseContents:
        """Ordered content items and the current version of the course."""
        rows = list(await self.session.aexecute(self._get_contents, [course_id]))
        version = (rows[0].content_version or 0) if rows else 0
        # A partition whose items were all deleted still returns its static row
        items = [ContentItem.from_row(row) for row in rows if row.content_id is not None]
        return CourseContents(items=order_items(items), version=version)

    async def content_ids(self, course_id: UUID) -> set[UUID]:
        """Ids of the course's current content items."""
        contents = await self.list_contents(course_id)
        return {item.id for item in contents.items}

    async def get_content(self, course_id: UUID, content_id: UUID) -> ContentItem | None:
        """Get one content item of a course."""
        rows = await self.session.aexecute(self._get_content, [course_id, content_id])
        row = rows.one()
        return ContentItem.from_row(row) if row else None

    async def find_content(self, content_id: UUID) -> ContentItem | None:
        """Get a content item by id alone through the index table."""
        rows = await self.session.aexecute(self._get_index, [content_id])
        row = rows.one()
        if not row:
            return None
        return await self.get_content(row.course_id, content_id)

    # --------------------------------------------------------------------------
    # Versioned writes
    # --------------------------------------------------------------------------

    @staticmethod
    def _check_expected(contents: CourseContents, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != contents.version:
            raise ConcurrentReorderError

    async def _commit(
        self,
        course_id: UUID,
        read_version: int,
        statements: list[tuple[Any, list[Any]]],
    ) -> int:
        """Apply statements atomically if nobody changed the course since the read.

        Returns:
            The new content version.

        Raises:
            ConcurrentReorderError: If the version moved in between
        """
        new_version = read_version + 1
        batch = BatchStatement(batch_type=BatchType.LOGGED)
        # A partition that never had a version holds null
        batch.add(
            self._bump_version,
            [new_version, course_id, read_version or None],
        )
        for statement, params in statements:
            batch.add(statement, params)

        result = await self.session.aexecute(batch)
        if not result.was_applied:
            logger.warning(
                "content_order_conflict",
                course_id=str(course_id),
                read_version=read_version,
            )
            raise ConcurrentReorderError
        return new_version

    def _sequence_statements(
        self, course_id: UUID, plan: SequencePlan, now: datetime
    ) -> list[tuple[Any, list[Any]]]:
        return [
            (self._update_sequence, [change.new_sequence, now, course_id, change.content_id])
            for change in plan.changes
        ]

    @staticmethod
    def _apply(plan: SequencePlan, version: int) -> CourseContents:
        for item in plan.order:
            new_sequence = plan.new_sequence(item.id)
            if new_sequence is not None:
                item.sequence = new_sequence
        return CourseContents(items=plan.order, version=version)

    async def _upload_file(self, content: ContentItem, upload: FileUpload) -> None:
        if self.storage is None:
            raise FileUploadError("Armazenamento de arquivos nao configurado")
        try:
            result = await self.storage.upload_content_file(
                content=upload.content,
                content_type=upload.content_type,
                course_id=str(content.course_id),
                content_id=str(content.id),
                filename=upload.filename,
            )
        except StorageError as e:
            logger.warning(
                "content_file_upload_failed",
                course_id=str(content.course_id),
                content_id=str(content.id),
                code=e.code,
                error=e.message,
            )
            raise FileUploadError(e.message, storage_error=e) from e

        content.file_url = str(result["file_url"])
        content.content_type = lesson_kind(str(result["content_type"])) or content.content_type

    async def create_content(
        self,
        course_id: UUID,
        data: CreateContentRequest,
        created_by: UUID,
        upload: FileUpload | None = None,
    ) -> ContentItem:
        """Append a content item at the end of the course.

        Raises:
            ConcurrentReorderError: If the course changed since expected_version
            FileUploadError: If the file upload fails (nothing is written)
        """
        contents = await self.list_contents(course_id)
        self._check_expected(contents, data.expected_version)

        content = ContentItem(
            course_id=course_id,
            id=uuid4(),
            title=data.title,
            description=data.description,
            content_type=(data.content_type or ContentKind.VIDEO).value,
            file_url=data.file_url,
            duration=data.duration,
            sequence=next_sequence(contents.items),
            created_by=created_by,
        )

        if upload is not None:
            await self._upload_file(content, upload)

        await self._commit(
            course_id,
            contents.version,
            [
                (
                    self._insert_content,
                    [
                        content.course_id,
                        content.id,
                        content.title,
                        content.description,
                        content.content_type,
                        content.file_url,
                        content.duration,
                        content.sequence,
                        content.created_by,
                        content.transcript_json,
                        content.created_at,
                        content.updated_at,
                    ],
                )
            ],
        )
        await self.session.aexecute(self._insert_index, [content.id, course_id])

        logger.info(
            "content_created",
            course_id=str(course_id),
            content_id=str(content.id),
            sequence=content.sequence,
            content_type=content.content_type,
        )
        return content

    async def update_content(
        self,
        course_id: UUID,
        content_id: UUID,
        data: UpdateContentRequest,
    ) -> ContentItem:
        """Update title, description, file URL or duration.

        Raises:
            ContentNotFoundError: If the item is not in the course
        """
        content = await self.get_content(course_id, content_id)
        if not content:
            raise ContentNotFoundError

        if data.title is not None:
            content.title = data.title.strip()
        if data.description is not None:
            content.description = data.description
        if data.file_url is not None:
            content.file_url = data.file_url
        if data.duration is not None:
            content.duration = data.duration
        content.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_content,
            [
                content.title,
                content.description,
                content.file_url,
                content.duration,
                content.updated_at,
                course_id,
                content_id,
            ],
        )
        return content

    async def delete_content(
        self,
        course_id: UUID,
        content_id: UUID,
        expected_version: int | None = None,
    ) -> CourseContents:
        """Delete an item and close the gap it leaves.

        Raises:
            ContentNotFoundError: If the item is not in the course
            ConcurrentReorderError: If the course changed concurrently
        """
        contents = await self.list_contents(course_id)
        self._check_expected(contents, expected_version)

        index = index_of(contents.items, content_id)
        if index is None:
            raise ContentNotFoundError

        plan = remove_at(contents.items, index)
        now = datetime.now(UTC)
        version = await self._commit(
            course_id,
            contents.version,
            [
                (self._delete_content, [course_id, content_id]),
                *self._sequence_statements(course_id, plan, now),
            ],
        )
        await self.session.aexecute(self._delete_index, [content_id])

        logger.info(
            "content_deleted",
            course_id=str(course_id),
            content_id=str(content_id),
            renumbered=len(plan.changes),
        )
        return self._apply(plan, version)

    async def move_content(
        self,
        course_id: UUID,
        content_id: UUID,
        direction: MoveDirection,
        expected_version: int | None = None,
    ) -> CourseContents:
        """Move an item one step up or down.

        First-up and last-down return the unchanged list without writing.

        Raises:
            ContentNotFoundError: If the item is not in the course
            ConcurrentReorderError: If the course changed concurrently
        """
        contents = await self.list_contents(course_id)
        self._check_expected(contents, expected_version)

        index = index_of(contents.items, content_id)
        if index is None:
            raise ContentNotFoundError

        plan = move_adjacent(contents.items, index, direction)
        return await self._write_plan(course_id, contents, plan, "content_moved")

    async def reorder_content(
        self,
        course_id: UUID,
        source_index: int,
        destination_index: int,
        expected_version: int | None = None,
    ) -> CourseContents:
        """Drag an item between two display positions and renumber.

        Raises:
            InvalidContentPositionError: If a position is outside the list
            ConcurrentReorderError: If the course changed concurrently
        """
        contents = await self.list_contents(course_id)
        self._check_expected(contents, expected_version)

        try:
            plan = move_to(contents.items, source_index, destination_index)
        except InvalidPositionError as e:
            raise InvalidContentPositionError from e

        return await self._write_plan(course_id, contents, plan, "content_reordered")

    async def _write_plan(
        self,
        course_id: UUID,
        contents: CourseContents,
        plan: SequencePlan,
        event: str,
    ) -> CourseContents:
        if plan.is_noop:
            return CourseContents(items=plan.order, version=contents.version)

        version = await self._commit(
            course_id,
            contents.version,
            self._sequence_statements(course_id, plan, datetime.now(UTC)),
        )
        logger.info(
            event,
            course_id=str(course_id),
            changed=len(plan.changes),
            version=version,
        )
        return self._apply(plan, version)

    # --------------------------------------------------------------------------
    # Transcripts
    # --------------------------------------------------------------------------

    async def set_transcript(
        self,
        content_id: UUID,
        segments: list[dict[str, Any]],
    ) -> ContentItem:
        """Store transcript segments on a content item.

        Raises:
            ContentNotFoundError: If the item doesn't exist
        """
        content = await self.find_content(content_id)
        if not content:
            raise ContentNotFoundError

        content.transcript = segments
        content.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_transcript,
            [content.transcript_json, content.updated_at, content.course_id, content.id],
        )

        logger.info(
            "transcript_stored",
            content_id=str(content_id),
            segments=len(segments),
        )
        return content

    def to_response(self, content: ContentItem) -> ContentResponse:
        """Convert ContentItem to response schema."""
        return ContentResponse(
            id=content.id,
            course_id=content.course_id,
            title=content.title,
            description=content.description,
            content_type=ContentKind(content.content_type),
            file_url=content.file_url,
            duration=content.duration,
            sequence=content.sequence,
            created_by=content.created_by,
            has_transcript=bool(content.transcript),
            created_at=content.created_at,
            updated_at=content.updated_at,
        )
