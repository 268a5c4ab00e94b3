"""Course management API endpoints.

Provides routes for:
- Courses: CRUD, catalog and thumbnail replacement
- Contents: CRUD, one-step moves and drag reorder
"""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, File, Query, UploadFile, status

from src.auth.dependencies import ContentManager, TutorUser
from src.courses.dependencies import (
    ContentForm,
    ContentServiceDep,
    CourseForm,
    CourseServiceDep,
    EditableCourse,
    ViewableCourse,
    handle_course_error,
)
from src.courses.schemas import (
    ContentListResponse,
    ContentResponse,
    CourseListResponse,
    CourseResponse,
    FileUpload,
    MoveContentRequest,
    ReorderContentRequest,
    UpdateContentRequest,
    UpdateCourseRequest,
)
from src.courses.service import (
    ContentNotFoundError,
    ContentService,
    CourseContents,
    CourseError,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


async def _read_upload(file: UploadFile | None) -> FileUpload | None:
    if file is None or not file.filename:
        return None
    return FileUpload(
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
        filename=file.filename,
    )


def _content_list(
    content_service: ContentService, contents: CourseContents
) -> ContentListResponse:
    return ContentListResponse(
        items=[content_service.to_response(item) for item in contents.items],
        total=len(contents.items),
        version=contents.version,
    )


# ==============================================================================
# Courses
# ==============================================================================


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new course",
)
async def create_course(
    data: CourseForm,
    course_service: CourseServiceDep,
    user: TutorUser,
    thumbnail: Annotated[UploadFile | None, File(description="Cover image")] = None,
) -> CourseResponse:
    """Create a course (TUTOR or ADMIN). The thumbnail is uploaded first."""
    try:
        course = await course_service.create_course(
            data, user.id, await _read_upload(thumbnail)
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return course_service.to_response(course)


@router.get(
    "",
    response_model=CourseListResponse,
    summary="List published courses",
)
async def list_published_courses(
    course_service: CourseServiceDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> CourseListResponse:
    """Public catalog."""
    courses = await course_service.list_published(limit=limit)
    items = [course_service.to_response(c) for c in courses]
    return CourseListResponse(items=items, total=len(items))


@router.get(
    "/my",
    response_model=CourseListResponse,
    summary="List my courses",
)
async def list_my_courses(
    course_service: CourseServiceDep,
    user: TutorUser,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> CourseListResponse:
    """Courses owned by the current tutor, any status."""
    courses = await course_service.list_by_tutor(user.id, limit=limit)
    items = [course_service.to_response(c) for c in courses]
    return CourseListResponse(items=items, total=len(items))


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course",
)
async def get_course(
    course: ViewableCourse,
    course_service: CourseServiceDep,
) -> CourseResponse:
    return course_service.to_response(course)


@router.put(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course: EditableCourse,
    data: UpdateCourseRequest,
    course_service: CourseServiceDep,
) -> CourseResponse:
    """Update course (owning tutor or ADMIN)."""
    try:
        updated = await course_service.update_course(course.id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return course_service.to_response(updated)


@router.put(
    "/{course_id}/thumbnail",
    response_model=CourseResponse,
    summary="Replace course thumbnail",
)
async def replace_thumbnail(
    course: EditableCourse,
    course_service: CourseServiceDep,
    file: Annotated[UploadFile, File(description="Cover image")],
) -> CourseResponse:
    upload = await _read_upload(file)
    if upload is None:
        raise handle_course_error(CourseError("Arquivo nao enviado", "invalid_file"))
    try:
        updated = await course_service.replace_thumbnail(course.id, upload)
    except CourseError as e:
        raise handle_course_error(e) from e
    return course_service.to_response(updated)


@router.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete course",
)
async def delete_course(
    course: EditableCourse,
    course_service: CourseServiceDep,
) -> None:
    """Delete course and its contents (owning tutor or ADMIN)."""
    try:
        await course_service.delete_course(course.id)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Contents
# ==============================================================================


@router.get(
    "/{course_id}/contents",
    response_model=ContentListResponse,
    summary="List course contents",
)
async def list_contents(
    course: ViewableCourse,
    content_service: ContentServiceDep,
) -> ContentListResponse:
    """Contents in display order with the version to send back on writes."""
    contents = await content_service.list_contents(course.id)
    return _content_list(content_service, contents)


@router.post(
    "/{course_id}/contents",
    response_model=ContentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add content to course",
)
async def create_content(
    course: EditableCourse,
    data: ContentForm,
    content_service: ContentServiceDep,
    user: ContentManager,
    file: Annotated[UploadFile | None, File(description="Video or PDF")] = None,
) -> ContentResponse:
    """Append a lesson at the end of the course, uploading its file first."""
    try:
        content = await content_service.create_content(
            course.id, data, user.id, await _read_upload(file)
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return content_service.to_response(content)


@router.post(
    "/{course_id}/contents/reorder",
    response_model=ContentListResponse,
    summary="Drag-and-drop reorder",
)
async def reorder_contents(
    course: EditableCourse,
    data: ReorderContentRequest,
    content_service: ContentServiceDep,
) -> ContentListResponse:
    """Move the item at source_index to destination_index.

    Returns 409 if someone else changed the order since expected_version.
    """
    try:
        contents = await content_service.reorder_content(
            course.id,
            data.source_index,
            data.destination_index,
            data.expected_version,
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return _content_list(content_service, contents)


@router.get(
    "/{course_id}/contents/{content_id}",
    response_model=ContentResponse,
    summary="Get content",
)
async def get_content(
    course: ViewableCourse,
    content_id: UUID,
    content_service: ContentServiceDep,
) -> ContentResponse:
    content = await content_service.get_content(course.id, content_id)
    if not content:
        raise handle_course_error(ContentNotFoundError())
    return content_service.to_response(content)


@router.patch(
    "/{course_id}/contents/{content_id}",
    response_model=ContentResponse,
    summary="Update content",
)
async def update_content(
    course: EditableCourse,
    content_id: UUID,
    data: UpdateContentRequest,
    content_service: ContentServiceDep,
) -> ContentResponse:
    try:
        content = await content_service.update_content(course.id, content_id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return content_service.to_response(content)


@router.delete(
    "/{course_id}/contents/{content_id}",
    response_model=ContentListResponse,
    summary="Delete content",
)
async def delete_content(
    course: EditableCourse,
    content_id: UUID,
    content_service: ContentServiceDep,
    expected_version: Annotated[int | None, Query(ge=0)] = None,
) -> ContentListResponse:
    """Delete a lesson; the following lessons move up one position."""
    try:
        contents = await content_service.delete_content(
            course.id, content_id, expected_version
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return _content_list(content_service, contents)


@router.post(
    "/{course_id}/contents/{content_id}/move",
    response_model=ContentListResponse,
    summary="Move content up or down",
)
async def move_content(
    course: EditableCourse,
    content_id: UUID,
    data: MoveContentRequest,
    content_service: ContentServiceDep,
) -> ContentListResponse:
    """Swap a lesson with its neighbor. Edge moves leave the order unchanged."""
    try:
        contents = await content_service.move_content(
            course.id, content_id, data.direction, data.expected_version
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return _content_list(content_service, contents)
