"""Course services, visibility and ownership checks for course routes."""

from collections.abc import Callable
from typing import Annotated, Any, TypeVar
from uuid import UUID

from fastapi import Depends, Form, HTTPException, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from src.auth.dependencies import OptionalUser, TutorUser
from src.auth.permissions import can_manage_course, is_admin
from src.auth.schemas import UserResponse
from src.courses.models import Course
from src.courses.schemas import CreateContentRequest, CreateCourseRequest
from src.courses.service import ContentService, CourseService, FileUploadError
from src.storage.router import handle_storage_error


FormModel = TypeVar("FormModel", bound=BaseModel)

_course_service_getter: Callable[[], CourseService] | None = None
_content_service_getter: Callable[[], ContentService] | None = None


def set_course_service_getter(getter: Callable[[], CourseService]) -> None:
    global _course_service_getter  # noqa: PLW0603
    _course_service_getter = getter


def set_content_service_getter(getter: Callable[[], ContentService]) -> None:
    global _content_service_getter  # noqa: PLW0603
    _content_service_getter = getter


def get_course_service() -> CourseService:
    if _course_service_getter is None:
        raise RuntimeError("CourseService not configured")
    return _course_service_getter()


def get_content_service() -> ContentService:
    if _content_service_getter is None:
        raise RuntimeError("ContentService not configured")
    return _content_service_getter()


CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]
ContentServiceDep = Annotated[ContentService, Depends(get_content_service)]


def can_view_course(user: UserResponse | None, course: Course) -> bool:
    """Published courses are public; others only for their tutor and admins."""
    if course.is_published:
        return True
    if user is None:
        return False
    return is_admin(user.role) or str(user.id) == str(course.tutor_id)


async def verify_course_view_access(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: OptionalUser,
) -> Course:
    """Load a course the caller is allowed to see."""
    course = await course_service.get_course(course_id)
    # Hidden courses look missing to outsiders
    if not course or not can_view_course(user, course):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Curso nao encontrado",
        )
    return course


async def verify_course_edit_access(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: TutorUser,
) -> Course:
    """Load a course the caller may change (owning tutor or admin)."""
    course = await course_service.get_course(course_id)
    if not course:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Curso nao encontrado",
        )

    decision = can_manage_course(user.id, user.role, course.tutor_id)
    if not decision:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=decision.reason or "Sem permissao para editar este curso",
        )
    return course


ViewableCourse = Annotated[Course, Depends(verify_course_view_access)]
EditableCourse = Annotated[Course, Depends(verify_course_edit_access)]


COURSE_ERROR_STATUS = {
    "course_not_found": status.HTTP_404_NOT_FOUND,
    "content_not_found": status.HTTP_404_NOT_FOUND,
    "concurrent_reorder": status.HTTP_409_CONFLICT,
    "invalid_position": status.HTTP_400_BAD_REQUEST,
    "upload_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def handle_course_error(error: Exception) -> HTTPException:
    """Upload failures with a storage cause keep the storage status and body."""
    if isinstance(error, FileUploadError) and error.storage_error is not None:
        return handle_storage_error(error.storage_error)

    return HTTPException(
        status_code=COURSE_ERROR_STATUS.get(
            getattr(error, "code", ""), status.HTTP_400_BAD_REQUEST
        ),
        detail=getattr(error, "message", str(error)),
    )


def _form_model(model: type[FormModel], **fields: Any) -> FormModel:
    """Validate multipart fields into a request model, 422 on bad input."""
    try:
        return model(**{k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in e.errors(include_url=False)]
        ) from e


def course_form(
    title: Annotated[str, Form()],
    description: Annotated[str | None, Form()] = None,
    price: Annotated[str | None, Form()] = None,
    level: Annotated[str | None, Form()] = None,
    duration: Annotated[str | None, Form()] = None,
    category: Annotated[str | None, Form()] = None,
    tags: Annotated[str | None, Form()] = None,
    course_status: Annotated[str | None, Form(alias="status")] = None,
) -> CreateCourseRequest:
    return _form_model(
        CreateCourseRequest,
        title=title,
        description=description,
        price=price,
        level=level,
        duration=duration,
        category=category,
        tags=tags,
        status=course_status,
    )


def content_form(
    title: Annotated[str, Form()],
    description: Annotated[str | None, Form()] = None,
    content_type: Annotated[str | None, Form()] = None,
    file_url: Annotated[str | None, Form()] = None,
    duration: Annotated[str | None, Form()] = None,
    expected_version: Annotated[int | None, Form()] = None,
) -> CreateContentRequest:
    return _form_model(
        CreateContentRequest,
        title=title,
        description=description,
        content_type=content_type,
        file_url=file_url,
        duration=duration,
        expected_version=expected_version,
    )


CourseForm = Annotated[CreateCourseRequest, Depends(course_form)]
ContentForm = Annotated[CreateContentRequest, Depends(content_form)]
