"""Enrollment and progress API endpoints.

Provides routes for:
- Course enrollment and enrollment state
- Lesson completion toggles
- Progress queries
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CurrentUser, StudentUser
from src.courses.dependencies import CourseServiceDep, can_view_course

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollmentStateResponse,
    EnrollRequest,
    ToggleCompletionRequest,
)
from .service import NotEnrolledError, ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Completion Endpoints
# ==============================================================================


@router.put(
    "/courses/{course_id}/lessons/{content_id}",
    response_model=EnrollmentResponse,
    summary="Mark lesson complete or incomplete",
)
async def toggle_lesson_completion(
    course_id: UUID,
    content_id: UUID,
    data: ToggleCompletionRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Set a lesson's completion and return the recomputed enrollment.

    Sending the value the lesson already has is a no-op.
    """
    try:
        enrollment = await progress_service.get_enrollment(user.id, course_id)
        if enrollment is None:
            raise NotEnrolledError
        enrollment = await progress_service.toggle_completion(
            enrollment, content_id, data.completed
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Completed lessons, total and percent for the current user."""
    try:
        return await progress_service.get_course_progress(user.id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
    course_service: CourseServiceDep,
    user: StudentUser,
) -> EnrollmentResponse:
    """Enroll current user in a course (once per user and course)."""
    course = await course_service.get_course(data.course_id)
    if not course or not can_view_course(user, course):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Curso nao encontrado",
        )

    try:
        enrollment = await progress_service.enroll(user.id, data.course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e
    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentListResponse:
    """Get all course enrollments for current user."""
    enrollments = await progress_service.get_user_enrollments(user.id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@enrollments_router.get(
    "/{course_id}/state",
    response_model=EnrollmentStateResponse,
    summary="Get enrollment state",
)
async def get_enrollment_state(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentStateResponse:
    """not-enrolled, enrolling or enrolled."""
    state = await progress_service.enrollment_state(user.id, course_id)
    return EnrollmentStateResponse(course_id=course_id, state=state)


@enrollments_router.get(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment for course",
)
async def get_enrollment(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Get enrollment with completed lessons for a specific course."""
    enrollment = await progress_service.get_enrollment(user.id, course_id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Inscricao nao encontrada",
        )
    return EnrollmentResponse.from_entity(enrollment)
