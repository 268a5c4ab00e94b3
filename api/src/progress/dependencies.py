"""Enrollment service lookup and error mapping."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ProgressError, ProgressService


PROGRESS_ERROR_STATUS = {
    "not_enrolled": status.HTTP_404_NOT_FOUND,
    "content_not_in_course": status.HTTP_404_NOT_FOUND,
    "already_enrolled": status.HTTP_409_CONFLICT,
    "enrollment_in_progress": status.HTTP_409_CONFLICT,
    "progress_persistence_failed": status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def get_progress_service(request: Request) -> ProgressService:
    service = getattr(request.app.state, "progress_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de progresso nao disponivel",
        )
    return service


ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def handle_progress_error(error: ProgressError) -> HTTPException:
    return HTTPException(
        status_code=PROGRESS_ERROR_STATUS.get(
            error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        detail=error.message,
    )
