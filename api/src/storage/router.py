"""/v1/storage: upload limits and standalone image uploads."""

from typing import Annotated

import structlog
from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from src.auth.dependencies import TutorUser
from src.storage.dependencies import StorageServiceDep
from src.storage.schemas import UploadedFile, UploadLimits, UploadRejected
from src.storage.service import StorageError


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/storage", tags=["storage"])

STORAGE_ERROR_STATUS = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "file_too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "invalid_content_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    "upload_error": status.HTTP_502_BAD_GATEWAY,
    "storage_not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def handle_storage_error(error: StorageError) -> HTTPException:
    """The detail is a dict so clients can branch on ``code``."""
    return HTTPException(
        status_code=STORAGE_ERROR_STATUS.get(
            error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        ),
        detail=UploadRejected(error=error.message, code=error.code).model_dump(),
    )


@router.get("/config", response_model=UploadLimits)
async def get_upload_limits(storage: StorageServiceDep) -> UploadLimits:
    settings = storage.settings
    return UploadLimits(
        configured=storage.is_configured,
        bucket=settings.firebase_storage_bucket if storage.is_configured else None,
        thumbnail_max_mb=settings.upload_max_file_size_mb,
        thumbnail_types=storage.allowed_types,
        lesson_file_max_mb=settings.content_max_file_size_mb,
        lesson_file_types=storage.content_allowed_types,
    )


@router.post(
    "/thumbnails",
    response_model=UploadedFile,
    responses={
        code: {"model": UploadRejected} for code in sorted(set(STORAGE_ERROR_STATUS.values()))
    },
)
async def upload_thumbnail(
    storage: StorageServiceDep,
    user: TutorUser,
    file: Annotated[UploadFile, File()],
    entity_type: Annotated[str, Form(pattern="^(course|user)$")],
    entity_id: Annotated[str, Form(min_length=1, max_length=100)],
) -> UploadedFile:
    """Upload a cover or avatar image outside course creation."""
    try:
        result = await storage.upload_thumbnail(
            content=await file.read(),
            content_type=file.content_type or "application/octet-stream",
            entity_type=entity_type,
            entity_id=entity_id,
            filename=file.filename,
        )
    except StorageError as e:
        logger.warning(
            "thumbnail_upload_rejected",
            entity_type=entity_type,
            entity_id=entity_id,
            uploaded_by=str(user.id),
            code=e.code,
        )
        raise handle_storage_error(e) from e

    return UploadedFile.model_validate(result)
