"""Upload responses and limits."""

from datetime import datetime

from pydantic import BaseModel


class UploadedFile(BaseModel):
    file_url: str
    storage_path: str
    content_type: str
    file_size: int
    filename: str
    uploaded_at: datetime


class UploadRejected(BaseModel):
    """Body of a rejected upload: ``message`` holds this object."""

    error: str
    code: str


class UploadLimits(BaseModel):
    """What the bucket accepts, for building upload forms."""

    configured: bool
    bucket: str | None = None
    thumbnail_max_mb: int
    thumbnail_types: list[str]
    lesson_file_max_mb: int
    lesson_file_types: list[str]
