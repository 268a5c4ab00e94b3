"""Transcript API endpoints.

Provides routes for:
- Generating a transcript with the configured provider
- Storing a mock transcript (development)
- Storing and reading a transcript directly
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import ContentManager
from src.config.settings import get_settings
from src.courses.service import CourseError
from src.transcripts.dependencies import TranscriptServiceDep, handle_transcript_error
from src.transcripts.schemas import (
    GenerateTranscriptRequest,
    GenerateTranscriptResponse,
    TranscriptResponse,
    TranscriptSegment,
    UpdateTranscriptRequest,
)
from src.transcripts.service import TranscriptError


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/transcripts", tags=["transcripts"])


@router.post(
    "/generate",
    response_model=GenerateTranscriptResponse,
    summary="Generate transcript",
)
async def generate_transcript(
    data: GenerateTranscriptRequest,
    service: TranscriptServiceDep,
    user: ContentManager,
) -> GenerateTranscriptResponse:
    """Transcribe the video and store the segments on the content item.

    Waits for the provider to finish (AssemblyAI is polled every few seconds).
    """
    try:
        segments = await service.generate(data.content_id, data.video_url)
    except (TranscriptError, CourseError) as e:
        raise handle_transcript_error(e) from e
    return GenerateTranscriptResponse(segments=len(segments))


@router.post(
    "/dev",
    response_model=GenerateTranscriptResponse,
    summary="Store mock transcript (development)",
)
async def generate_dev_transcript(
    data: GenerateTranscriptRequest,
    service: TranscriptServiceDep,
    user: ContentManager,
) -> GenerateTranscriptResponse:
    """Store a fixed 16-segment transcript without calling any provider."""
    if get_settings().is_production:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Endpoint disponivel apenas em desenvolvimento",
        )

    try:
        segments = await service.generate_mock(data.content_id)
    except CourseError as e:
        raise handle_transcript_error(e) from e

    logger.info("mock_transcript_stored", content_id=str(data.content_id))
    return GenerateTranscriptResponse(
        segments=len(segments),
        mock=True,
        message="Transcricao de exemplo gerada e salva",
    )


@router.put(
    "",
    response_model=GenerateTranscriptResponse,
    summary="Store transcript",
)
async def update_transcript(
    data: UpdateTranscriptRequest,
    service: TranscriptServiceDep,
    user: ContentManager,
) -> GenerateTranscriptResponse:
    """Store a transcript produced elsewhere on the content item."""
    segments = [segment.model_dump() for segment in data.transcript]
    try:
        await service.store(data.content_id, segments)
    except CourseError as e:
        raise handle_transcript_error(e) from e
    return GenerateTranscriptResponse(
        segments=len(segments),
        message="Transcricao atualizada",
    )


@router.get(
    "/{content_id}",
    response_model=TranscriptResponse,
    summary="Get transcript",
)
async def get_transcript(
    content_id: UUID,
    service: TranscriptServiceDep,
    user: ContentManager,
) -> TranscriptResponse:
    try:
        segments = await service.get(content_id)
    except CourseError as e:
        raise handle_transcript_error(e) from e
    return TranscriptResponse(
        content_id=content_id,
        segments=[TranscriptSegment.model_validate(s) for s in segments],
    )
