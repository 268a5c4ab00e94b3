"""FastAPI dependencies for transcripts."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.courses.service import CourseError
from src.transcripts.service import TranscriptError, TranscriptService


async def get_transcript_service(request: Request) -> TranscriptService:
    """Get transcript service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "transcript_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de transcricao nao disponivel",
        )
    return app_state.transcript_service


TranscriptServiceDep = Annotated[TranscriptService, Depends(get_transcript_service)]


def handle_transcript_error(error: TranscriptError | CourseError) -> HTTPException:
    """Convert transcript and content errors to HTTP exceptions."""
    status_map = {
        "content_not_found": status.HTTP_404_NOT_FOUND,
        "transcripts_not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
        "provider_error": status.HTTP_502_BAD_GATEWAY,
        "transcription_timeout": status.HTTP_504_GATEWAY_TIMEOUT,
        "empty_transcript": status.HTTP_502_BAD_GATEWAY,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )
