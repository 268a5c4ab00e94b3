"""Pydantic schemas for transcripts."""

from uuid import UUID

from pydantic import BaseModel, Field


class TranscriptSegment(BaseModel):
    """A timed piece of transcript text (seconds)."""

    start: float = Field(..., ge=0, description="Segment start in seconds")
    end: float = Field(..., ge=0, description="Segment end in seconds")
    text: str = Field(..., description="Spoken text")


class GenerateTranscriptRequest(BaseModel):
    """Transcribe a lesson video and store the result on the content item."""

    video_url: str = Field(..., min_length=1, max_length=2000, description="Video URL")
    content_id: UUID = Field(..., description="Content item to attach the transcript to")


class GenerateTranscriptResponse(BaseModel):
    """Result of a transcript generation."""

    success: bool = True
    segments: int = Field(description="Number of stored segments")
    mock: bool = False
    message: str | None = None


class UpdateTranscriptRequest(BaseModel):
    """Store a transcript produced elsewhere."""

    content_id: UUID
    transcript: list[TranscriptSegment]


class TranscriptResponse(BaseModel):
    """Stored transcript of a content item."""

    content_id: UUID
    segments: list[TranscriptSegment] = Field(default_factory=list)
