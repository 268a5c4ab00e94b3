"""Speech-to-text transcripts for lesson videos.

This service handles:
- Transcribing a video URL with OpenAI Whisper or AssemblyAI
- Turning provider results into {start, end, text} segments (seconds)
- Storing transcripts on content items

SECURITY: Provider API keys stay server-side.
"""

import asyncio
from typing import TYPE_CHECKING, Any
from uuid import UUID

import httpx
import structlog

from src.config.settings import Settings
from src.courses.service import ContentNotFoundError


if TYPE_CHECKING:
    from src.courses.service import ContentService


logger = structlog.get_logger(__name__)

# Used when a provider reports no audio duration
DEFAULT_AUDIO_DURATION_SECONDS = 60.0

MOCK_SENTENCES = (
    "Welcome to this course video.",
    "In this lesson, we will learn about important concepts.",
    "Let's start by understanding the fundamentals.",
    "This is a critical topic that you need to master.",
    "There are several key points to remember.",
    "First, always practice what you learn.",
    "Second, review your notes regularly.",
    "Third, don't hesitate to ask questions.",
    "Let's now look at some practical examples.",
    "This example demonstrates how the concept works in real life.",
    "Notice how we apply the principles we discussed earlier.",
    "You can also try this approach in your own projects.",
    "Let's summarize what we've learned today.",
    "We covered the fundamental concepts and practical applications.",
    "In the next video, we'll explore more advanced topics.",
    "Thank you for watching, and see you in the next lesson.",
)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class TranscriptError(Exception):
    """Base transcript error."""

    def __init__(self, message: str, code: str = "transcript_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class TranscriptNotConfiguredError(TranscriptError):
    """Selected provider has no API key."""

    def __init__(self, message: str = "Servico de transcricao nao configurado"):
        super().__init__(message, "transcripts_not_configured")


class TranscriptProviderError(TranscriptError):
    """Provider request failed or returned an error status."""

    def __init__(self, message: str):
        super().__init__(message, "provider_error")


class TranscriptTimeoutError(TranscriptError):
    """Transcription did not finish within the polling budget."""

    def __init__(self, message: str = "Tempo esgotado aguardando a transcricao"):
        super().__init__(message, "transcription_timeout")


class EmptyTranscriptError(TranscriptError):
    """Provider result has no usable content."""

    def __init__(self, message: str = "Nenhum conteudo de transcricao utilizavel"):
        super().__init__(message, "empty_transcript")


# ==============================================================================
# Segment Builders
# ==============================================================================


def mock_transcript() -> list[dict[str, Any]]:
    """Fixed development transcript: one sentence every 10 seconds."""
    return [
        {"start": float(i * 10), "end": (i + 1) * 10 - 0.5, "text": text}
        for i, text in enumerate(MOCK_SENTENCES)
    ]


def segments_from_words(
    words: list[dict[str, Any]],
    max_gap: float = 1.5,
) -> list[dict[str, Any]]:
    """Group timed words (milliseconds) into segments (seconds).

    A word ends where the next one starts. Words that start less than
    `max_gap` seconds after the current segment ends join that segment.
    """
    segments: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None

    for index, word in enumerate(words):
        end_ms = words[index + 1]["start"] if index + 1 < len(words) else word["end"]
        start = word["start"] / 1000
        end = end_ms / 1000

        if current is None:
            current = {"start": start, "end": end, "text": word["text"]}
        elif start - current["end"] < max_gap:
            current["end"] = end
            current["text"] += " " + word["text"]
        else:
            segments.append(current)
            current = {"start": start, "end": end, "text": word["text"]}

    if current is not None:
        segments.append(current)
    return segments


def segments_from_utterances(utterances: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Utterances (milliseconds) to segments (seconds)."""
    return [
        {"start": u["start"] / 1000, "end": u["end"] / 1000, "text": u["text"]}
        for u in utterances
    ]


def segments_from_text(text: str, audio_duration: float | None) -> list[dict[str, Any]]:
    """Spread non-empty paragraphs evenly over the audio duration (seconds)."""
    paragraphs = [p.strip() for p in text.split("\n") if p.strip()]
    if not paragraphs:
        return []

    total = audio_duration or DEFAULT_AUDIO_DURATION_SECONDS
    step = total / len(paragraphs)
    return [
        {"start": i * step, "end": (i + 1) * step, "text": paragraph}
        for i, paragraph in enumerate(paragraphs)
    ]


def assemblyai_segments(result: dict[str, Any], max_gap: float = 1.5) -> list[dict[str, Any]]:
    """Segments from a completed AssemblyAI transcript.

    Words win over utterances, utterances over plain text.

    Raises:
        EmptyTranscriptError: If the result has none of them
    """
    if result.get("words"):
        return segments_from_words(result["words"], max_gap)
    if result.get("utterances"):
        return segments_from_utterances(result["utterances"])
    if result.get("text"):
        segments = segments_from_text(result["text"], result.get("audio_duration"))
        if segments:
            return segments
    raise EmptyTranscriptError


def whisper_segments(result: dict[str, Any]) -> list[dict[str, Any]]:
    """Segments from a Whisper verbose_json response."""
    return [
        {"start": s["start"], "end": s["end"], "text": s["text"].strip()}
        for s in result.get("segments") or []
    ]


# ==============================================================================
# Transcript Service
# ==============================================================================


class TranscriptService:
    """Transcribe lesson videos and store the segments on content items."""

    def __init__(self, settings: Settings, content_service: "ContentService") -> None:
        self.settings = settings
        self.content_service = content_service

    @property
    def is_configured(self) -> bool:
        """Check if the selected provider has credentials."""
        return self.settings.transcripts_configured

    @property
    def provider(self) -> str:
        return self.settings.transcript_provider

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.transcript_http_timeout_seconds)

    async def transcribe(self, video_url: str) -> list[dict[str, Any]]:
        """Transcribe a video with the configured provider.

        Raises:
            TranscriptNotConfiguredError: If the provider has no API key
            TranscriptProviderError: If a provider call fails
            TranscriptTimeoutError: If AssemblyAI does not finish in time
            EmptyTranscriptError: If the result has no usable content
        """
        if not self.is_configured:
            raise TranscriptNotConfiguredError

        try:
            if self.provider == "whisper":
                return await self._transcribe_whisper(video_url)
            return await self._transcribe_assemblyai(video_url)
        except httpx.TimeoutException as e:
            logger.error("transcript_provider_timeout", provider=self.provider, error=str(e))
            raise TranscriptProviderError("Tempo esgotado no provedor de transcricao") from e
        except httpx.RequestError as e:
            logger.error("transcript_provider_request_error", provider=self.provider, error=str(e))
            raise TranscriptProviderError(f"Erro ao contatar o provedor: {e}") from e

    async def _transcribe_whisper(self, video_url: str) -> list[dict[str, Any]]:
        async with self._client() as client:
            download = await client.get(video_url, follow_redirects=True)
            if download.status_code != httpx.codes.OK:
                logger.error(
                    "video_download_failed",
                    status_code=download.status_code,
                    video_url=video_url,
                )
                raise TranscriptProviderError(
                    f"Falha ao baixar o video: {download.status_code}"
                )

            response = await client.post(
                self.settings.openai_transcription_url,
                headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
                files={"file": ("video.mp4", download.content, "video/mp4")},
                data={
                    "model": "whisper-1",
                    "response_format": "verbose_json",
                    "timestamp_granularities[]": "segment",
                },
            )
            if response.status_code != httpx.codes.OK:
                logger.error(
                    "whisper_request_failed",
                    status_code=response.status_code,
                    response_text=response.text[:500],
                )
                raise TranscriptProviderError(
                    f"Erro na API Whisper: {response.status_code}"
                )

            return whisper_segments(response.json())

    async def _transcribe_assemblyai(self, video_url: str) -> list[dict[str, Any]]:
        base_url = self.settings.assemblyai_base_url.rstrip("/")
        headers = {"Authorization": self.settings.assemblyai_api_key or ""}

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/transcript",
                headers=headers,
                json={
                    "audio_url": video_url,
                    "speaker_labels": True,
                    "punctuate": True,
                    "format_text": True,
                },
            )
            if response.status_code != httpx.codes.OK:
                logger.error(
                    "assemblyai_submit_failed",
                    status_code=response.status_code,
                    response_text=response.text[:500],
                )
                raise TranscriptProviderError(
                    f"Falha ao iniciar a transcricao: {response.status_code}"
                )

            transcript_id = response.json().get("id")
            if not transcript_id:
                raise TranscriptProviderError("AssemblyAI nao retornou o ID da transcricao")

            logger.info("assemblyai_job_started", transcript_id=transcript_id)

            for attempt in range(1, self.settings.transcript_max_polls + 1):
                await asyncio.sleep(self.settings.transcript_poll_interval_seconds)

                poll = await client.get(f"{base_url}/transcript/{transcript_id}", headers=headers)
                if poll.status_code != httpx.codes.OK:
                    raise TranscriptProviderError(
                        f"Falha ao consultar a transcricao: {poll.status_code}"
                    )

                result = poll.json()
                status = result.get("status")
                if status == "completed":
                    logger.info(
                        "assemblyai_job_completed",
                        transcript_id=transcript_id,
                        polls=attempt,
                    )
                    return assemblyai_segments(result, self.settings.transcript_word_gap_seconds)
                if status == "error":
                    logger.warning(
                        "assemblyai_job_failed",
                        transcript_id=transcript_id,
                        error=result.get("error"),
                    )
                    raise TranscriptProviderError(f"Erro na transcricao: {result.get('error')}")

        logger.warning("assemblyai_job_timeout", transcript_id=transcript_id)
        raise TranscriptTimeoutError

    async def _ensure_content(self, content_id: UUID) -> None:
        if not await self.content_service.find_content(content_id):
            raise ContentNotFoundError

    async def generate(self, content_id: UUID, video_url: str) -> list[dict[str, Any]]:
        """Transcribe a video and store the segments on the content item.

        Raises:
            ContentNotFoundError: If the content item doesn't exist
            TranscriptError: If transcription fails (nothing is stored)
        """
        await self._ensure_content(content_id)
        segments = await self.transcribe(video_url)
        await self.content_service.set_transcript(content_id, segments)

        logger.info(
            "transcript_generated",
            content_id=str(content_id),
            provider=self.provider,
            segments=len(segments),
        )
        return segments

    async def generate_mock(self, content_id: UUID) -> list[dict[str, Any]]:
        """Store the fixed development transcript."""
        segments = mock_transcript()
        await self.content_service.set_transcript(content_id, segments)
        return segments

    async def store(self, content_id: UUID, segments: list[dict[str, Any]]) -> None:
        """Store a transcript produced elsewhere."""
        await self.content_service.set_transcript(content_id, segments)

    async def get(self, content_id: UUID) -> list[dict[str, Any]]:
        """Stored transcript of a content item (empty when none)."""
        content = await self.content_service.find_content(content_id)
        if not content:
            raise ContentNotFoundError
        return content.transcript or []
