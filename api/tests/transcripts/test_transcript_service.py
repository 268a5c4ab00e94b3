"""Tests for transcript segment building and TranscriptService."""

from unittest.mock import AsyncMock, Mock, patch
from uuid import uuid4

import httpx
import pytest

from src.config.settings import Settings
from src.courses.models import ContentItem
from src.courses.service import ContentNotFoundError
from src.transcripts.service import (
    DEFAULT_AUDIO_DURATION_SECONDS,
    EmptyTranscriptError,
    TranscriptNotConfiguredError,
    TranscriptProviderError,
    TranscriptService,
    TranscriptTimeoutError,
    assemblyai_segments,
    mock_transcript,
    segments_from_text,
    segments_from_words,
    whisper_segments,
)


class TestMockTranscript:
    """Tests for the development transcript."""

    def test_sixteen_segments_ten_seconds_apart(self) -> None:
        """Segment i spans 10i to 10(i+1) - 0.5."""
        segments = mock_transcript()

        assert len(segments) == 16
        assert segments[0] == {
            "start": 0.0,
            "end": 9.5,
            "text": "Welcome to this course video.",
        }
        assert segments[15]["start"] == 150.0
        assert segments[15]["end"] == 159.5


class TestSegmentsFromWords:
    """Tests for grouping timed words into segments."""

    def test_close_words_join(self) -> None:
        """Words closer than the gap share one segment."""
        words = [
            {"start": 0, "end": 400, "text": "Ola"},
            {"start": 500, "end": 900, "text": "turma"},
            {"start": 5000, "end": 5600, "text": "Hoje"},
            {"start": 5700, "end": 6100, "text": "comecamos"},
        ]

        segments = segments_from_words(words)

        # a word ends where the next one starts, so the gap never exceeds zero
        assert segments == [
            {"start": 0.0, "end": 6.1, "text": "Ola turma Hoje comecamos"},
        ]

    def test_gap_splits_when_next_starts_late(self) -> None:
        """A long pause starts a new segment."""
        segments = segments_from_words(
            [{"start": 0, "end": 400, "text": "Ola"}, {"start": 500, "end": 900, "text": "turma"}],
            max_gap=-1,
        )
        assert [s["text"] for s in segments] == ["Ola", "turma"]

    def test_no_words(self) -> None:
        """No words, no segments."""
        assert segments_from_words([]) == []


class TestSegmentsFromText:
    """Tests for spreading plain text over the audio duration."""

    def test_paragraphs_spread_over_duration(self) -> None:
        """Paragraphs get equal slices of the duration."""
        segments = segments_from_text("Primeiro\n\nSegundo\n  \nTerceiro\nQuarto", 120)

        assert [s["text"] for s in segments] == ["Primeiro", "Segundo", "Terceiro", "Quarto"]
        assert segments[1] == {"start": 30.0, "end": 60.0, "text": "Segundo"}
        assert segments[-1]["end"] == 120.0

    def test_missing_duration_uses_default(self) -> None:
        """Unknown duration falls back to 60 seconds."""
        segments = segments_from_text("Unico paragrafo", None)
        assert segments == [
            {"start": 0.0, "end": DEFAULT_AUDIO_DURATION_SECONDS, "text": "Unico paragrafo"}
        ]

    def test_blank_text(self) -> None:
        """Blank text yields nothing."""
        assert segments_from_text(" \n \n", 30) == []


class TestProviderResults:
    """Tests for mapping provider responses to segments."""

    def test_words_win_over_utterances(self) -> None:
        """Word timings are preferred when present."""
        result = {
            "words": [{"start": 0, "end": 1000, "text": "palavra"}],
            "utterances": [{"start": 0, "end": 1000, "text": "frase"}],
            "text": "texto",
        }
        assert assemblyai_segments(result)[0]["text"] == "palavra"

    def test_utterances_in_seconds(self) -> None:
        """Utterance timestamps are converted from milliseconds."""
        result = {"utterances": [{"start": 1500, "end": 4000, "text": "frase"}]}
        assert assemblyai_segments(result) == [{"start": 1.5, "end": 4.0, "text": "frase"}]

    def test_text_fallback(self) -> None:
        """Plain text is used when no timings exist."""
        result = {"text": "Um\nDois", "audio_duration": 20}
        assert assemblyai_segments(result) == [
            {"start": 0.0, "end": 10.0, "text": "Um"},
            {"start": 10.0, "end": 20.0, "text": "Dois"},
        ]

    def test_nothing_usable(self) -> None:
        """An empty result is an error."""
        with pytest.raises(EmptyTranscriptError):
            assemblyai_segments({"text": "  "})

    def test_whisper_segments_are_stripped(self) -> None:
        """Whisper segment text is trimmed."""
        result = {"segments": [{"start": 0.0, "end": 2.5, "text": " Ola "}]}
        assert whisper_segments(result) == [{"start": 0.0, "end": 2.5, "text": "Ola"}]


# ==============================================================================
# Service
# ==============================================================================


@pytest.fixture
def content_item() -> ContentItem:
    return ContentItem(course_id=uuid4(), title="Aula 1")


@pytest.fixture
def mock_content_service(content_item):
    service = Mock()
    service.find_content = AsyncMock(return_value=content_item)
    service.set_transcript = AsyncMock(return_value=content_item)
    return service


def assemblyai_settings(**overrides) -> Settings:
    values = {
        "transcript_provider": "assemblyai",
        "assemblyai_api_key": "test-key",
        "transcript_poll_interval_seconds": 0,
        "transcript_max_polls": 3,
    }
    values.update(overrides)
    return Settings(**values)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestTranscriptService:
    """Tests for TranscriptService with mocked HTTP and content storage."""

    @pytest.mark.asyncio
    async def test_not_configured(self, mock_content_service, content_item):
        """A provider without an API key refuses to run."""
        service = TranscriptService(
            assemblyai_settings(assemblyai_api_key=None), mock_content_service
        )

        with pytest.raises(TranscriptNotConfiguredError):
            await service.generate(content_item.id, "https://cdn.example.com/aula.mp4")

        mock_content_service.set_transcript.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_content(self, mock_content_service):
        """Transcripts need an existing content item."""
        mock_content_service.find_content.return_value = None
        service = TranscriptService(assemblyai_settings(), mock_content_service)

        with pytest.raises(ContentNotFoundError):
            await service.generate(uuid4(), "https://cdn.example.com/aula.mp4")

    @pytest.mark.asyncio
    async def test_assemblyai_polls_until_completed(self, mock_content_service, content_item):
        """Status is polled until the job completes."""
        polls = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "test-key"
            if request.method == "POST":
                return httpx.Response(200, json={"id": "job-1", "status": "queued"})
            polls.append(request.url.path)
            if len(polls) < 2:
                return httpx.Response(200, json={"id": "job-1", "status": "processing"})
            return httpx.Response(
                200,
                json={
                    "id": "job-1",
                    "status": "completed",
                    "utterances": [{"start": 0, "end": 2000, "text": "Ola"}],
                },
            )

        service = TranscriptService(assemblyai_settings(), mock_content_service)
        with patch.object(service, "_client", return_value=mock_client(handler)):
            segments = await service.generate(content_item.id, "https://cdn.example.com/aula.mp4")

        assert segments == [{"start": 0.0, "end": 2.0, "text": "Ola"}]
        assert polls == ["/v2/transcript/job-1", "/v2/transcript/job-1"]
        mock_content_service.set_transcript.assert_awaited_once_with(content_item.id, segments)

    @pytest.mark.asyncio
    async def test_assemblyai_error_status(self, mock_content_service, content_item):
        """A provider error status fails the job."""
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"id": "job-1"})
            return httpx.Response(200, json={"status": "error", "error": "audio invalido"})

        service = TranscriptService(assemblyai_settings(), mock_content_service)
        with (
            patch.object(service, "_client", return_value=mock_client(handler)),
            pytest.raises(TranscriptProviderError, match="audio invalido"),
        ):
            await service.generate(content_item.id, "https://cdn.example.com/aula.mp4")

        mock_content_service.set_transcript.assert_not_called()

    @pytest.mark.asyncio
    async def test_assemblyai_timeout(self, mock_content_service, content_item):
        """Polling stops after the configured number of attempts."""
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"id": "job-1"})
            return httpx.Response(200, json={"status": "processing"})

        service = TranscriptService(assemblyai_settings(), mock_content_service)
        with (
            patch.object(service, "_client", return_value=mock_client(handler)),
            pytest.raises(TranscriptTimeoutError),
        ):
            await service.generate(content_item.id, "https://cdn.example.com/aula.mp4")

    @pytest.mark.asyncio
    async def test_network_error_is_provider_error(self, mock_content_service, content_item):
        """Transport errors surface as provider errors."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        service = TranscriptService(assemblyai_settings(), mock_content_service)
        with (
            patch.object(service, "_client", return_value=mock_client(handler)),
            pytest.raises(TranscriptProviderError),
        ):
            await service.generate(content_item.id, "https://cdn.example.com/aula.mp4")

    @pytest.mark.asyncio
    async def test_whisper_transcribes_downloaded_video(
        self, mock_content_service, content_item
    ):
        """The video is downloaded and posted to Whisper."""
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, content=b"\x00\x00\x00\x18ftypmp42")
            assert request.headers["Authorization"] == "Bearer sk-test"
            return httpx.Response(
                200, json={"segments": [{"start": 0.0, "end": 3.0, "text": " Bem-vindos "}]}
            )

        settings = Settings(transcript_provider="whisper", openai_api_key="sk-test")
        service = TranscriptService(settings, mock_content_service)
        with patch.object(service, "_client", return_value=mock_client(handler)):
            segments = await service.generate(content_item.id, "https://cdn.example.com/aula.mp4")

        assert segments == [{"start": 0.0, "end": 3.0, "text": "Bem-vindos"}]

    @pytest.mark.asyncio
    async def test_generate_mock_stores_fixed_transcript(
        self, mock_content_service, content_item
    ):
        """The development transcript is stored on the content item."""
        service = TranscriptService(assemblyai_settings(), mock_content_service)

        segments = await service.generate_mock(content_item.id)

        assert len(segments) == 16
        mock_content_service.set_transcript.assert_awaited_once_with(content_item.id, segments)

    @pytest.mark.asyncio
    async def test_get_without_transcript(self, mock_content_service, content_item):
        """A content item without a transcript returns an empty list."""
        service = TranscriptService(assemblyai_settings(), mock_content_service)

        assert await service.get(content_item.id) == []
