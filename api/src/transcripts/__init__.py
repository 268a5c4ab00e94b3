"""Lesson video transcripts (Whisper or AssemblyAI)."""

from .router import router


__all__ = ["router"]
