"""Shared helpers."""

from src.utils.magic_bytes import detect_content_type, lesson_kind, validate_content_type


__all__ = ["detect_content_type", "lesson_kind", "validate_content_type"]
