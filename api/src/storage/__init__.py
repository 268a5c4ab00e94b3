"""Uploads of course thumbnails and lesson files to Firebase Storage."""

from src.storage.router import router


__all__ = ["router"]
