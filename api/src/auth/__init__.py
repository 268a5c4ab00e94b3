"""Authentication and role-based access control."""

from src.auth.router import router


__all__ = ["router"]
