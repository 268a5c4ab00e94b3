"""Request and response bodies for /v1/auth."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.auth.permissions import UserRole


if TYPE_CHECKING:
    from src.auth.models import User, UserSession


class RegisterRequest(BaseModel):
    """Self-registration. Admin accounts are provisioned out of band."""

    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.STUDENT

    @field_validator("name")
    @classmethod
    def strip_name(cls, name: str) -> str:
        return name.strip()

    @field_validator("role")
    @classmethod
    def reject_admin(cls, role: UserRole) -> UserRole:
        if role is UserRole.ADMIN:
            raise ValueError("Cadastro de administradores nao permitido")
        return role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UpdateProfileRequest(BaseModel):
    """Name and avatar shown next to chat messages."""

    name: str | None = Field(None, min_length=2, max_length=100)
    avatar_url: str | None = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def strip_name(cls, name: str | None) -> str | None:
        return name.strip() if name else name


class UserResponse(BaseModel):
    """Public profile. Also the shape of the authenticated principal."""

    id: UUID
    email: str
    name: str | None = None
    role: str
    is_active: bool
    avatar_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_user(cls, user: "User") -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            avatar_url=user.avatar_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class SessionResponse(BaseModel):
    """An open refresh-token session (one per logged-in device)."""

    id: UUID
    issued_at: datetime
    expires_at: datetime
    user_agent: str | None = None
    ip_address: str | None = None

    @classmethod
    def from_session(cls, session: "UserSession") -> "SessionResponse":
        return cls(
            id=session.jti,
            issued_at=session.issued_at,
            expires_at=session.expires_at,
            user_agent=session.user_agent,
            ip_address=session.ip_address,
        )
