"""Cassandra tables and entities for accounts and sessions.

Emails are claimed through ``users_by_email`` with a lightweight
transaction so two registrations for the same address cannot both win.
Refresh tokens live in one partition per user: logging out deletes a
row, logging out everywhere deletes the partition.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from src.auth.permissions import UserRole
from src.utils.timestamps import as_utc


USERS_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    name TEXT,
    password_hash TEXT,
    role TEXT,
    is_active BOOLEAN,
    avatar_url TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USERS_BY_EMAIL_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users_by_email (
    email TEXT PRIMARY KEY,
    user_id UUID
)
"""

# Rows are written with a TTL matching the token lifetime
USER_SESSIONS_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_sessions (
    user_id UUID,
    jti UUID,
    issued_at TIMESTAMP,
    expires_at TIMESTAMP,
    user_agent TEXT,
    ip_address TEXT,
    PRIMARY KEY (user_id, jti)
)
"""

AUTH_TABLES_CQL = [USERS_CQL, USERS_BY_EMAIL_CQL, USER_SESSIONS_CQL]


def normalize_email(email: str) -> str:
    return email.strip().lower()


class User:
    """An account. ``name`` and ``avatar_url`` travel in tokens and chat posts."""

    def __init__(
        self,
        id: UUID | None = None,
        email: str = "",
        name: str = "",
        password_hash: str = "",
        role: str = UserRole.STUDENT.value,
        is_active: bool = True,
        avatar_url: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.email = normalize_email(email)
        self.name = name
        self.password_hash = password_hash
        self.role = role
        self.is_active = is_active
        self.avatar_url = avatar_url
        self.created_at = as_utc(created_at) or datetime.now(UTC)
        self.updated_at = as_utc(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        return cls(
            id=row.id,
            email=row.email,
            name=row.name,
            password_hash=row.password_hash,
            role=row.role,
            is_active=row.is_active,
            avatar_url=row.avatar_url,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def insert_params(self) -> list[Any]:
        return [
            self.id,
            self.email,
            self.name,
            self.password_hash,
            self.role,
            self.is_active,
            self.avatar_url,
            self.created_at,
            self.updated_at,
        ]

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class UserSession:
    """One issued refresh token. A missing row means revoked or expired."""

    def __init__(
        self,
        user_id: UUID,
        jti: UUID,
        expires_at: datetime,
        issued_at: datetime | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ):
        self.user_id = user_id
        self.jti = jti
        self.expires_at = as_utc(expires_at)
        self.issued_at = as_utc(issued_at) or datetime.now(UTC)
        self.user_agent = user_agent
        self.ip_address = ip_address

    @classmethod
    def from_row(cls, row: Any) -> "UserSession":
        return cls(
            user_id=row.user_id,
            jti=row.jti,
            expires_at=row.expires_at,
            issued_at=row.issued_at,
            user_agent=row.user_agent,
            ip_address=row.ip_address,
        )

    @property
    def ttl_seconds(self) -> int:
        return max(1, int((self.expires_at - self.issued_at).total_seconds()))
