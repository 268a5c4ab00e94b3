"""Accounts, credentials and refresh-token sessions."""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from src.auth.models import User, UserSession, normalize_email
from src.auth.schemas import RegisterRequest, UserResponse
from src.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    token_claims,
    verify_password,
)
from src.config.settings import get_settings


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class AuthError(Exception):
    """Base authentication error."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    def __init__(self, message: str = "Email ou senha invalidos"):
        super().__init__(message, "invalid_credentials")


class UserExistsError(AuthError):
    def __init__(self, message: str = "Email ja cadastrado"):
        super().__init__(message, "user_exists")


class UserNotFoundError(AuthError):
    def __init__(self, message: str = "Usuario nao encontrado"):
        super().__init__(message, "user_not_found")


class UserInactiveError(AuthError):
    def __init__(self, message: str = "Conta inativa"):
        super().__init__(message, "user_inactive")


class InvalidTokenError(AuthError):
    """Refresh token malformed, expired, revoked or already rotated."""

    def __init__(self, message: str = "Token invalido ou expirado"):
        super().__init__(message, "invalid_token")


class AuthService:
    """Registration, login and session rotation on Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        ks = self.keyspace

        self._claim_email = self.session.prepare(
            f"INSERT INTO {ks}.users_by_email (email, user_id) VALUES (?, ?) IF NOT EXISTS"
        )
        self._release_email = self.session.prepare(
            f"DELETE FROM {ks}.users_by_email WHERE email = ? IF user_id = ?"
        )
        self._lookup_email = self.session.prepare(
            f"SELECT user_id FROM {ks}.users_by_email WHERE email = ?"
        )
        self._select_user = self.session.prepare(f"SELECT * FROM {ks}.users WHERE id = ?")
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {ks}.users
            (id, email, name, password_hash, role, is_active, avatar_url,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_profile = self.session.prepare(
            f"UPDATE {ks}.users SET name = ?, avatar_url = ?, updated_at = ? WHERE id = ?"
        )
        self._update_hash = self.session.prepare(
            f"UPDATE {ks}.users SET password_hash = ?, updated_at = ? WHERE id = ?"
        )

        self._insert_session = self.session.prepare(f"""
            INSERT INTO {ks}.user_sessions
            (user_id, jti, issued_at, expires_at, user_agent, ip_address)
            VALUES (?, ?, ?, ?, ?, ?)
            USING TTL ?
        """)
        # Conditional so only one of two concurrent rotations wins
        self._consume_session = self.session.prepare(
            f"DELETE FROM {ks}.user_sessions WHERE user_id = ? AND jti = ? IF EXISTS"
        )
        self._delete_session = self.session.prepare(
            f"DELETE FROM {ks}.user_sessions WHERE user_id = ? AND jti = ?"
        )
        self._select_sessions = self.session.prepare(
            f"SELECT * FROM {ks}.user_sessions WHERE user_id = ?"
        )
        self._delete_all_sessions = self.session.prepare(
            f"DELETE FROM {ks}.user_sessions WHERE user_id = ?"
        )

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        row = (await self.session.aexecute(self._select_user, [user_id])).one()
        return User.from_row(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        row = (
            await self.session.aexecute(self._lookup_email, [normalize_email(email)])
        ).one()
        if row is None:
            return None
        return await self.get_user_by_id(row.user_id)

    async def register_user(self, data: RegisterRequest) -> User:
        """Claim the email, then write the account.

        Raises:
            UserExistsError: The email is already claimed.
        """
        user = User(
            email=data.email,
            name=data.name,
            password_hash=hash_password(data.password),
            role=data.role.value,
        )

        claim = await self.session.aexecute(self._claim_email, [user.email, user.id])
        if not claim.was_applied:
            raise UserExistsError

        try:
            await self.session.aexecute(self._insert_user, user.insert_params())
        except Exception:
            await self.session.aexecute(self._release_email, [user.email, user.id])
            raise

        logger.info("user_registered", user_id=str(user.id), role=user.role)
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        """Check credentials, upgrading the stored hash when its parameters are old.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            UserInactiveError: Correct password on a disabled account.
        """
        user = await self.get_user_by_email(email)
        if user is None:
            raise InvalidCredentialsError

        ok, upgraded_hash = verify_password(password, user.password_hash)
        if not ok:
            raise InvalidCredentialsError
        if not user.is_active:
            raise UserInactiveError

        if upgraded_hash:
            user.password_hash = upgraded_hash
            await self.session.aexecute(
                self._update_hash, [upgraded_hash, datetime.now(UTC), user.id]
            )
            logger.info("password_rehashed", user_id=str(user.id))

        return user

    async def update_user_profile(
        self,
        user_id: UUID,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError

        if name is not None:
            user.name = name
        if avatar_url is not None:
            user.avatar_url = avatar_url
        user.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_profile, [user.name, user.avatar_url, user.updated_at, user.id]
        )
        return user

    async def create_tokens(
        self,
        user: User,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[str, str]:
        """Issue an access token and a refresh token backed by a session row.

        Returns:
            (access_token, refresh_token)
        """
        claims = token_claims(user)
        access_token = create_access_token(claims)
        refresh_token, jti = create_refresh_token(claims)

        now = datetime.now(UTC)
        lifetime = timedelta(days=get_settings().auth_refresh_token_expire_days)
        session = UserSession(
            user_id=user.id,
            jti=UUID(jti),
            issued_at=now,
            expires_at=now + lifetime,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        await self.session.aexecute(
            self._insert_session,
            [
                session.user_id,
                session.jti,
                session.issued_at,
                session.expires_at,
                session.user_agent,
                session.ip_address,
                session.ttl_seconds,
            ],
        )
        return access_token, refresh_token

    async def refresh_tokens(
        self,
        refresh_token: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[str, str]:
        """Consume a refresh token and issue a fresh pair.

        Raises:
            InvalidTokenError: Bad signature, expired, or session already gone.
            UserInactiveError: The account was disabled after login.
        """
        user_id, jti = self._session_key(refresh_token)

        consumed = await self.session.aexecute(self._consume_session, [user_id, jti])
        if not consumed.was_applied:
            logger.warning("refresh_token_reused", user_id=str(user_id))
            raise InvalidTokenError

        user = await self.get_user_by_id(user_id)
        if user is None:
            raise InvalidTokenError
        if not user.is_active:
            raise UserInactiveError

        return await self.create_tokens(user, user_agent, ip_address)

    async def revoke_token(self, refresh_token: str) -> None:
        user_id, jti = self._session_key(refresh_token)
        await self.session.aexecute(self._delete_session, [user_id, jti])

    async def list_sessions(self, user_id: UUID) -> list[UserSession]:
        rows = await self.session.aexecute(self._select_sessions, [user_id])
        return [UserSession.from_row(row) for row in rows]

    async def revoke_all_user_tokens(self, user_id: UUID) -> int:
        """Drop every session of the user. Returns how many were open."""
        open_sessions = len(await self.list_sessions(user_id))
        await self.session.aexecute(self._delete_all_sessions, [user_id])
        logger.info("user_sessions_revoked", user_id=str(user_id), count=open_sessions)
        return open_sessions

    @staticmethod
    def _session_key(refresh_token: str) -> tuple[UUID, UUID]:
        try:
            payload: dict[str, Any] = decode_refresh_token(refresh_token)
            return UUID(payload["sub"]), UUID(payload["jti"])
        except Exception as e:
            raise InvalidTokenError from e

    def to_response(self, user: User) -> UserResponse:
        return UserResponse.from_user(user)
