"""Password hashing and JWT helpers.

Passwords are hashed with Argon2id. Access and refresh tokens are
signed JWTs distinguished by their `type` claim.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError
from jose import JWTError, jwt

from src.config.settings import get_settings


# OWASP recommended Argon2id parameters
_password_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=19456,
    parallelism=1,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id.

    Example:
        >>> hash_password("my-secure-password").startswith("$argon2id$")
        True
    """
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> tuple[bool, str | None]:
    """Verify a password against its hash.

    Returns:
        Tuple of (is_valid, new_hash). new_hash is set when the stored
        hash was produced with outdated parameters.
    """
    try:
        _password_hasher.verify(password_hash, password)
    except VerifyMismatchError:
        return False, None

    if _password_hasher.check_needs_rehash(password_hash):
        return True, hash_password(password)
    return True, None


def token_claims(user: Any) -> dict[str, Any]:
    """Claims shared by access and refresh tokens.

    Name and avatar travel in the token so chat posts can be attributed
    without a user lookup.
    """
    return {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "name": user.name,
        "avatar_url": user.avatar_url,
    }


def _encode(data: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    now = datetime.now(UTC)
    to_encode = {
        **data,
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type,
    }
    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a short-lived JWT access token."""
    settings = get_settings()
    return _encode(
        data,
        "access",
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes),
    )


def create_refresh_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a refresh token with a unique jti for revocation tracking.

    Returns:
        Tuple of (token_string, jti)
    """
    settings = get_settings()
    jti = str(uuid4())
    token = _encode(
        {**data, "jti": jti},
        "refresh",
        expires_delta or timedelta(days=settings.auth_refresh_token_expire_days),
    )
    return token, jti


def _decode(token: str, expected_type: str) -> dict[str, Any]:
    settings = get_settings()
    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )
    if payload.get("type") != expected_type:
        msg = f"Invalid token type: expected '{expected_type}'"
        raise JWTError(msg)
    return payload


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    return _decode(token, "access")


def decode_refresh_token(token: str) -> dict[str, Any]:
    """Decode and validate a refresh token (must carry a jti).

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    payload = _decode(token, "refresh")
    if "jti" not in payload:
        msg = "Refresh token missing jti claim"
        raise JWTError(msg)
    return payload
