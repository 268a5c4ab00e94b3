"""Tests for password hashing and JWT helpers."""

from datetime import timedelta

import pytest
from jose import JWTError

from src.auth.dependencies import user_from_token
from src.auth.models import User
from src.auth.permissions import UserRole
from src.auth.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    token_claims,
    verify_password,
)


@pytest.fixture
def tutor() -> User:
    return User(
        email="Ana@Example.com",
        name="Ana",
        role=UserRole.TUTOR.value,
        avatar_url="https://cdn.example.com/ana.png",
    )


@pytest.fixture
def claims(tutor) -> dict:
    return token_claims(tutor)


class TestPasswords:
    """Tests for Argon2 password hashing."""

    def test_argon2id_with_salt(self) -> None:
        """Hashes use argon2id with a fresh salt each time."""
        first = hash_password("SecureP@ssword123")
        second = hash_password("SecureP@ssword123")

        assert first.startswith("$argon2id$")
        assert first != second

    def test_fresh_hash_needs_no_upgrade(self) -> None:
        """A hash with current parameters is not rehashed."""
        assert verify_password("SecureP@ssword123", hash_password("SecureP@ssword123")) == (
            True,
            None,
        )

    @pytest.mark.parametrize("attempt", ["WrongP@ssword456", "", "securep@ssword123"])
    def test_mismatch(self, attempt: str) -> None:
        """Wrong passwords do not verify."""
        assert verify_password(attempt, hash_password("SecureP@ssword123")) == (False, None)


class TestTokens:
    """Tests for access and refresh JWTs."""

    def test_access_token_payload(self, claims) -> None:
        """Access tokens carry identity claims but no jti."""
        payload = decode_access_token(create_access_token(claims))

        assert payload["type"] == "access"
        assert payload["sub"] == claims["sub"]
        assert payload["role"] == "tutor"
        assert {"exp", "iat"} <= payload.keys()
        assert "jti" not in payload

    def test_refresh_token_carries_its_jti(self, claims) -> None:
        """The returned jti is the one inside the token."""
        token, jti = create_refresh_token(claims)
        payload = decode_refresh_token(token)

        assert payload["type"] == "refresh"
        assert payload["jti"] == jti

    def test_every_refresh_token_has_a_new_jti(self, claims) -> None:
        """Two refresh tokens for the same user differ."""
        (first, first_jti), (second, second_jti) = (
            create_refresh_token(claims),
            create_refresh_token(claims),
        )
        assert first != second
        assert first_jti != second_jti

    def test_types_are_not_interchangeable(self, claims) -> None:
        """Each decoder refuses the other token type."""
        refresh_token, _ = create_refresh_token(claims)

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(refresh_token)
        with pytest.raises(JWTError, match="expected 'refresh'"):
            decode_refresh_token(create_access_token(claims))

    def test_expired(self, claims) -> None:
        """Expired tokens are refused."""
        expired_access = create_access_token(claims, expires_delta=timedelta(seconds=-1))
        expired_refresh, _ = create_refresh_token(claims, expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_access_token(expired_access)
        with pytest.raises(JWTError):
            decode_refresh_token(expired_refresh)

    @pytest.mark.parametrize("decode", [decode_access_token, decode_refresh_token])
    def test_garbage(self, decode) -> None:
        """Malformed tokens are refused."""
        with pytest.raises(JWTError):
            decode("invalid.token.here")


class TestTokenClaims:
    """Tests for the claims a user puts into its tokens."""

    def test_claims_carry_chat_identity(self, tutor, claims) -> None:
        """Claims hold what the chat shows next to a message."""
        assert claims == {
            "sub": str(tutor.id),
            "email": "ana@example.com",
            "role": "tutor",
            "name": "Ana",
            "avatar_url": "https://cdn.example.com/ana.png",
        }

    def test_user_from_access_token(self) -> None:
        """An access token is enough to rebuild the principal."""
        user = User(email="bia@example.com", name="Bia")

        current = user_from_token(create_access_token(token_claims(user)))

        assert current.id == user.id
        assert current.name == "Bia"
        assert current.role == UserRole.STUDENT.value
        assert current.is_active is True

    def test_refresh_token_is_not_a_principal(self, claims) -> None:
        """Refresh tokens cannot authenticate a request."""
        token, _ = create_refresh_token(claims)

        with pytest.raises(JWTError):
            user_from_token(token)
