"""Principal resolution and capability guards for routes.

The principal is rebuilt from access token claims alone; no user lookup
happens per request.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from src.auth.permissions import Capability, check_capability
from src.auth.schemas import UserResponse
from src.auth.security import decode_access_token
from src.config.settings import get_settings
from src.core.context import set_user_id


bearer_scheme = HTTPBearer(auto_error=False)

Credentials = Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_from_token(token: str) -> UserResponse:
    """Raises JWTError for bad, expired or non-access tokens."""
    claims = decode_access_token(token)
    return UserResponse(
        id=claims["sub"],
        email=claims["email"],
        role=claims["role"],
        name=claims.get("name") or "",
        avatar_url=claims.get("avatar_url"),
        # Inactive accounts cannot obtain tokens
        is_active=True,
        created_at=claims.get("iat"),
    )


async def get_current_user(credentials: Credentials) -> UserResponse:
    if credentials is None:
        raise _unauthorized("Token de acesso nao fornecido")
    try:
        user = user_from_token(credentials.credentials)
    except JWTError as e:
        raise _unauthorized("Token invalido ou expirado") from e
    set_user_id(user.id)
    return user


async def get_current_user_optional(credentials: Credentials) -> UserResponse | None:
    """Anonymous callers (or callers with a bad token) get None."""
    if credentials is None:
        return None
    try:
        user = user_from_token(credentials.credentials)
    except JWTError:
        return None
    set_user_id(user.id)
    return user


def require_capability(capability: Capability):
    """Dependency factory: 403 with the permission check's reason."""

    async def guard(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        decision = check_capability(user.role, capability)
        if not decision.allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=decision.reason or "Permissao insuficiente",
            )
        return user

    return guard


def get_refresh_token_from_cookie(request: Request) -> str | None:
    return request.cookies.get(get_settings().auth_cookie_name)


async def get_client_info(request: Request) -> tuple[str | None, str | None]:
    """(user_agent, ip) for the session row; proxies' X-Forwarded-For wins."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    ip_address = (
        forwarded
        or request.headers.get("x-real-ip")
        or (request.client.host if request.client else None)
    )
    return request.headers.get("user-agent"), ip_address


CurrentUser = Annotated[UserResponse, Depends(get_current_user)]
OptionalUser = Annotated[UserResponse | None, Depends(get_current_user_optional)]

TutorUser = Annotated[UserResponse, Depends(require_capability(Capability.MANAGE_COURSES))]
ContentManager = Annotated[
    UserResponse, Depends(require_capability(Capability.MANAGE_CONTENT))
]
StudentUser = Annotated[UserResponse, Depends(require_capability(Capability.ENROLL))]
ChatUser = Annotated[UserResponse, Depends(require_capability(Capability.CHAT))]

ClientInfo = Annotated[tuple[str | None, str | None], Depends(get_client_info)]
RefreshTokenCookie = Annotated[str | None, Depends(get_refresh_token_from_cookie)]
