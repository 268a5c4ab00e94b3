"""/v1/auth: registration, login, session rotation and profile."""

import contextlib
from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.auth.dependencies import ClientInfo, CurrentUser, RefreshTokenCookie
from src.auth.schemas import (
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    TokenResponse,
    UpdateProfileRequest,
    UserResponse,
)
from src.auth.service import (
    AuthError,
    AuthService,
    InvalidTokenError,
    UserNotFoundError,
)
from src.config.settings import get_settings


router = APIRouter(prefix="/v1/auth", tags=["auth"])

# The refresh cookie is only sent back to these routes
COOKIE_PATH = "/v1/auth"

AUTH_ERROR_STATUS = {
    "invalid_credentials": status.HTTP_401_UNAUTHORIZED,
    "invalid_token": status.HTTP_401_UNAUTHORIZED,
    "user_inactive": status.HTTP_403_FORBIDDEN,
    "user_not_found": status.HTTP_404_NOT_FOUND,
    "user_exists": status.HTTP_409_CONFLICT,
}

_auth_service_getter: Callable[[], AuthService] | None = None


def set_auth_service_getter(getter: Callable[[], AuthService]) -> None:
    """Wired by main.py once the Cassandra session exists."""
    global _auth_service_getter  # noqa: PLW0603 - Required for DI pattern
    _auth_service_getter = getter


def get_auth_service() -> AuthService:
    if _auth_service_getter is None:
        raise RuntimeError("AuthService not configured")
    return _auth_service_getter()


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


def handle_auth_error(error: AuthError) -> HTTPException:
    return HTTPException(
        status_code=AUTH_ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )


def _issue(response: Response, access_token: str, refresh_token: str) -> TokenResponse:
    settings = get_settings()
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=refresh_token,
        max_age=settings.auth_refresh_token_expire_days * 86400,
        path=COOKIE_PATH,
        httponly=settings.auth_cookie_httponly,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
    )
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.auth_access_token_expire_minutes * 60,
    )


def _forget(response: Response) -> None:
    response.delete_cookie(key=get_settings().auth_cookie_name, path=COOKIE_PATH)


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Email already registered"}},
)
async def register(data: RegisterRequest, service: AuthServiceDep) -> UserResponse:
    try:
        user = await service.register_user(data)
    except AuthError as e:
        raise handle_auth_error(e) from e
    return service.to_response(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"description": "Invalid credentials"},
        403: {"description": "Account inactive"},
    },
)
async def login(
    data: LoginRequest,
    response: Response,
    service: AuthServiceDep,
    client_info: ClientInfo,
) -> TokenResponse:
    """Access token in the body, refresh token in an httpOnly cookie."""
    try:
        user = await service.authenticate_user(data.email, data.password)
        tokens = await service.create_tokens(user, *client_info)
    except AuthError as e:
        raise handle_auth_error(e) from e
    return _issue(response, *tokens)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    response: Response,
    service: AuthServiceDep,
    client_info: ClientInfo,
    refresh_token: RefreshTokenCookie,
) -> TokenResponse:
    """Rotate the refresh cookie. A replayed cookie ends the session."""
    if not refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token nao fornecido",
        )
    try:
        tokens = await service.refresh_tokens(refresh_token, *client_info)
    except AuthError as e:
        _forget(response)
        raise handle_auth_error(e) from e
    return _issue(response, *tokens)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    response: Response,
    service: AuthServiceDep,
    refresh_token: RefreshTokenCookie,
) -> None:
    if refresh_token:
        with contextlib.suppress(InvalidTokenError):
            await service.revoke_token(refresh_token)
    _forget(response)


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser, service: AuthServiceDep) -> UserResponse:
    stored = await service.get_user_by_id(user.id)
    if stored is None:
        raise handle_auth_error(UserNotFoundError())
    return service.to_response(stored)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UpdateProfileRequest,
    user: CurrentUser,
    service: AuthServiceDep,
) -> UserResponse:
    """Chat posts pick up the new name or avatar after the next token refresh."""
    try:
        updated = await service.update_user_profile(
            user.id, name=data.name, avatar_url=data.avatar_url
        )
    except AuthError as e:
        raise handle_auth_error(e) from e
    return service.to_response(updated)


@router.get("/me/sessions", response_model=list[SessionResponse])
async def list_my_sessions(
    user: CurrentUser, service: AuthServiceDep
) -> list[SessionResponse]:
    sessions = await service.list_sessions(user.id)
    sessions.sort(key=lambda s: s.issued_at, reverse=True)
    return [SessionResponse.from_session(s) for s in sessions]


@router.post("/me/logout-all", status_code=status.HTTP_204_NO_CONTENT)
async def logout_all_devices(
    response: Response,
    user: CurrentUser,
    service: AuthServiceDep,
) -> None:
    await service.revoke_all_user_tokens(user.id)
    _forget(response)
