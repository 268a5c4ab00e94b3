"""CourseHub API application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from src.auth.router import router as auth_router
from src.auth.service import AuthService
from src.chat.router import router as chat_router
from src.chat.service import ChatService
from src.chat.websocket_router import router as chat_ws_router
from src.config import Settings, get_settings
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.errors import register_exception_handlers
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.router import router as courses_router
from src.courses.service import ContentService, CourseService
from src.health.router import router as health_router
from src.progress.router import enrollments_router
from src.progress.router import router as progress_router
from src.progress.service import ProgressService
from src.storage.router import router as storage_router
from src.storage.service import FirebaseStorageService
from src.transcripts.router import router as transcripts_router
from src.transcripts.service import TranscriptService


settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


class AppState:
    """Services built at startup. ``None`` until Cassandra is reachable."""

    auth_service: AuthService | None = None
    course_service: CourseService | None = None
    content_service: ContentService | None = None
    chat_service: ChatService | None = None


app_state = AppState()


def _require(name: str) -> Any:
    service = getattr(app_state, name)
    if service is None:
        raise RuntimeError(f"{name} not initialized")
    return service


def get_auth_service() -> AuthService:
    return _require("auth_service")


def get_course_service() -> CourseService:
    return _require("course_service")


def get_content_service() -> ContentService:
    return _require("content_service")


def get_chat_service() -> ChatService:
    return _require("chat_service")


def build_services(
    app: FastAPI,
    session: Any,
    settings: Settings,
    storage: FirebaseStorageService,
    redis_client: Any,
) -> None:
    """Create every Cassandra-backed service.

    Services resolved per request from ``app.state`` (progress, chat,
    transcripts) are published there too.
    """
    keyspace = settings.cassandra_keyspace

    app_state.auth_service = AuthService(session=session, keyspace=keyspace)
    app_state.course_service = CourseService(
        session=session, keyspace=keyspace, storage=storage
    )
    app_state.content_service = ContentService(
        session=session, keyspace=keyspace, storage=storage
    )
    app_state.chat_service = ChatService(
        session=session,
        keyspace=keyspace,
        redis=redis_client,
        history_limit=settings.chat_history_limit,
    )

    app.state.chat_service = app_state.chat_service
    app.state.progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        content_service=app_state.content_service,
    )
    app.state.transcript_service = TranscriptService(
        settings=settings,
        content_service=app_state.content_service,
    )

    logger.info(
        "services_initialized",
        storage_enabled=storage.is_configured,
        live_chat=redis_client is not None,
        transcript_provider=settings.transcript_provider,
        transcripts_configured=settings.transcripts_configured,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "starting_application",
        version=settings.app_version,
        environment=settings.environment,
    )

    redis_client = None
    try:
        redis_client = await init_redis()
    except Exception as e:
        logger.warning("redis_init_skipped", error=str(e))

    storage = FirebaseStorageService(settings)
    set_storage_service(storage)

    try:
        session = await init_async_cassandra()
        build_services(app, session, settings, storage, redis_client)
    except Exception as e:
        # Health stays up and reports degraded; other routes answer 503
        logger.warning("database_init_skipped", error=str(e))

    yield

    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    settings = get_settings()
    docs = settings.is_development

    # debug stays off so Starlette never renders tracebacks
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="CourseHub - Plataforma de cursos online - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
    )

    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )
    register_exception_handlers(app)

    for router in (
        health_router,
        auth_router,
        courses_router,
        progress_router,
        enrollments_router,
        chat_router,
        chat_ws_router,
        storage_router,
        transcripts_router,
    ):
        app.include_router(router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        return {
            "message": "CourseHub API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


from src.auth.router import set_auth_service_getter  # noqa: E402
from src.chat.dependencies import set_chat_service_getter  # noqa: E402
from src.courses.dependencies import (  # noqa: E402
    set_content_service_getter,
    set_course_service_getter,
)
from src.storage.dependencies import set_storage_service  # noqa: E402


set_auth_service_getter(get_auth_service)
set_course_service_getter(get_course_service)
set_content_service_getter(get_content_service)
set_chat_service_getter(get_chat_service)


app = create_app()
