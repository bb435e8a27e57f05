"""LearnPath ledger API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnpath.achievements.router import router as achievements_router
from learnpath.achievements.service import AchievementService
from learnpath.catalog.router import router as catalog_router
from learnpath.catalog.service import CatalogService
from learnpath.certificates.router import router as certificates_router
from learnpath.certificates.service import CertificateService
from learnpath.config import Settings, get_settings
from learnpath.core.context import get_request_id
from learnpath.core.database import init_async_cassandra, shutdown_async_cassandra
from learnpath.core.exceptions import LedgerError, handle_ledger_error
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware
from learnpath.core.redis import init_redis, shutdown_redis
from learnpath.health import router as health_router
from learnpath.leaderboard.router import router as leaderboard_router
from learnpath.leaderboard.service import LeaderboardService
from learnpath.points.router import router as points_router
from learnpath.points.service import PointsLedger
from learnpath.progress.router import enrollments_router
from learnpath.progress.router import router as progress_router
from learnpath.progress.service import ProgressService
from learnpath.quizzes.router import router as quizzes_router
from learnpath.quizzes.service import QuizService
from learnpath.study_sessions.router import router as study_sessions_router
from learnpath.study_sessions.service import StudySessionService
from learnpath.users.router import router as users_router
from learnpath.users.service import UserService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def init_services(app: FastAPI, session: Any, settings: Settings, redis: Any = None) -> None:
    """Build the ledger services and publish them on ``app.state``.

    Services are created leaf-first: each one receives the collaborators it
    reads facts from or writes through.
    """
    keyspace = settings.cassandra_keyspace

    user_service = UserService(session=session, keyspace=keyspace)
    catalog_service = CatalogService(session=session, keyspace=keyspace)
    points_ledger = PointsLedger(session=session, keyspace=keyspace)
    progress_service = ProgressService(
        session=session,
        keyspace=keyspace,
        catalog_service=catalog_service,
        user_service=user_service,
    )
    achievement_service = AchievementService(
        session=session,
        keyspace=keyspace,
        progress_service=progress_service,
        points_ledger=points_ledger,
        user_service=user_service,
    )
    progress_service.achievement_service = achievement_service

    app.state.user_service = user_service
    app.state.catalog_service = catalog_service
    app.state.points_ledger = points_ledger
    app.state.progress_service = progress_service
    app.state.achievement_service = achievement_service
    app.state.quiz_service = QuizService(
        session=session,
        keyspace=keyspace,
        catalog_service=catalog_service,
        points_ledger=points_ledger,
        achievement_service=achievement_service,
    )
    app.state.certificate_service = CertificateService(
        session=session,
        keyspace=keyspace,
        catalog_service=catalog_service,
        progress_service=progress_service,
        achievement_service=achievement_service,
        number_prefix=settings.certificate_number_prefix,
    )
    app.state.study_session_service = StudySessionService(
        session=session,
        keyspace=keyspace,
        user_service=user_service,
        progress_service=progress_service,
        points_ledger=points_ledger,
        achievement_service=achievement_service,
    )
    app.state.leaderboard_service = LeaderboardService(
        points_ledger=points_ledger,
        user_service=user_service,
        progress_service=progress_service,
        redis=redis if settings.leaderboard_cache_enabled else None,
        default_limit=settings.leaderboard_default_limit,
        max_limit=settings.leaderboard_max_limit,
        cache_ttl_seconds=settings.leaderboard_cache_ttl_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    try:
        redis_client = await init_redis()
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - leaderboard cache disabled",
        )
    app.state.redis = redis_client

    try:
        session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        init_services(app, session, settings, redis_client)
        logger.info("ledger_services_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug=False keeps Starlette from rendering stack traces; the handlers
    # below log details and answer with safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="LearnPath progress and gamification ledger - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
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

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _error_body(request: Request, status_code: int, message: str) -> dict[str, Any]:
        return {
            "error": True,
            "message": message,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError) -> ORJSONResponse:
        """Map ledger errors that escaped a router to their HTTP status."""
        http_exc = handle_ledger_error(exc)
        logger.warning(
            "ledger_error",
            code=exc.code,
            status_code=http_exc.status_code,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=http_exc.status_code,
            content=_error_body(request, http_exc.status_code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        content = _error_body(
            request, status.HTTP_422_UNPROCESSABLE_CONTENT, "Validation error"
        )
        content["details"] = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            content=content,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler: log the stack trace, answer with a generic 500."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred. Please try again later.",
            ),
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(catalog_router)
    app.include_router(quizzes_router)
    app.include_router(points_router)
    app.include_router(achievements_router)
    app.include_router(certificates_router)
    app.include_router(study_sessions_router)
    app.include_router(leaderboard_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "LearnPath Ledger API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "learnpath.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload and settings.is_development,
    )
