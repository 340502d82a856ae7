"""coursetrack API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursetrack.config import get_settings
from coursetrack.core.context import get_request_id
from coursetrack.core.database import init_async_cassandra, shutdown_async_cassandra
from coursetrack.core.exceptions import EngineError, EngineHTTPException, handle_engine_error
from coursetrack.core.logging import configure_structlog, get_logger
from coursetrack.core.middleware import RequestContextMiddleware
from coursetrack.core.redis import init_redis, shutdown_redis
from coursetrack.courses.store import CourseContentStore
from coursetrack.enrollments.service import EnrollmentService
from coursetrack.enrollments.store import EnrollmentStore
from coursetrack.health import router as health_router
from coursetrack.progress.router import router as progress_router
from coursetrack.progress.service import ProgressService
from coursetrack.progress.store import ProgressStore
from coursetrack.quizzes.router import router as quizzes_router
from coursetrack.quizzes.service import QuizService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    enrollment_service: EnrollmentService | None = None
    progress_service: ProgressService | None = None
    quiz_service: QuizService | None = None


app_state = AppState()


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
            message="Running without Redis - course content cache disabled",
        )

    # Initialize Cassandra (async)
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        keyspace = settings.cassandra_keyspace
        course_store = CourseContentStore(
            session=app_state.cassandra_session,
            keyspace=keyspace,
            redis=redis_client,
            cache_ttl_seconds=settings.course_cache_ttl_seconds,
        )
        app_state.enrollment_service = EnrollmentService(
            EnrollmentStore(session=app_state.cassandra_session, keyspace=keyspace)
        )
        app.state.enrollment_service = app_state.enrollment_service
        logger.info("enrollment_service_initialized")

        app_state.progress_service = ProgressService(
            progress_store=ProgressStore(session=app_state.cassandra_session, keyspace=keyspace),
            course_store=course_store,
            enrollment_service=app_state.enrollment_service,
            settings=settings,
        )
        app.state.progress_service = app_state.progress_service
        logger.info("progress_service_initialized")

        app_state.quiz_service = QuizService(
            progress_service=app_state.progress_service,
            enrollment_service=app_state.enrollment_service,
            settings=settings,
        )
        app.state.quiz_service = app_state.quiz_service
        logger.info("quiz_service_initialized")
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
    # below log details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course progress and assessment tracking API",
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

    # CORS middleware
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

    def _engine_error_response(request: Request, exc: EngineHTTPException) -> ORJSONResponse:
        log = logger.error if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logger.info
        log(
            "engine_error",
            code=exc.code,
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        # Engine messages are written for clients, including on 500
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail),
                "code": exc.code,
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
                "details": exc.details,
            },
        )

    @app.exception_handler(EngineHTTPException)
    async def engine_http_exception_handler(
        request: Request, exc: EngineHTTPException
    ) -> ORJSONResponse:
        """Handle engine errors converted by the routers."""
        return _engine_error_response(request, exc)

    @app.exception_handler(EngineError)
    async def engine_exception_handler(request: Request, exc: EngineError) -> ORJSONResponse:
        """Handle engine errors that escaped a router."""
        return _engine_error_response(request, handle_engine_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        Details are logged, never returned.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(quizzes_router)
    app.include_router(progress_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "coursetrack API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
