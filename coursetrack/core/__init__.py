# Core infrastructure
from coursetrack.core.context import (
    clear_context,
    get_context,
    get_course_id,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_course_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from coursetrack.core.exceptions import (
    AttemptsExhaustedError,
    EngineError,
    EngineHTTPException,
    EnrollmentRequiredError,
    MalformedQuizError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    handle_engine_error,
)
from coursetrack.core.logging import configure_structlog, get_logger
from coursetrack.core.middleware import RequestContextMiddleware


__all__ = [
    "AttemptsExhaustedError",
    "EngineError",
    "EngineHTTPException",
    "EnrollmentRequiredError",
    "MalformedQuizError",
    "NotFoundError",
    "PersistenceError",
    "RequestContextMiddleware",
    "ValidationError",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_course_id",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "handle_engine_error",
    "set_course_id",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
]
