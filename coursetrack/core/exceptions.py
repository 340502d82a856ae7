"""Engine errors shared by grading, progress, quizzes and enrollments.

Every error carries a machine readable ``code`` and optional ``details`` that
the HTTP layer forwards to clients unchanged.
"""

from typing import Any

from fastapi import HTTPException, status


class EngineError(Exception):
    """Base engine error."""

    def __init__(
        self,
        message: str,
        code: str = "engine_error",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(EngineError):
    """Course, quiz or lesson does not exist."""

    def __init__(self, message: str = "Resource not found", **details: Any):
        super().__init__(message, "not_found", details)


class ValidationError(EngineError):
    """Submitted payload does not match the quiz or course."""

    def __init__(self, message: str = "Invalid request", **details: Any):
        super().__init__(message, "validation_error", details)


class AttemptsExhaustedError(EngineError):
    """Learner already used every allowed attempt for a quiz."""

    def __init__(
        self,
        current_attempts: int,
        max_attempts: int,
        best_score: float = 0,
        passed: bool = False,
    ):
        super().__init__(
            f"Maximum attempts ({max_attempts}) reached for this quiz",
            "attempts_exhausted",
            {
                "current_attempts": current_attempts,
                "max_attempts": max_attempts,
                "best_score": best_score,
                "passed": passed,
            },
        )
        self.current_attempts = current_attempts
        self.max_attempts = max_attempts


class EnrollmentRequiredError(EngineError):
    """Learner is not allowed to access the course."""

    def __init__(self, message: str = "Enrollment required for this course", **details: Any):
        super().__init__(message, "enrollment_required", details)


class MalformedQuizError(EngineError):
    """Authored quiz cannot be graded."""

    def __init__(self, message: str = "Quiz has no gradable points", **details: Any):
        super().__init__(message, "malformed_quiz", details)


class PersistenceError(EngineError):
    """A write to the progress store failed."""

    def __init__(self, message: str = "Progress could not be saved", **details: Any):
        super().__init__(message, "persistence_error", details)


# ==============================================================================
# HTTP mapping
# ==============================================================================

_STATUS_MAP = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "attempts_exhausted": status.HTTP_409_CONFLICT,
    "enrollment_required": status.HTTP_403_FORBIDDEN,
    "malformed_quiz": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "persistence_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class EngineHTTPException(HTTPException):
    """HTTPException that keeps the engine error code and details."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.details = details or {}


def handle_engine_error(error: EngineError) -> EngineHTTPException:
    """Convert engine errors to HTTP exceptions.

    Args:
        error: Engine error

    Returns:
        EngineHTTPException with appropriate status code
    """
    status_code = _STATUS_MAP.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return EngineHTTPException(
        status_code=status_code,
        message=error.message,
        code=error.code,
        details=error.details,
    )
