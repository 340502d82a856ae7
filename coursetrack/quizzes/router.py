"""Quiz API endpoints.

Provides routes for:
- Listing a course's quizzes with learner state
- Submitting an attempt
- Attempt history
"""

from uuid import UUID

from fastapi import APIRouter, status

from coursetrack.auth.dependencies import CurrentUser
from coursetrack.core.exceptions import EngineError, handle_engine_error

from .dependencies import QuizServiceDep
from .schemas import (
    QuizAttemptsResponse,
    QuizListResponse,
    SubmitQuizRequest,
    SubmitQuizResponse,
)


router = APIRouter(prefix="/v1/courses", tags=["quizzes"])


@router.get(
    "/{course_id}/quizzes",
    response_model=QuizListResponse,
    summary="List course quizzes",
)
async def list_quizzes(
    course_id: str,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizListResponse:
    """List quizzes without answer keys.

    Free courses enroll the learner on first access.
    """
    try:
        return await quiz_service.list_quizzes(UUID(str(user.id)), course_id)
    except EngineError as e:
        raise handle_engine_error(e) from e


@router.post(
    "/{course_id}/quizzes/{quiz_id}/submit",
    response_model=SubmitQuizResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit quiz answers",
)
async def submit_quiz(
    course_id: str,
    quiz_id: str,
    data: SubmitQuizRequest,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> SubmitQuizResponse:
    """Grade and record one attempt.

    Returns 409 when no attempts remain and 500 when the attempt was graded
    but could not be saved.
    """
    try:
        return await quiz_service.submit_quiz(UUID(str(user.id)), course_id, quiz_id, data)
    except EngineError as e:
        raise handle_engine_error(e) from e


@router.get(
    "/{course_id}/quizzes/{quiz_id}/attempts",
    response_model=QuizAttemptsResponse,
    summary="Get quiz attempt history",
)
async def get_attempts(
    course_id: str,
    quiz_id: str,
    quiz_service: QuizServiceDep,
    user: CurrentUser,
) -> QuizAttemptsResponse:
    """Attempts so far, remaining attempts and best result."""
    try:
        return await quiz_service.get_attempts(UUID(str(user.id)), course_id, quiz_id)
    except EngineError as e:
        raise handle_engine_error(e) from e
