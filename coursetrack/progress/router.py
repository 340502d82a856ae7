"""Learner progress API endpoints.

Provides routes for:
- Lesson progress updates (sent periodically by the player)
- Manual lesson completion
- Offline snapshot sync
- Progress and grade queries
"""

from uuid import UUID

from fastapi import APIRouter, status

from coursetrack.auth.dependencies import CurrentUser
from coursetrack.core.exceptions import EngineError, handle_engine_error

from .dependencies import ProgressServiceDep
from .schemas import (
    CourseProgressResponse,
    GradeReport,
    LessonProgressResult,
    SyncProgressRequest,
    SyncProgressResponse,
    UpdateLessonProgressRequest,
)


router = APIRouter(prefix="/v1/courses", tags=["progress"])


# ==============================================================================
# Lesson Endpoints
# ==============================================================================


@router.put(
    "/{course_id}/lessons/{lesson_id}/progress",
    response_model=LessonProgressResult,
    summary="Update lesson progress",
)
async def update_lesson_progress(
    course_id: str,
    lesson_id: str,
    data: UpdateLessonProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonProgressResult:
    """Merge a lesson progress event.

    Completes the lesson once the watched percentage reaches the threshold.
    """
    try:
        return await progress_service.update_lesson_progress(
            user_id=UUID(str(user.id)),
            course_id=course_id,
            lesson_id=lesson_id,
            activity=data,
        )
    except EngineError as e:
        raise handle_engine_error(e) from e


@router.post(
    "/{course_id}/lessons/{lesson_id}/complete",
    response_model=LessonProgressResult,
    status_code=status.HTTP_200_OK,
    summary="Mark lesson as complete",
)
async def complete_lesson(
    course_id: str,
    lesson_id: str,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonProgressResult:
    """Manually mark a lesson as complete."""
    try:
        return await progress_service.complete_lesson(
            user_id=UUID(str(user.id)),
            course_id=course_id,
            lesson_id=lesson_id,
        )
    except EngineError as e:
        raise handle_engine_error(e) from e


# ==============================================================================
# Course Progress Endpoints
# ==============================================================================


@router.get(
    "/{course_id}/progress",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: str,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> CourseProgressResponse:
    """Completed lessons, section completion and resume point."""
    try:
        return await progress_service.get_course_progress(UUID(str(user.id)), course_id)
    except EngineError as e:
        raise handle_engine_error(e) from e


@router.post(
    "/{course_id}/progress/sync",
    response_model=SyncProgressResponse,
    summary="Sync offline progress",
)
async def sync_progress(
    course_id: str,
    data: SyncProgressRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> SyncProgressResponse:
    """Merge progress recorded by the client while offline."""
    try:
        return await progress_service.sync_progress(UUID(str(user.id)), course_id, data)
    except EngineError as e:
        raise handle_engine_error(e) from e


@router.get(
    "/{course_id}/grades",
    response_model=GradeReport,
    summary="Get course grade report",
)
async def get_course_grades(
    course_id: str,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> GradeReport:
    """Best result per attempted quiz plus the course roll-up."""
    try:
        return await progress_service.get_course_grades(UUID(str(user.id)), course_id)
    except EngineError as e:
        raise handle_engine_error(e) from e
