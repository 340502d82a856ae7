"""Progress tracking service layer.

Business logic for:
- Lesson progress merges and manual completion
- Quiz attempt recording with the attempt limit
- Offline snapshot sync
- Course progress view and grade report

Every write goes through :meth:`ProgressService._mutate`, which re-reads the
document, applies one merge operation, recomputes the overall percentage and
writes back with a revision check. A conflicting write restarts the loop, so
checks made inside the merge (such as the attempt limit) always see the
latest state.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar
from uuid import UUID, uuid4

from coursetrack.config.settings import Settings
from coursetrack.core.exceptions import (
    AttemptsExhaustedError,
    EngineError,
    NotFoundError,
    PersistenceError,
)
from coursetrack.core.logging import get_logger
from coursetrack.courses.models import Course
from coursetrack.courses.store import CourseContentStore
from coursetrack.courses.tree import (
    QuizKind,
    QuizSource,
    find_lesson,
    is_section_complete,
    lesson_index,
    quiz_sources,
    total_lessons,
)
from coursetrack.enrollments.service import EnrollmentService
from coursetrack.grading.schemas import GradingResponse
from coursetrack.progress.aggregator import (
    build_course_progress,
    build_grade_report,
    completed_in_course,
    overall_progress,
)
from coursetrack.progress.models import (
    Attempt,
    LessonActivity,
    Progress,
    ProgressSnapshot,
    QuizScoreState,
)
from coursetrack.progress.schemas import (
    CourseProgressResponse,
    GradeReport,
    LessonProgressResult,
    SyncProgressResponse,
)
from coursetrack.progress.store import ProgressStore


logger = get_logger(__name__)

T = TypeVar("T")


class ProgressService:
    """Service for learner progress and the attempt ledger."""

    def __init__(
        self,
        progress_store: ProgressStore,
        course_store: CourseContentStore,
        enrollment_service: EnrollmentService,
        settings: Settings,
    ):
        self.progress_store = progress_store
        self.course_store = course_store
        self.enrollment_service = enrollment_service
        self.settings = settings

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_course(self, course_id: str) -> Course:
        """Load a course content tree.

        Raises:
            NotFoundError: If the course does not exist.
        """
        course = await self.course_store.find_by_id(course_id)
        if course is None:
            raise NotFoundError("Course not found", course_id=course_id)
        return course

    def quiz_sources(self, course: Course) -> list[QuizSource]:
        return quiz_sources(course, synthesize=self.settings.synthesize_practice_quizzes)

    async def find_progress(self, user_id: UUID, course_id: str) -> Progress | None:
        try:
            return await self.progress_store.find(user_id, course_id)
        except EngineError:
            raise
        except Exception as e:
            logger.error(
                "progress_read_failed", user_id=str(user_id), course_id=course_id, error=str(e)
            )
            raise PersistenceError("Progress could not be loaded", course_id=course_id) from e

    # ==========================================================================
    # Single write path
    # ==========================================================================

    async def _mutate(
        self,
        user_id: UUID,
        course: Course,
        apply: Callable[[Progress], T],
    ) -> tuple[Progress, T]:
        """Apply ``apply`` to the latest document and store it.

        ``apply`` may run several times, once per conflicting write, and
        must only touch the document it is given. Errors it raises abort
        the write.

        Raises:
            PersistenceError: Store failure or too many conflicting writers.
        """
        retries = self.settings.progress_write_max_retries
        for attempt in range(1, retries + 1):
            try:
                progress = await self.progress_store.get_or_create_progress(user_id, course.id)
            except EngineError:
                raise
            except Exception as e:
                logger.error(
                    "progress_read_failed",
                    user_id=str(user_id),
                    course_id=course.id,
                    error=str(e),
                )
                raise PersistenceError(course_id=course.id) from e

            result = apply(progress)
            progress.overall_progress = overall_progress(course, progress)

            try:
                applied = await self.progress_store.update(progress)
            except Exception as e:
                logger.error(
                    "progress_write_failed",
                    user_id=str(user_id),
                    course_id=course.id,
                    error=str(e),
                )
                raise PersistenceError(course_id=course.id) from e

            if applied:
                await self.enrollment_service.mirror_progress(
                    user_id, course.id, progress.overall_progress
                )
                return progress, result

            logger.info(
                "progress_write_conflict",
                user_id=str(user_id),
                course_id=course.id,
                attempt=attempt,
            )

        logger.error(
            "progress_write_retries_exhausted",
            user_id=str(user_id),
            course_id=course.id,
            retries=retries,
        )
        raise PersistenceError(
            "Progress could not be saved due to concurrent updates", course_id=course.id
        )

    # ==========================================================================
    # Lesson progress
    # ==========================================================================

    def _lesson_result(
        self, course: Course, progress: Progress, lesson_id: str, newly_completed: bool
    ) -> LessonProgressResult:
        _, section = find_lesson(course, lesson_id)
        completed = set(progress.completed_lessons)
        return LessonProgressResult(
            course_id=course.id,
            lesson_id=lesson_id,
            lesson_completed=lesson_id in completed,
            newly_completed=newly_completed,
            section_id=section.id,
            section_complete=is_section_complete(section, completed),
            completed_lessons=len(completed_in_course(course, progress)),
            total_lessons=total_lessons(course),
            overall_progress=progress.overall_progress,
            current_lesson=progress.current_lesson,
            lesson=progress.lesson_progress[lesson_id],
        )

    async def update_lesson_progress(
        self,
        user_id: UUID,
        course_id: str,
        lesson_id: str,
        activity: LessonActivity,
    ) -> LessonProgressResult:
        """Merge a lesson-progress event.

        Watching at least the completion threshold, or an explicit
        ``is_completed``, completes the lesson.
        """
        course = await self.get_course(course_id)
        find_lesson(course, lesson_id)
        await self.enrollment_service.ensure_enrollment(user_id, course)

        threshold = self.settings.lesson_completion_threshold
        progress, newly_completed = await self._mutate(
            user_id,
            course,
            lambda p: p.apply_lesson_activity(lesson_id, activity, threshold),
        )

        if newly_completed:
            logger.info(
                "lesson_completed",
                user_id=str(user_id),
                course_id=course_id,
                lesson_id=lesson_id,
                overall_progress=progress.overall_progress,
            )
        return self._lesson_result(course, progress, lesson_id, newly_completed)

    async def complete_lesson(
        self, user_id: UUID, course_id: str, lesson_id: str
    ) -> LessonProgressResult:
        """Mark a lesson complete. Repeating the call changes nothing."""
        course = await self.get_course(course_id)
        find_lesson(course, lesson_id)
        await self.enrollment_service.ensure_enrollment(user_id, course)

        def apply(progress: Progress) -> bool:
            progress.current_lesson = lesson_id
            return progress.mark_lesson_completed(lesson_id)

        progress, newly_completed = await self._mutate(user_id, course, apply)

        logger.info(
            "lesson_completed" if newly_completed else "lesson_already_completed",
            user_id=str(user_id),
            course_id=course_id,
            lesson_id=lesson_id,
            overall_progress=progress.overall_progress,
        )
        return self._lesson_result(course, progress, lesson_id, newly_completed)

    # ==========================================================================
    # Attempt ledger
    # ==========================================================================

    async def record_quiz_attempt(
        self,
        user_id: UUID,
        course: Course,
        source: QuizSource,
        grading: GradingResponse,
        started_at: datetime,
        time_spent: int = 0,
    ) -> tuple[Attempt, QuizScoreState]:
        """Append a graded attempt, enforcing the attempt limit.

        The limit is checked against the document being written, so
        concurrent submissions can never push the count past the cap.

        Raises:
            AttemptsExhaustedError: If every allowed attempt is used.
            PersistenceError: If the attempt could not be stored.
        """
        max_attempts = source.max_attempts(self.settings.default_max_attempts)
        summary = grading.summary
        attempt_id = str(uuid4())
        completed_at = datetime.now(UTC)

        def apply(progress: Progress) -> tuple[Attempt, QuizScoreState]:
            current = progress.attempts_for(source.quiz_id)
            if current >= max_attempts:
                state = progress.quiz_scores.get(source.quiz_id) or QuizScoreState()
                raise AttemptsExhaustedError(
                    current_attempts=current,
                    max_attempts=max_attempts,
                    best_score=state.best_percentage,
                    passed=state.passed,
                )

            attempt = Attempt(
                id=attempt_id,
                attempt_number=current + 1,
                score=summary.total_points,
                max_score=summary.max_possible_points,
                percentage=summary.percentage,
                passed=summary.passed,
                started_at=started_at,
                completed_at=completed_at,
                time_spent=time_spent,
                answers=grading.results,
            )
            state = progress.record_attempt(source.quiz_id, attempt)
            if attempt.passed and source.kind == QuizKind.LESSON and source.lesson:
                progress.mark_lesson_completed(source.lesson.id, completed_at)
            return attempt, state

        try:
            _, (attempt, state) = await self._mutate(user_id, course, apply)
        except AttemptsExhaustedError as e:
            logger.warning(
                "attempt_limit_reached",
                user_id=str(user_id),
                course_id=course.id,
                quiz_id=source.quiz_id,
                current_attempts=e.current_attempts,
                max_attempts=e.max_attempts,
            )
            raise

        logger.info(
            "quiz_attempt_recorded",
            user_id=str(user_id),
            course_id=course.id,
            quiz_id=source.quiz_id,
            attempt_number=attempt.attempt_number,
            percentage=attempt.percentage,
            passed=attempt.passed,
        )
        return attempt, state

    # ==========================================================================
    # Views
    # ==========================================================================

    async def get_course_progress(self, user_id: UUID, course_id: str) -> CourseProgressResponse:
        """Progress view for the learner. Nothing is written for new learners."""
        course = await self.get_course(course_id)
        await self.enrollment_service.ensure_enrollment(user_id, course)
        progress = await self.find_progress(user_id, course_id)
        if progress is None:
            progress = Progress(user_id=user_id, course_id=course_id)
        return build_course_progress(course, progress)

    async def sync_progress(
        self, user_id: UUID, course_id: str, snapshot: ProgressSnapshot
    ) -> SyncProgressResponse:
        """Merge a client snapshot. Lessons unknown to the course are skipped."""
        course = await self.get_course(course_id)
        await self.enrollment_service.ensure_enrollment(user_id, course)

        known = lesson_index(course)
        ignored = sorted(
            {lid for lid in snapshot.completed_lessons if lid not in known}
            | {lid for lid in snapshot.lesson_progress if lid not in known}
        )
        current = snapshot.current_lesson if snapshot.current_lesson in known else None
        filtered = ProgressSnapshot(
            completed_lessons=[lid for lid in snapshot.completed_lessons if lid in known],
            lesson_progress={
                lid: entry for lid, entry in snapshot.lesson_progress.items() if lid in known
            },
            time_spent=snapshot.time_spent,
            current_lesson=current,
        )

        progress, newly_completed = await self._mutate(
            user_id, course, lambda p: p.merge_snapshot(filtered)
        )

        if ignored:
            logger.warning(
                "progress_sync_unknown_lessons",
                user_id=str(user_id),
                course_id=course_id,
                lesson_ids=ignored,
            )
        logger.info(
            "progress_synced",
            user_id=str(user_id),
            course_id=course_id,
            newly_completed=len(newly_completed),
            overall_progress=progress.overall_progress,
        )
        return SyncProgressResponse(
            newly_completed=newly_completed,
            ignored_lessons=ignored,
            progress=build_course_progress(course, progress),
        )

    async def get_course_grades(self, user_id: UUID, course_id: str) -> GradeReport:
        """Grade report. A learner with no progress gets a zeroed report."""
        course = await self.get_course(course_id)
        progress = await self.find_progress(user_id, course_id)
        return build_grade_report(course, progress, self.quiz_sources(course), self.settings)
