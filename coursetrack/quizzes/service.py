"""Quiz service layer.

Lists quizzes with the learner's state, grades submissions and records them
in the attempt ledger.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from coursetrack.config.settings import Settings
from coursetrack.core.exceptions import (
    AttemptsExhaustedError,
    MalformedQuizError,
    PersistenceError,
)
from coursetrack.core.logging import get_logger
from coursetrack.courses.models import Question
from coursetrack.courses.tree import QuizSource, resolve_quiz
from coursetrack.enrollments.service import EnrollmentService
from coursetrack.grading.engine import grade_quiz, round_half_up, validate_answers
from coursetrack.grading.schemas import GradingOptions
from coursetrack.progress.models import Progress, QuizScoreState
from coursetrack.progress.service import ProgressService
from coursetrack.quizzes.schemas import (
    QuestionView,
    QuizAttemptsResponse,
    QuizListResponse,
    QuizSettingsView,
    QuizStats,
    QuizView,
    SubmissionMetadata,
    SubmitQuizRequest,
    SubmitQuizResponse,
    SubmittedQuizInfo,
)


logger = get_logger(__name__)


def _question_view(question: Question) -> QuestionView:
    return QuestionView(
        id=question.id,
        type=question.type,
        question_text=question.question_text,
        points=question.points,
        difficulty=question.difficulty,
        options=getattr(question, "options", []),
        hints=question.hints,
        time_limit=question.time_limit,
        code_template=getattr(question, "code_template", None),
    )


class QuizService:
    """Service for quiz access, grading and attempt history."""

    def __init__(
        self,
        progress_service: ProgressService,
        enrollment_service: EnrollmentService,
        settings: Settings,
    ):
        self.progress_service = progress_service
        self.enrollment_service = enrollment_service
        self.settings = settings

    def _max_attempts(self, source: QuizSource) -> int:
        return source.max_attempts(self.settings.default_max_attempts)

    def _passing_score(self, source: QuizSource) -> int:
        return source.passing_score(self.settings.default_passing_score)

    def _settings_view(self, source: QuizSource) -> QuizSettingsView:
        return QuizSettingsView(
            passing_score=self._passing_score(source),
            max_attempts=self._max_attempts(source),
            time_limit=source.quiz.settings.time_limit,
            show_correct_answers=source.quiz.settings.show_correct_answers,
        )

    # ==========================================================================
    # Listing
    # ==========================================================================

    async def list_quizzes(self, user_id: UUID, course_id: str) -> QuizListResponse:
        """Quizzes in course order with the learner's state.

        First access to a free course enrolls the learner.
        """
        course = await self.progress_service.get_course(course_id)
        await self.enrollment_service.ensure_enrollment(user_id, course)
        progress = await self.progress_service.find_progress(user_id, course_id)

        views: list[QuizView] = []
        for source in sorted(self.progress_service.quiz_sources(course), key=lambda s: s.order):
            state = self._state(progress, source.quiz_id)
            max_attempts = self._max_attempts(source)
            views.append(
                QuizView(
                    id=source.quiz_id,
                    title=source.title,
                    description=source.quiz.description,
                    instructions=source.quiz.instructions,
                    type=source.report_type,
                    kind=source.kind,
                    section_id=source.section.id if source.section else None,
                    lesson_id=source.lesson.id if source.lesson else None,
                    module_title=source.module_title,
                    order=source.order,
                    synthesized=source.synthesized,
                    question_count=len(source.quiz.questions),
                    max_points=source.quiz.max_points,
                    settings=self._settings_view(source),
                    questions=[_question_view(q) for q in source.quiz.questions],
                    is_completed=state.total_attempts > 0,
                    best_score=state.best_score,
                    best_percentage=state.best_percentage,
                    total_attempts=state.total_attempts,
                    remaining_attempts=max(0, max_attempts - state.total_attempts),
                    passed=state.passed,
                )
            )

        attempted = [v for v in views if v.total_attempts > 0]
        stats = QuizStats(
            total_quizzes=len(views),
            completed_quizzes=len(attempted),
            passed_quizzes=sum(1 for v in views if v.passed),
            total_attempts=sum(v.total_attempts for v in views),
            average_score=(
                round_half_up(sum(v.best_percentage for v in attempted) / len(attempted))
                if attempted
                else 0
            ),
        )
        return QuizListResponse(quizzes=views, stats=stats)

    @staticmethod
    def _state(progress: Progress | None, quiz_id: str) -> QuizScoreState:
        if progress is None:
            return QuizScoreState()
        return progress.quiz_scores.get(quiz_id) or QuizScoreState()

    # ==========================================================================
    # Submission
    # ==========================================================================

    async def submit_quiz(
        self,
        user_id: UUID,
        course_id: str,
        quiz_id: str,
        data: SubmitQuizRequest,
    ) -> SubmitQuizResponse:
        """Grade a submission and record it as a new attempt.

        Raises:
            NotFoundError: Unknown course or quiz.
            EnrollmentRequiredError: Learner may not access the course.
            ValidationError: Answers do not cover the quiz exactly.
            MalformedQuizError: Quiz cannot be graded.
            AttemptsExhaustedError: Every allowed attempt is used.
            PersistenceError: Graded but not saved.
        """
        course = await self.progress_service.get_course(course_id)
        await self.enrollment_service.ensure_enrollment(user_id, course)

        source = resolve_quiz(
            course, quiz_id, synthesize=self.settings.synthesize_practice_quizzes
        )
        questions = source.quiz.questions
        if not questions:
            raise MalformedQuizError("Quiz has no questions", quiz_id=source.quiz_id)

        validate_answers(questions, data.answers)

        # Early rejection; the ledger checks again inside the write
        max_attempts = self._max_attempts(source)
        progress = await self.progress_service.find_progress(user_id, course_id)
        state = self._state(progress, source.quiz_id)
        if state.total_attempts >= max_attempts:
            logger.warning(
                "attempt_limit_reached",
                user_id=str(user_id),
                course_id=course_id,
                quiz_id=source.quiz_id,
                current_attempts=state.total_attempts,
                max_attempts=max_attempts,
            )
            raise AttemptsExhaustedError(
                current_attempts=state.total_attempts,
                max_attempts=max_attempts,
                best_score=state.best_percentage,
                passed=state.passed,
            )

        grading = grade_quiz(
            questions,
            data.answers,
            GradingOptions(
                passing_score=self._passing_score(source),
                show_correct_answers=source.quiz.settings.show_correct_answers,
            ),
        )

        submitted_at = datetime.now(UTC)
        started_at = data.started_at or submitted_at - timedelta(seconds=data.time_spent)
        try:
            attempt, state = await self.progress_service.record_quiz_attempt(
                user_id,
                course,
                source,
                grading,
                started_at=started_at,
                time_spent=data.time_spent,
            )
        except PersistenceError as e:
            logger.error(
                "quiz_attempt_not_saved",
                user_id=str(user_id),
                course_id=course_id,
                quiz_id=source.quiz_id,
                percentage=grading.summary.percentage,
            )
            raise PersistenceError(
                "Quiz was graded but the attempt could not be saved",
                graded=True,
                quiz_id=source.quiz_id,
                percentage=grading.summary.percentage,
            ) from e

        summary = grading.summary
        logger.info(
            "quiz_submitted",
            user_id=str(user_id),
            course_id=course_id,
            quiz_id=source.quiz_id,
            attempt_number=attempt.attempt_number,
            percentage=summary.percentage,
            passed=summary.passed,
            synthesized=source.synthesized,
        )

        remaining = max(0, max_attempts - state.total_attempts)
        return SubmitQuizResponse(
            score=summary.percentage,
            passed=summary.passed,
            correct_answers=summary.correct_answers,
            total_questions=summary.total_questions,
            results=grading.results,
            grading=summary,
            quiz=SubmittedQuizInfo(
                id=source.quiz_id,
                title=source.title,
                type=source.report_type,
                attempt_number=attempt.attempt_number,
                attempts_used=state.total_attempts,
                max_attempts=max_attempts,
                remaining_attempts=remaining,
                best_percentage=state.best_percentage,
                passed=state.passed,
                can_retake=not state.passed and remaining > 0,
            ),
            metadata=SubmissionMetadata(
                attempt_id=attempt.id,
                started_at=attempt.started_at,
                submitted_at=attempt.completed_at,
                time_spent=attempt.time_spent,
                client=data.metadata,
            ),
        )

    # ==========================================================================
    # Attempt history
    # ==========================================================================

    async def get_attempts(
        self, user_id: UUID, course_id: str, quiz_id: str
    ) -> QuizAttemptsResponse:
        """Attempt history and remaining attempts for one quiz."""
        course = await self.progress_service.get_course(course_id)
        source = resolve_quiz(
            course, quiz_id, synthesize=self.settings.synthesize_practice_quizzes
        )
        progress = await self.progress_service.find_progress(user_id, course_id)
        state = self._state(progress, source.quiz_id)

        max_attempts = self._max_attempts(source)
        remaining = max(0, max_attempts - state.total_attempts)
        return QuizAttemptsResponse(
            quiz_id=source.quiz_id,
            current_attempts=state.total_attempts,
            max_attempts=max_attempts,
            remaining_attempts=remaining,
            can_take_quiz=remaining > 0,
            best_score=state.best_percentage,
            best_attempt=state.best_attempt,
            last_attempt=state.last_attempt,
            passed=state.passed,
            attempts=state.attempts,
        )
