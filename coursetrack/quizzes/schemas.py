"""Pydantic schemas for quiz listing, submission and attempt history."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from coursetrack.courses.models import Difficulty, QuestionType
from coursetrack.courses.tree import QuizKind
from coursetrack.grading.schemas import GradedAnswer, GradingSummary, SubmittedAnswer
from coursetrack.progress.models import Attempt


# ==============================================================================
# Quiz Listing Schemas
# ==============================================================================


class QuestionView(BaseModel):
    """Question as shown to a learner, without its answer key."""

    id: str
    type: QuestionType
    question_text: str
    points: float
    difficulty: Difficulty
    options: list[str] = Field(default_factory=list)
    hints: list[str] = Field(default_factory=list)
    time_limit: int | None = None
    code_template: str | None = None


class QuizSettingsView(BaseModel):
    passing_score: int
    max_attempts: int
    time_limit: int | None = None
    show_correct_answers: bool = True


class QuizView(BaseModel):
    """Authored quiz plus the learner's state for it."""

    id: str
    title: str
    description: str = ""
    instructions: str = ""
    type: Literal["module", "final"]
    kind: QuizKind
    section_id: str | None = None
    lesson_id: str | None = None
    module_title: str = ""
    order: int
    synthesized: bool = False
    question_count: int
    max_points: float
    settings: QuizSettingsView
    questions: list[QuestionView] = Field(default_factory=list)

    # Learner state
    is_completed: bool = False
    is_unlocked: bool = True
    best_score: float = 0
    best_percentage: int = 0
    total_attempts: int = 0
    remaining_attempts: int
    passed: bool = False


class QuizStats(BaseModel):
    total_quizzes: int = 0
    completed_quizzes: int = 0
    passed_quizzes: int = 0
    total_attempts: int = 0
    average_score: int = Field(0, description="Mean best percentage over attempted quizzes")


class QuizListResponse(BaseModel):
    quizzes: list[QuizView] = Field(default_factory=list)
    stats: QuizStats = Field(default_factory=QuizStats)


# ==============================================================================
# Submission Schemas
# ==============================================================================


class SubmitQuizRequest(BaseModel):
    """Answers for one quiz attempt."""

    answers: list[SubmittedAnswer] = Field(default_factory=list)
    time_spent: int = Field(default=0, ge=0, description="Seconds spent on the attempt")
    started_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SubmittedQuizInfo(BaseModel):
    """Quiz state after the attempt was recorded."""

    id: str
    title: str
    type: Literal["module", "final"]
    attempt_number: int
    attempts_used: int
    max_attempts: int
    remaining_attempts: int
    best_percentage: int
    passed: bool = Field(description="True once any attempt has passed")
    can_retake: bool


class SubmissionMetadata(BaseModel):
    attempt_id: str
    started_at: datetime
    submitted_at: datetime
    time_spent: int = 0
    client: dict[str, Any] = Field(default_factory=dict)


class SubmitQuizResponse(BaseModel):
    """Graded and recorded attempt."""

    score: int = Field(description="Percentage for this attempt")
    passed: bool
    correct_answers: int
    total_questions: int
    results: list[GradedAnswer]
    grading: GradingSummary
    quiz: SubmittedQuizInfo
    metadata: SubmissionMetadata


# ==============================================================================
# Attempt History Schemas
# ==============================================================================


class QuizAttemptsResponse(BaseModel):
    quiz_id: str
    current_attempts: int = 0
    max_attempts: int
    remaining_attempts: int
    can_take_quiz: bool
    best_score: int = Field(0, description="Best percentage")
    best_attempt: Attempt | None = None
    last_attempt: Attempt | None = None
    passed: bool = False
    attempts: list[Attempt] = Field(default_factory=list)
