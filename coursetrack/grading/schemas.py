"""Grading request and result schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from coursetrack.courses.models import Difficulty, QuestionType


# Raw answer payload. Its shape depends on the question type it answers:
# option index/value, boolean, list of options, text, test outputs or pairs.
AnswerValue = str | int | float | bool | list[Any] | dict[str, Any] | None


class SubmittedAnswer(BaseModel):
    """One answer in a quiz submission."""

    question_id: str = Field(..., min_length=1)
    answer: AnswerValue = None
    time_spent: int = Field(default=0, ge=0, description="Seconds spent on the question")
    hints_used: int = Field(default=0, ge=0)
    confidence: int | None = Field(default=None, ge=1, le=5)


class GradingOptions(BaseModel):
    """Per-quiz grading options."""

    passing_score: int = Field(default=70, ge=0, le=100)
    show_correct_answers: bool = True


class GradedAnswer(BaseModel):
    """Scoring outcome for one question."""

    question_id: str
    question_type: QuestionType
    user_answer: AnswerValue = None
    correct_answer: AnswerValue = None
    is_correct: bool
    points: float
    max_points: float
    partial_credit: float = Field(default=0, ge=0, le=1)
    requires_manual_review: bool = False
    feedback: str = ""
    explanation: str | None = None
    time_spent: int = 0
    difficulty: Difficulty = Difficulty.MEDIUM
    hints_used: int = 0


class PerformanceTier(str, Enum):
    """Coarse performance band used in feedback."""

    EXCELLENT = "excellent"
    GOOD = "good"
    SATISFACTORY = "satisfactory"
    NEEDS_IMPROVEMENT = "needs_improvement"


class Feedback(BaseModel):
    overall: str
    performance: PerformanceTier
    strengths: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class DifficultyStats(BaseModel):
    correct: int = 0
    total: int = 0
    percentage: int = 0


class GradingSummary(BaseModel):
    """Aggregate scoring for a submission."""

    total_questions: int
    correct_answers: int
    partially_correct: int
    incorrect_answers: int
    pending_review: int
    total_points: float
    max_possible_points: float
    percentage: int
    letter_grade: str
    passed: bool
    passing_score: int
    time_spent: int
    average_time_per_question: int
    difficulty_analysis: dict[str, DifficultyStats]
    feedback: Feedback


class GradingResponse(BaseModel):
    results: list[GradedAnswer]
    summary: GradingSummary
