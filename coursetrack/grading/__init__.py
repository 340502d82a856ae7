"""Quiz grading engine.

Pure scoring of submitted answers against authored questions. Nothing in this
package reads or writes persisted state.
"""

from coursetrack.grading.engine import grade_quiz, letter_grade, round_half_up, validate_answers
from coursetrack.grading.schemas import (
    GradedAnswer,
    GradingOptions,
    GradingResponse,
    GradingSummary,
    SubmittedAnswer,
)


__all__ = [
    "GradedAnswer",
    "GradingOptions",
    "GradingResponse",
    "GradingSummary",
    "SubmittedAnswer",
    "grade_quiz",
    "letter_grade",
    "round_half_up",
    "validate_answers",
]
