"""Quiz grading engine.

``grade_quiz`` scores a submission against a quiz's questions:

- multiple-choice / true-false: exact match, all or nothing
- multiple-select: exact set match, no partial credit
- fill-blank: trimmed, case-insensitive match against any accepted answer
- essay, code without test cases: 0 points, flagged for manual review
- code with test cases: each passing test case awards its own points
- matching / drag-drop: each correct pair is worth points / len(pairs)

The module is pure: it never touches storage and always returns the same
result for the same input.
"""

from collections.abc import Callable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, NamedTuple

from coursetrack.core.exceptions import MalformedQuizError, ValidationError
from coursetrack.courses.models import (
    CodeQuestion,
    Difficulty,
    DragDropQuestion,
    EssayQuestion,
    FillBlankQuestion,
    MatchingQuestion,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Question,
    QuestionType,
    TrueFalseQuestion,
    answer_text,
)
from coursetrack.grading.feedback import build_feedback
from coursetrack.grading.schemas import (
    AnswerValue,
    DifficultyStats,
    GradedAnswer,
    GradingOptions,
    GradingResponse,
    GradingSummary,
    SubmittedAnswer,
)


# ==============================================================================
# Helpers
# ==============================================================================


def round_half_up(value: float, ndigits: int = 0) -> float | int:
    """Round with halves going up (2.5 -> 3), unlike the builtin round."""
    exp = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)


_LETTER_GRADES = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


def letter_grade(percentage: float) -> str:
    for floor, letter in _LETTER_GRADES:
        if percentage >= floor:
            return letter
    return "F"


def _percent(part: float, whole: float) -> int:
    return round_half_up(100 * part / whole) if whole else 0


def _pairs(value: AnswerValue) -> dict[str, str]:
    if isinstance(value, dict):
        return {str(k): answer_text(v) for k, v in value.items()}
    if isinstance(value, list):
        return {str(i): answer_text(v) for i, v in enumerate(value)}
    return {}


class _Score(NamedTuple):
    points: float
    is_correct: bool
    feedback: str
    manual_review: bool = False


# ==============================================================================
# Per-type scoring
# ==============================================================================


def _all_or_nothing(question: Question, is_correct: bool, expected: str) -> _Score:
    if is_correct:
        return _Score(question.points, True, "Correct!")
    return _Score(0, False, f"Incorrect. The correct answer is {expected}.")


def _grade_multiple_choice(q: MultipleChoiceQuestion, answer: AnswerValue) -> _Score:
    expected = answer_text(q.correct_answer)
    return _all_or_nothing(q, answer_text(answer) == expected, expected)


def _grade_true_false(q: TrueFalseQuestion, answer: AnswerValue) -> _Score:
    expected = answer_text(q.correct_answer).strip().lower()
    return _all_or_nothing(q, answer_text(answer).strip().lower() == expected, expected)


def _grade_multiple_select(q: MultipleSelectQuestion, answer: AnswerValue) -> _Score:
    submitted = answer if isinstance(answer, list) else ([] if answer is None else [answer])
    expected = {answer_text(a) for a in q.correct_answer}
    if {answer_text(a) for a in submitted} == expected:
        return _Score(q.points, True, "Correct! You selected all the right options.")
    return _Score(0, False, "Incorrect. Every correct option must be selected, and nothing else.")


def _grade_fill_blank(q: FillBlankQuestion, answer: AnswerValue) -> _Score:
    accepted = q.accepted_answers()
    expected = accepted[0] if accepted else ""
    return _all_or_nothing(q, answer_text(answer).strip().casefold() in accepted, expected)


def _grade_essay(q: EssayQuestion, answer: AnswerValue) -> _Score:
    return _Score(0, False, "Submitted for instructor review.", manual_review=True)


def _grade_code(q: CodeQuestion, answer: AnswerValue) -> _Score:
    if not q.test_cases:
        return _Score(0, False, "Submitted for instructor review.", manual_review=True)

    if isinstance(answer, list):
        outputs = {i: answer[i] for i in range(min(len(answer), len(q.test_cases)))}
    elif isinstance(answer, dict):
        outputs = {
            i: answer[tc.input] for i, tc in enumerate(q.test_cases) if tc.input in answer
        }
    else:
        outputs = {}

    passed = 0
    earned = 0.0
    for i, tc in enumerate(q.test_cases):
        if i in outputs and answer_text(outputs[i]).strip() == tc.expected_output.strip():
            passed += 1
            earned += tc.points

    earned = min(round_half_up(earned, 2), q.points)
    total = len(q.test_cases)
    is_correct = passed == total
    return _Score(earned, is_correct, f"{passed} of {total} test cases passed.")


def _grade_pairs(q: MatchingQuestion | DragDropQuestion, answer: AnswerValue) -> _Score:
    key = q.pairs()
    if not key:
        return _Score(0, False, "This question has no answer key.")
    submitted = _pairs(answer)
    matched = sum(1 for k, v in key.items() if submitted.get(k) == v)
    earned = round_half_up(q.points * matched / len(key), 2)
    if matched == len(key):
        return _Score(q.points, True, "Correct! Every pair matches.")
    return _Score(earned, False, f"{matched} of {len(key)} pairs correct.")


_GRADERS: dict[QuestionType, Callable[[Any, AnswerValue], _Score]] = {
    QuestionType.MULTIPLE_CHOICE: _grade_multiple_choice,
    QuestionType.TRUE_FALSE: _grade_true_false,
    QuestionType.MULTIPLE_SELECT: _grade_multiple_select,
    QuestionType.FILL_BLANK: _grade_fill_blank,
    QuestionType.ESSAY: _grade_essay,
    QuestionType.CODE: _grade_code,
    QuestionType.MATCHING: _grade_pairs,
    QuestionType.DRAG_DROP: _grade_pairs,
}


def _correct_answer(question: Question) -> AnswerValue:
    if isinstance(question, CodeQuestion):
        return [tc.expected_output for tc in question.test_cases] or None
    return getattr(question, "correct_answer", None)


def grade_question(
    question: Question,
    answer: SubmittedAnswer | None,
    show_correct_answers: bool = True,
) -> GradedAnswer:
    """Score one answer. A missing answer scores like an empty one."""
    question_type = QuestionType(question.type)
    grader = _GRADERS.get(question_type)
    if grader is None:
        raise MalformedQuizError(
            f"Unsupported question type: {question.type}", question_id=question.id
        )

    value = answer.answer if answer else None
    score = grader(question, value)
    partial = score.points / question.points if question.points else 0

    return GradedAnswer(
        question_id=question.id,
        question_type=question_type,
        user_answer=value,
        correct_answer=_correct_answer(question) if show_correct_answers else None,
        is_correct=score.is_correct,
        points=score.points,
        max_points=question.points,
        partial_credit=round_half_up(min(partial, 1), 4),
        requires_manual_review=score.manual_review,
        feedback=score.feedback,
        explanation=question.explanation if show_correct_answers else None,
        time_spent=answer.time_spent if answer else 0,
        difficulty=question.difficulty,
        hints_used=answer.hints_used if answer else 0,
    )


# ==============================================================================
# Quiz grading
# ==============================================================================


def validate_answers(questions: Sequence[Question], answers: Sequence[SubmittedAnswer]) -> None:
    """Check that answers cover every question exactly once.

    Raises:
        ValidationError: On missing, unknown or duplicate question ids.
    """
    question_ids = [q.id for q in questions]
    known = set(question_ids)
    seen: set[str] = set()
    duplicates: list[str] = []
    for a in answers:
        if a.question_id in seen:
            duplicates.append(a.question_id)
        seen.add(a.question_id)

    missing = [qid for qid in question_ids if qid not in seen]
    if missing:
        raise ValidationError(
            f"Missing answers for {len(missing)} question(s)", missing_questions=missing
        )

    unknown = sorted(seen - known)
    if unknown:
        raise ValidationError(
            f"Invalid question ID(s) in answers: {', '.join(unknown)}",
            invalid_questions=unknown,
        )

    if duplicates:
        raise ValidationError(
            "Each question may only be answered once", duplicate_questions=duplicates
        )


def _difficulty_analysis(results: list[GradedAnswer]) -> dict[str, DifficultyStats]:
    analysis: dict[str, DifficultyStats] = {}
    for level in Difficulty:
        bucket = [r for r in results if r.difficulty == level]
        correct = sum(1 for r in bucket if r.is_correct)
        analysis[level.value] = DifficultyStats(
            correct=correct, total=len(bucket), percentage=_percent(correct, len(bucket))
        )
    return analysis


def grade_quiz(
    questions: Sequence[Question],
    answers: Sequence[SubmittedAnswer],
    options: GradingOptions | None = None,
) -> GradingResponse:
    """Grade a submission.

    Results follow question order. Callers are expected to run
    :func:`validate_answers` first; unanswered questions score zero here.

    Raises:
        MalformedQuizError: If the questions are worth no points in total.
    """
    options = options or GradingOptions()

    max_possible = sum(q.points for q in questions)
    if max_possible <= 0:
        raise MalformedQuizError("Quiz has no gradable points")

    by_id = {a.question_id: a for a in answers}
    results = [
        grade_question(q, by_id.get(q.id), options.show_correct_answers) for q in questions
    ]

    total_points = round_half_up(sum(r.points for r in results), 2)
    percentage = _percent(total_points, max_possible)
    passed = percentage >= options.passing_score

    correct = sum(1 for r in results if r.is_correct)
    partial = sum(1 for r in results if r.points > 0 and not r.is_correct)
    pending = sum(1 for r in results if r.requires_manual_review)
    time_spent = sum(r.time_spent for r in results)

    summary = GradingSummary(
        total_questions=len(results),
        correct_answers=correct,
        partially_correct=partial,
        incorrect_answers=len(results) - correct - partial - pending,
        pending_review=pending,
        total_points=total_points,
        max_possible_points=max_possible,
        percentage=percentage,
        letter_grade=letter_grade(percentage),
        passed=passed,
        passing_score=options.passing_score,
        time_spent=time_spent,
        average_time_per_question=round_half_up(time_spent / len(results)) if results else 0,
        difficulty_analysis=_difficulty_analysis(results),
        feedback=build_feedback(percentage, passed),
    )

    return GradingResponse(results=results, summary=summary)
