"""Course content tree.

Courses are authored elsewhere and stored as a single JSON document per
course. This module defines the typed tree used everywhere in the engine:

    Course -> Section -> Lesson -> Quiz (optional)
           -> Section.module_quiz (optional)
           -> Course.final_assessment (optional)

Questions are a tagged union on ``type``. Authored documents use camelCase
keys; both camelCase and snake_case are accepted on input.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_CONTENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id TEXT PRIMARY KEY,
    title TEXT,
    price DECIMAL,
    content TEXT,
    version INT,
    updated_at TIMESTAMP
)
"""

COURSES_TABLES_CQL = [
    COURSE_CONTENT_TABLE_CQL,
]


# ==============================================================================
# Enums
# ==============================================================================


class QuestionType(str, Enum):
    """Supported question types."""

    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    MULTIPLE_SELECT = "multiple-select"
    FILL_BLANK = "fill-blank"
    ESSAY = "essay"
    CODE = "code"
    MATCHING = "matching"
    DRAG_DROP = "drag-drop"


class Difficulty(str, Enum):
    """Question difficulty level."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class CompletionPolicy(str, Enum):
    """How a section is considered complete.

    Only ALL_LESSONS is evaluated; the other policies are carried through
    for reporting and fall back to the all-lessons rule.
    """

    ALL_LESSONS = "all_lessons"
    PERCENTAGE = "percentage"
    TIME = "time"
    ASSESSMENT = "assessment"


class ContentModel(BaseModel):
    """Base for authored content: camelCase aliases, extra keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ==============================================================================
# Questions
# ==============================================================================


class _QuestionBase(ContentModel):
    id: str
    question_text: str = Field(
        default="",
        validation_alias=AliasChoices("questionText", "question_text", "question", "text"),
    )
    points: float = Field(default=1, ge=0)
    explanation: str | None = None
    hints: list[str] = Field(default_factory=list)
    difficulty: Difficulty = Difficulty.MEDIUM
    time_limit: int | None = None


class MultipleChoiceQuestion(_QuestionBase):
    type: Literal["multiple-choice"]
    options: list[str] = Field(default_factory=list)
    correct_answer: int | str


class TrueFalseQuestion(_QuestionBase):
    type: Literal["true-false"]
    correct_answer: bool | str


class MultipleSelectQuestion(_QuestionBase):
    type: Literal["multiple-select"]
    options: list[str] = Field(default_factory=list)
    correct_answer: list[int | str]


class FillBlankQuestion(_QuestionBase):
    type: Literal["fill-blank"]
    correct_answer: str | list[str]

    def accepted_answers(self) -> list[str]:
        answers = (
            self.correct_answer
            if isinstance(self.correct_answer, list)
            else [self.correct_answer]
        )
        return [a.strip().casefold() for a in answers]


class EssayQuestion(_QuestionBase):
    type: Literal["essay"]
    rubric: list[dict[str, Any]] = Field(default_factory=list)


class TestCase(ContentModel):
    """Expected output for one input of a code question."""

    __test__ = False

    input: str = ""
    expected_output: str
    points: float = Field(default=1, ge=0)


class CodeQuestion(_QuestionBase):
    type: Literal["code"]
    code_template: str | None = None
    expected_output: str | None = None
    test_cases: list[TestCase] = Field(default_factory=list)


def answer_text(value: Any) -> str:
    """Textual form used when comparing answers: booleans as "true"/"false"."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _as_pairs(value: dict[str, Any] | list[Any]) -> dict[str, str]:
    """Normalize a mapping or an ordered list into ``{key: value}`` pairs.

    Lists are keyed by position, so an ordering answer compares slot by slot.
    """
    if isinstance(value, dict):
        return {str(k): answer_text(v) for k, v in value.items()}
    return {str(i): answer_text(v) for i, v in enumerate(value)}


class MatchingQuestion(_QuestionBase):
    type: Literal["matching"]
    options: list[str] = Field(default_factory=list)
    correct_answer: dict[str, Any] | list[Any]

    def pairs(self) -> dict[str, str]:
        return _as_pairs(self.correct_answer)


class DragDropQuestion(_QuestionBase):
    type: Literal["drag-drop"]
    options: list[str] = Field(default_factory=list)
    correct_answer: dict[str, Any] | list[Any]

    def pairs(self) -> dict[str, str]:
        return _as_pairs(self.correct_answer)


Question = Annotated[
    MultipleChoiceQuestion
    | TrueFalseQuestion
    | MultipleSelectQuestion
    | FillBlankQuestion
    | EssayQuestion
    | CodeQuestion
    | MatchingQuestion
    | DragDropQuestion,
    Field(discriminator="type"),
]


# ==============================================================================
# Quizzes, lessons, sections, courses
# ==============================================================================


class QuizSettings(ContentModel):
    """Authored quiz settings. Unset values fall back to engine defaults."""

    passing_score: int | None = Field(default=None, ge=0, le=100)
    max_attempts: int | None = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("maxAttempts", "max_attempts", "attempts"),
    )
    # Minutes. Recorded and returned, never enforced server-side.
    time_limit: int | None = None
    show_correct_answers: bool = True


class Quiz(ContentModel):
    id: str | None = None
    title: str = ""
    description: str = ""
    instructions: str = ""
    questions: list[Question] = Field(default_factory=list)
    settings: QuizSettings = Field(default_factory=QuizSettings)

    @property
    def max_points(self) -> float:
        return sum(q.points for q in self.questions)


class Assignment(ContentModel):
    id: str | None = None
    title: str = ""
    description: str = ""
    max_points: float = 0


class Lesson(ContentModel):
    id: str
    title: str = ""
    duration: int = 0
    quiz: Quiz | None = None
    assignment: Assignment | None = None


class CompletionCriteria(ContentModel):
    type: CompletionPolicy = CompletionPolicy.ALL_LESSONS
    threshold: float | None = None


class Section(ContentModel):
    id: str
    title: str = ""
    lessons: list[Lesson] = Field(default_factory=list)
    module_quiz: Quiz | None = None
    completion_criteria: CompletionCriteria = Field(default_factory=CompletionCriteria)


class Course(ContentModel):
    id: str
    title: str = ""
    price: float = 0
    sections: list[Section] = Field(default_factory=list)
    final_assessment: Quiz | None = None

    @property
    def is_free(self) -> bool:
        return self.price <= 0
