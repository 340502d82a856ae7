"""Traversal and lookups over the course content tree.

All walks go through :func:`walk_course` with a :class:`CourseVisitor`, so
section/lesson/quiz ordering is defined in one place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from coursetrack.core.exceptions import NotFoundError
from coursetrack.courses.models import (
    Course,
    Lesson,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Quiz,
    QuizSettings,
    Section,
    TrueFalseQuestion,
)


class QuizKind(str, Enum):
    """Where a quiz sits in the tree."""

    LESSON = "lesson"
    MODULE = "module"
    FINAL = "final"


FINAL_ORDER = 9999

V = TypeVar("V", bound="CourseVisitor")


# ==============================================================================
# Visitor
# ==============================================================================


class CourseVisitor:
    """Base visitor. Override the hooks you need."""

    def visit_course(self, course: Course) -> None:
        pass

    def visit_section(self, section: Section, index: int) -> None:
        pass

    def visit_lesson(self, lesson: Lesson, section: Section, index: int) -> None:
        pass

    def visit_quiz(
        self,
        quiz: Quiz,
        kind: QuizKind,
        section: Section | None,
        lesson: Lesson | None,
        order: int,
    ) -> None:
        pass


def walk_course(course: Course, visitor: V) -> V:
    """Walk sections, lessons, lesson quizzes, module quizzes, then the final."""
    visitor.visit_course(course)
    for s_idx, section in enumerate(course.sections):
        visitor.visit_section(section, s_idx)
        for l_idx, lesson in enumerate(section.lessons):
            visitor.visit_lesson(lesson, section, l_idx)
            if lesson.quiz is not None:
                visitor.visit_quiz(
                    lesson.quiz, QuizKind.LESSON, section, lesson, s_idx * 100 + l_idx
                )
        if section.module_quiz is not None:
            visitor.visit_quiz(
                section.module_quiz, QuizKind.MODULE, section, None, s_idx * 100 + 99
            )
    if course.final_assessment is not None:
        visitor.visit_quiz(course.final_assessment, QuizKind.FINAL, None, None, FINAL_ORDER)
    return visitor


# ==============================================================================
# Quiz sources
# ==============================================================================


@dataclass(frozen=True)
class AuthoredQuiz:
    """A quiz written by the course author."""

    quiz: Quiz
    quiz_id: str
    kind: QuizKind
    order: int
    section: Section | None = None
    lesson: Lesson | None = None
    aliases: tuple[str, ...] = field(default=())

    synthesized = False

    @property
    def title(self) -> str:
        if self.quiz.title:
            return self.quiz.title
        if self.kind == QuizKind.FINAL:
            return "Final Assessment"
        if self.lesson is not None:
            return f"{self.lesson.title} Quiz"
        return f"{self.section.title} Assessment" if self.section else "Quiz"

    @property
    def module_title(self) -> str:
        if self.kind == QuizKind.FINAL:
            return "Final Assessment"
        return self.section.title if self.section else ""

    @property
    def report_type(self) -> str:
        """Grade report bucket: lesson and section quizzes count as modules."""
        return "final" if self.kind == QuizKind.FINAL else "module"

    def max_attempts(self, default: int) -> int:
        return self.quiz.settings.max_attempts or default

    def passing_score(self, default: int) -> int:
        score = self.quiz.settings.passing_score
        return default if score is None else score

    def matches(self, quiz_id: str) -> bool:
        return quiz_id == self.quiz_id or quiz_id in self.aliases


@dataclass(frozen=True)
class SynthesizedQuiz(AuthoredQuiz):
    """A practice quiz built from the fixed template for a course with none."""

    synthesized = True


QuizSource = AuthoredQuiz | SynthesizedQuiz


class _QuizCollector(CourseVisitor):
    def __init__(self) -> None:
        self.course_id = ""
        self.sources: list[AuthoredQuiz] = []

    def visit_course(self, course: Course) -> None:
        self.course_id = course.id

    def visit_quiz(self, quiz, kind, section, lesson, order) -> None:
        if kind == QuizKind.LESSON:
            owner = lesson.id
            default_id = f"{owner}_quiz"
            aliases = (f"{owner}_quiz", f"quiz_{owner}", f"module-quiz-{owner}")
        elif kind == QuizKind.MODULE:
            owner = section.id
            default_id = f"module-quiz-{owner}"
            aliases = (f"{owner}_quiz", f"quiz_{owner}", f"module-quiz-{owner}")
        else:
            default_id = f"final-assessment-{self.course_id}"
            aliases = (f"final-assessment-{self.course_id}", "final-assessment")

        self.sources.append(
            AuthoredQuiz(
                quiz=quiz,
                quiz_id=quiz.id or default_id,
                kind=kind,
                order=order,
                section=section,
                lesson=lesson,
                aliases=aliases,
            )
        )


def authored_quizzes(course: Course) -> list[AuthoredQuiz]:
    """Every authored quiz in tree order, including ones without questions."""
    return walk_course(course, _QuizCollector()).sources


def _practice_quiz(section: Section, position: int) -> Quiz:
    key = min(position, 2)
    levels = [
        "Basic fundamentals and introduction",
        "Intermediate concepts and applications",
        "Advanced techniques and best practices",
        "None of the above",
    ]
    objectives = [
        "Understanding basic principles",
        "Applying intermediate concepts",
        "Mastering advanced techniques",
        "All of the above",
    ]
    title = section.title or f"Module {position + 1}"
    return Quiz(
        id=f"practice-quiz-{section.id}",
        title=f"{title} Assessment",
        description=f"Test your understanding of {title} concepts and material.",
        questions=[
            MultipleChoiceQuestion(
                id=f"{section.id}-q1",
                type="multiple-choice",
                question_text=f"Which of the following best describes the main concept covered in {title}?",
                options=levels,
                correct_answer=key,
            ),
            TrueFalseQuestion(
                id=f"{section.id}-q2",
                type="true-false",
                question_text=f"{title} builds upon concepts from previous modules.",
                correct_answer=position > 0,
            ),
            MultipleChoiceQuestion(
                id=f"{section.id}-q3",
                type="multiple-choice",
                question_text=f"What is the primary learning objective of {title}?",
                options=objectives,
                correct_answer=key,
            ),
        ],
        settings=QuizSettings(passing_score=70, max_attempts=3),
    )


def _practice_final(course: Course) -> Quiz:
    return Quiz(
        id=f"practice-final-{course.id}",
        title="Final Course Assessment",
        description="Comprehensive assessment covering all course material and concepts.",
        questions=[
            MultipleChoiceQuestion(
                id="final-q1",
                type="multiple-choice",
                question_text="Which statement best describes the overall course content?",
                points=2,
                options=[
                    "A comprehensive journey from basics to advanced concepts",
                    "Only introductory material",
                    "Advanced concepts only",
                    "Unrelated topics",
                ],
                correct_answer=0,
            ),
            MultipleSelectQuestion(
                id="final-q2",
                type="multiple-select",
                question_text="What skills have you developed through this course? (Select all that apply)",
                points=2,
                options=[
                    "Critical thinking",
                    "Problem solving",
                    "Practical application",
                    "None of the above",
                ],
                correct_answer=[0, 1, 2],
            ),
        ],
        settings=QuizSettings(passing_score=70, max_attempts=3),
    )


def synthesized_quizzes(course: Course) -> list[SynthesizedQuiz]:
    """Template practice quizzes: one per section plus a final."""
    sources: list[SynthesizedQuiz] = []
    for idx, section in enumerate(course.sections):
        quiz = _practice_quiz(section, idx)
        sources.append(
            SynthesizedQuiz(
                quiz=quiz,
                quiz_id=quiz.id,
                kind=QuizKind.MODULE,
                order=idx * 100 + 99,
                section=section,
            )
        )
    final = _practice_final(course)
    sources.append(
        SynthesizedQuiz(quiz=final, quiz_id=final.id, kind=QuizKind.FINAL, order=FINAL_ORDER)
    )
    return sources


def quiz_sources(course: Course, *, synthesize: bool = False) -> list[QuizSource]:
    """Resolve the quizzes a learner sees for a course.

    Authored quizzes win. Template quizzes are only produced when the course
    has no authored quiz with questions and ``synthesize`` is enabled.
    """
    authored = authored_quizzes(course)
    if any(source.quiz.questions for source in authored):
        return list(authored)
    if synthesize:
        return list(synthesized_quizzes(course))
    return list(authored)


def resolve_quiz(course: Course, quiz_id: str, *, synthesize: bool = False) -> QuizSource:
    """Find a quiz by its id or one of its legacy aliases.

    Raises:
        NotFoundError: If no quiz in the course answers to ``quiz_id``.
    """
    sources = quiz_sources(course, synthesize=synthesize)
    for source in sources:
        if source.quiz_id == quiz_id:
            return source
    for source in sources:
        if source.matches(quiz_id):
            return source
    raise NotFoundError("Quiz not found in course", course_id=course.id, quiz_id=quiz_id)


# ==============================================================================
# Lessons and sections
# ==============================================================================


class _LessonCollector(CourseVisitor):
    def __init__(self) -> None:
        self.lessons: dict[str, tuple[Lesson, Section]] = {}

    def visit_lesson(self, lesson, section, index) -> None:
        self.lessons.setdefault(lesson.id, (lesson, section))


def lesson_index(course: Course) -> dict[str, tuple[Lesson, Section]]:
    """Ordered ``{lesson_id: (lesson, section)}`` for every reachable lesson."""
    return walk_course(course, _LessonCollector()).lessons


def lesson_ids(course: Course) -> list[str]:
    return list(lesson_index(course))


def total_lessons(course: Course) -> int:
    return len(lesson_index(course))


def find_lesson(course: Course, lesson_id: str) -> tuple[Lesson, Section]:
    """Look up a lesson.

    Raises:
        NotFoundError: If the lesson is not part of the course.
    """
    found = lesson_index(course).get(lesson_id)
    if found is None:
        raise NotFoundError(
            "Lesson not found in course", course_id=course.id, lesson_id=lesson_id
        )
    return found


def is_section_complete(section: Section, completed_lessons: set[str]) -> bool:
    """A section is complete when every one of its lessons is completed.

    Sections without lessons are never complete.
    """
    if not section.lessons:
        return False
    return all(lesson.id in completed_lessons for lesson in section.lessons)
