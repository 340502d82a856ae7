"""Tests for course tree parsing and traversal."""

import pytest

from coursetrack.core.exceptions import NotFoundError
from coursetrack.courses.models import (
    CompletionPolicy,
    Course,
    FillBlankQuestion,
    MultipleChoiceQuestion,
)
from coursetrack.courses.tree import (
    FINAL_ORDER,
    CourseVisitor,
    QuizKind,
    authored_quizzes,
    find_lesson,
    is_section_complete,
    lesson_ids,
    quiz_sources,
    resolve_quiz,
    total_lessons,
    walk_course,
)
from tests.conftest import course_document


class TestParsing:
    def test_camel_case_document(self, course: Course) -> None:
        quiz = course.sections[0].lessons[0].quiz
        assert quiz is not None
        assert quiz.settings.max_attempts == 3
        assert quiz.settings.passing_score == 70
        assert quiz.settings.time_limit == 10
        assert isinstance(quiz.questions[0], MultipleChoiceQuestion)
        assert quiz.questions[0].question_text == "Pick the second option"
        assert isinstance(course.sections[0].module_quiz.questions[0], FillBlankQuestion)
        assert course.final_assessment.max_points == 2

    def test_snake_case_document(self) -> None:
        course = Course.model_validate(
            {
                "id": "c",
                "sections": [
                    {
                        "id": "s",
                        "lessons": [{"id": "l"}],
                        "module_quiz": {
                            "settings": {"attempts": 5},
                            "questions": [
                                {"id": "q", "type": "true-false", "question": "?", "correct_answer": False}
                            ],
                        },
                        "completion_criteria": {"type": "percentage", "threshold": 80},
                    }
                ],
            }
        )
        section = course.sections[0]
        assert section.module_quiz.settings.max_attempts == 5
        assert section.completion_criteria.type == CompletionPolicy.PERCENTAGE
        assert course.is_free

    def test_price_makes_course_paid(self) -> None:
        assert not Course.model_validate(course_document(price=10)).is_free


class TestTraversal:
    def test_walk_order(self, course: Course) -> None:
        class Recorder(CourseVisitor):
            def __init__(self) -> None:
                self.events: list[str] = []

            def visit_section(self, section, index) -> None:
                self.events.append(f"section:{section.id}")

            def visit_lesson(self, lesson, section, index) -> None:
                if index == 0:
                    self.events.append(f"lesson:{lesson.id}")

            def visit_quiz(self, quiz, kind, section, lesson, order) -> None:
                self.events.append(f"quiz:{kind.value}:{order}")

        events = walk_course(course, Recorder()).events

        assert events == [
            "section:s1",
            "lesson:l1",
            "quiz:lesson:0",
            "quiz:module:99",
            "section:s2",
            "lesson:l6",
            f"quiz:final:{FINAL_ORDER}",
        ]

    def test_lessons(self, course: Course) -> None:
        assert lesson_ids(course) == [f"l{i}" for i in range(1, 11)]
        assert total_lessons(course) == 10
        lesson, section = find_lesson(course, "l7")
        assert lesson.title == "Lesson 7"
        assert section.id == "s2"

    def test_unknown_lesson(self, course: Course) -> None:
        with pytest.raises(NotFoundError):
            find_lesson(course, "nope")

    def test_section_completion(self, course: Course) -> None:
        first = course.sections[0]
        assert is_section_complete(first, {"l1", "l2", "l3", "l4", "l5"})
        assert not is_section_complete(first, {"l1", "l2", "l3", "l4"})

    def test_empty_section_is_never_complete(self) -> None:
        course = Course.model_validate({"id": "c", "sections": [{"id": "s"}]})
        assert not is_section_complete(course.sections[0], set())


class TestQuizSources:
    def test_authored_ids_and_kinds(self, course: Course) -> None:
        sources = authored_quizzes(course)

        assert [(s.quiz_id, s.kind) for s in sources] == [
            ("quiz-1", QuizKind.LESSON),
            ("module-quiz-s1", QuizKind.MODULE),
            ("final", QuizKind.FINAL),
        ]
        assert [s.report_type for s in sources] == ["module", "module", "final"]
        assert sources[0].title == "Basics Check"
        assert sources[1].module_title == "Getting Started"

    def test_resolve_by_alias(self, course: Course) -> None:
        assert resolve_quiz(course, "quiz-1").quiz_id == "quiz-1"
        assert resolve_quiz(course, "l1_quiz").quiz_id == "quiz-1"
        assert resolve_quiz(course, "quiz_s1").quiz_id == "module-quiz-s1"
        assert resolve_quiz(course, "final-assessment").quiz_id == "final"

    def test_resolve_unknown(self, course: Course) -> None:
        with pytest.raises(NotFoundError):
            resolve_quiz(course, "missing")

    def test_limits_fall_back_to_defaults(self, course: Course) -> None:
        lesson_quiz, module_quiz, _ = authored_quizzes(course)
        assert lesson_quiz.max_attempts(5) == 3
        assert module_quiz.max_attempts(5) == 5
        assert module_quiz.passing_score(70) == 70

    def test_practice_quizzes_only_when_enabled(self) -> None:
        bare = Course.model_validate(
            {"id": "c", "sections": [{"id": "s1", "title": "Intro", "lessons": [{"id": "l1"}]}]}
        )

        assert quiz_sources(bare) == []

        sources = quiz_sources(bare, synthesize=True)
        assert [s.quiz_id for s in sources] == ["practice-quiz-s1", "practice-final-c"]
        assert all(s.synthesized for s in sources)
        assert len(sources[0].quiz.questions) == 3

    def test_authored_content_wins_over_practice(self, course: Course) -> None:
        sources = quiz_sources(course, synthesize=True)
        assert not any(s.synthesized for s in sources)
