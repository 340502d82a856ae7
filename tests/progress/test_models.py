"""Tests for progress document merge operations."""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from coursetrack.progress.models import (
    Attempt,
    LessonActivity,
    LessonSnapshot,
    Progress,
    ProgressSnapshot,
    QuizScoreState,
)


@pytest.fixture
def progress() -> Progress:
    return Progress(user_id=uuid4(), course_id="course-1")


def make_attempt(number: int, percentage: int, passed: bool, time_spent: int = 60) -> Attempt:
    now = datetime.now(UTC)
    return Attempt(
        id=f"a{number}",
        attempt_number=number,
        score=percentage / 50,
        max_score=2,
        percentage=percentage,
        passed=passed,
        started_at=now,
        completed_at=now,
        time_spent=time_spent,
    )


class TestLessonCompletion:
    def test_completion_is_idempotent(self, progress: Progress) -> None:
        assert progress.mark_lesson_completed("l1") is True
        stamped = progress.lesson_progress["l1"].completed_at

        assert progress.mark_lesson_completed("l1") is False
        assert progress.completed_lessons == ["l1"]
        assert progress.lesson_progress["l1"].completed_at == stamped

    def test_activity_merges_with_max_and_append(self, progress: Progress) -> None:
        progress.apply_lesson_activity(
            "l1", LessonActivity(time_spent=120, notes=["n1"], bookmarks=[10]), 90
        )
        progress.apply_lesson_activity(
            "l1", LessonActivity(time_spent=60, current_position=30, notes=["n2"]), 90
        )

        state = progress.lesson_progress["l1"]
        assert state.time_spent == 120
        assert state.last_position == 30
        assert state.notes == ["n1", "n2"]
        assert state.bookmarks == [10]
        assert progress.current_lesson == "l1"
        assert progress.last_watched is not None
        assert progress.completed_lessons == []

    def test_replayed_activity_keeps_course_totals(self, progress: Progress) -> None:
        event = LessonActivity(time_spent=120, current_position=30, percentage_watched=40)

        progress.apply_lesson_activity("l1", event, 90)
        progress.apply_lesson_activity("l1", event, 90)

        assert progress.lesson_progress["l1"].time_spent == 120
        assert progress.time_spent == 120

    def test_course_time_grows_by_lesson_increase(self, progress: Progress) -> None:
        progress.apply_lesson_activity("l1", LessonActivity(time_spent=100), 90)
        progress.apply_lesson_activity("l1", LessonActivity(time_spent=250), 90)
        progress.apply_lesson_activity("l2", LessonActivity(time_spent=40), 90)

        assert progress.time_spent == 290

    def test_out_of_order_events_converge(self) -> None:
        early = LessonActivity(time_spent=60, current_position=60, percentage_watched=20)
        late = LessonActivity(time_spent=300, current_position=280, percentage_watched=95)

        in_order = Progress(user_id=uuid4(), course_id="course-1")
        in_order.apply_lesson_activity("l1", early, 90)
        in_order.apply_lesson_activity("l1", late, 90)
        reversed_order = Progress(user_id=uuid4(), course_id="course-1")
        reversed_order.apply_lesson_activity("l1", late, 90)
        reversed_order.apply_lesson_activity("l1", early, 90)

        for p in (in_order, reversed_order):
            assert p.time_spent == 300
            assert p.lesson_progress["l1"].time_spent == 300
            assert p.lesson_progress["l1"].last_position == 280
            assert p.completed_lessons == ["l1"]

    def test_watch_threshold_completes_lesson(self, progress: Progress) -> None:
        newly = progress.apply_lesson_activity(
            "l1", LessonActivity(percentage_watched=90, current_position=540, duration=600), 90
        )

        assert newly is True
        assert progress.completed_lessons == ["l1"]
        interaction = progress.lesson_progress["l1"].interactions[-1]
        assert interaction["type"] == "video_progress"
        assert interaction["data"]["percentage_watched"] == 90

    def test_below_threshold_does_not_complete(self, progress: Progress) -> None:
        progress.apply_lesson_activity("l1", LessonActivity(percentage_watched=89.9), 90)
        assert progress.completed_lessons == []

    def test_explicit_completion_flag(self, progress: Progress) -> None:
        assert progress.apply_lesson_activity("l1", LessonActivity(is_completed=True), 90)
        assert not progress.apply_lesson_activity("l1", LessonActivity(is_completed=True), 90)
        assert progress.completed_lessons == ["l1"]


class TestQuizScoreState:
    def test_best_never_decreases_and_pass_is_sticky(self) -> None:
        state = QuizScoreState()
        history = []
        for number, (percentage, passed) in enumerate(
            [(40, False), (80, True), (30, False)], start=1
        ):
            state.record(make_attempt(number, percentage, passed))
            history.append((state.best_percentage, state.passed))

        assert history == [(40, False), (80, True), (80, True)]
        assert state.total_attempts == len(state.attempts) == 3
        assert state.best_attempt.attempt_number == 2
        assert state.last_attempt.attempt_number == 3
        assert state.time_spent == 180

    def test_earliest_attempt_wins_a_tie(self) -> None:
        state = QuizScoreState()
        state.record(make_attempt(1, 50, False))
        state.record(make_attempt(2, 50, False))
        assert state.best_attempt.attempt_number == 1

    def test_record_attempt_counts(self, progress: Progress) -> None:
        assert progress.attempts_for("quiz-1") == 0
        progress.record_attempt("quiz-1", make_attempt(1, 50, False))
        assert progress.attempts_for("quiz-1") == 1

    def test_attempts_are_immutable(self) -> None:
        attempt = make_attempt(1, 50, False)
        with pytest.raises(ValueError):
            attempt.percentage = 100


class TestSnapshotMerge:
    def test_replaying_a_snapshot_changes_nothing(self, progress: Progress) -> None:
        progress.mark_lesson_completed("l1")
        snapshot = ProgressSnapshot(
            completed_lessons=["l1", "l2"],
            lesson_progress={
                "l3": LessonSnapshot(time_spent=300, last_position=12, notes=["offline"]),
            },
            time_spent=900,
        )

        first = progress.merge_snapshot(snapshot)
        after_first = progress.model_dump()
        second = progress.merge_snapshot(snapshot)

        assert first == ["l2"]
        assert second == []
        assert progress.model_dump() == after_first
        assert progress.completed_lessons == ["l1", "l2"]
        assert progress.lesson_progress["l3"].notes == ["offline"]
        assert progress.time_spent == 900

    def test_snapshot_never_lowers_server_state(self, progress: Progress) -> None:
        progress.apply_lesson_activity("l1", LessonActivity(time_spent=500, current_position=400), 90)
        progress.merge_snapshot(
            ProgressSnapshot(
                lesson_progress={"l1": LessonSnapshot(time_spent=100, last_position=50)},
                time_spent=10,
            )
        )

        assert progress.lesson_progress["l1"].time_spent == 500
        assert progress.lesson_progress["l1"].last_position == 400
        assert progress.time_spent == 500

    def test_document_round_trip_keeps_revision_out(self, progress: Progress) -> None:
        progress.revision = 7
        progress.record_attempt("quiz-1", make_attempt(1, 100, True))

        document = progress.to_document()

        assert "revision" not in document
        restored = Progress.model_validate_json(document)
        assert restored.quiz_scores["quiz-1"].passed is True
        assert restored.revision == 0
