"""Progress document for one learner in one course.

Cassandra stores the whole document as JSON next to a ``revision`` counter.
Every write is a compare-and-set on that revision, so concurrent writers
re-read and re-apply their change instead of overwriting each other.

All changes go through the merge methods below:

- completed lessons only grow (set-union, insertion ordered)
- lesson ``time_spent`` takes the max, logs are appended
- quiz attempts are appended; ``best_*`` take the max and ``passed`` is sticky
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coursetrack.grading.schemas import GradedAnswer


# ==============================================================================
# Helper Functions
# ==============================================================================


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _union(existing: list[Any], incoming: list[Any]) -> list[Any]:
    """Append items from ``incoming`` that are not already present."""
    merged = list(existing)
    for item in incoming:
        if item not in merged:
            merged.append(item)
    return merged


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress (
    user_id UUID,
    course_id TEXT,
    document TEXT,
    revision INT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id))
)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Attempt Ledger
# ==============================================================================


class Attempt(BaseModel):
    """One graded submission. Never modified after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    attempt_number: int
    score: float
    max_score: float
    percentage: int
    passed: bool
    started_at: datetime
    completed_at: datetime
    time_spent: int = 0
    answers: list[GradedAnswer] = Field(default_factory=list)


class QuizScoreState(BaseModel):
    """Attempt history and derived best/pass state for one quiz."""

    attempts: list[Attempt] = Field(default_factory=list)
    best_score: float = 0
    best_percentage: int = 0
    total_attempts: int = 0
    passed: bool = False

    def record(self, attempt: Attempt) -> None:
        """Append an attempt and refresh the derived fields."""
        self.attempts.append(attempt)
        self.total_attempts = len(self.attempts)
        self.best_score = max(self.best_score, attempt.score)
        self.best_percentage = max(self.best_percentage, attempt.percentage)
        self.passed = self.passed or attempt.passed

    @property
    def best_attempt(self) -> Attempt | None:
        if not self.attempts:
            return None
        # Earliest attempt wins ties
        return max(self.attempts, key=lambda a: (a.percentage, -a.attempt_number))

    @property
    def last_attempt(self) -> Attempt | None:
        return self.attempts[-1] if self.attempts else None

    @property
    def time_spent(self) -> int:
        return sum(a.time_spent for a in self.attempts)


# ==============================================================================
# Lesson state
# ==============================================================================


class LessonProgressState(BaseModel):
    """Per-lesson activity for one learner."""

    time_spent: int = 0
    last_position: float = 0
    interactions: list[dict[str, Any]] = Field(default_factory=list)
    notes: list[Any] = Field(default_factory=list)
    bookmarks: list[Any] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None


class LessonActivity(BaseModel):
    """One lesson-progress event from a client."""

    time_spent: int = Field(default=0, ge=0)
    current_position: float = Field(default=0, ge=0)
    percentage_watched: float = Field(default=0, ge=0, le=100)
    duration: float = Field(default=0, ge=0)
    interactions: list[dict[str, Any]] = Field(default_factory=list)
    notes: list[Any] = Field(default_factory=list)
    bookmarks: list[Any] = Field(default_factory=list)
    is_completed: bool = False


# ==============================================================================
# Progress aggregate
# ==============================================================================


class Progress(BaseModel):
    """Learner progress in a course."""

    user_id: UUID
    course_id: str
    completed_lessons: list[str] = Field(default_factory=list)
    lesson_progress: dict[str, LessonProgressState] = Field(default_factory=dict)
    quiz_scores: dict[str, QuizScoreState] = Field(default_factory=dict)
    overall_progress: int = 0
    time_spent: int = 0
    current_lesson: str | None = None
    last_watched: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Storage revision, kept outside the JSON document
    revision: int = Field(default=0, exclude=True)

    @classmethod
    def from_row(cls, row: Any) -> "Progress":
        """Create Progress instance from Cassandra row."""
        progress = cls.model_validate_json(row.document)
        progress.revision = row.revision or 0
        return progress

    def to_document(self) -> str:
        return self.model_dump_json()

    # ------------------------------------------------------------------
    # Merge operations
    # ------------------------------------------------------------------

    def _lesson(self, lesson_id: str, now: datetime) -> LessonProgressState:
        state = self.lesson_progress.get(lesson_id)
        if state is None:
            state = LessonProgressState(started_at=now)
            self.lesson_progress[lesson_id] = state
        return state

    def mark_lesson_completed(self, lesson_id: str, now: datetime | None = None) -> bool:
        """Add a lesson to the completed set.

        Returns:
            True if the lesson was newly completed, False on replays.
        """
        now = now or utc_now()
        state = self._lesson(lesson_id, now)
        if state.completed_at is None:
            state.completed_at = now
        if lesson_id in self.completed_lessons:
            return False
        self.completed_lessons.append(lesson_id)
        return True

    def apply_lesson_activity(
        self,
        lesson_id: str,
        activity: LessonActivity,
        completion_threshold: float,
        now: datetime | None = None,
    ) -> bool:
        """Merge a lesson-progress event.

        Lesson time and position only move forward, and the course total
        grows by the lesson's increase, so a replayed or late event leaves
        both unchanged.

        Returns:
            True if this event newly completed the lesson.
        """
        now = now or utc_now()
        state = self._lesson(lesson_id, now)

        added_time = max(0, activity.time_spent - state.time_spent)
        state.time_spent += added_time
        state.last_position = max(state.last_position, activity.current_position)
        state.interactions.extend(activity.interactions)
        if activity.percentage_watched > 0:
            state.interactions.append(
                {
                    "type": "video_progress",
                    "timestamp": now.isoformat(),
                    "data": {
                        "current_position": activity.current_position,
                        "percentage_watched": activity.percentage_watched,
                        "duration": activity.duration,
                    },
                }
            )
        state.notes.extend(activity.notes)
        state.bookmarks.extend(activity.bookmarks)

        self.time_spent += added_time
        self.current_lesson = lesson_id
        self.last_watched = now

        if activity.is_completed or activity.percentage_watched >= completion_threshold:
            return self.mark_lesson_completed(lesson_id, now)
        return False

    def record_attempt(self, quiz_id: str, attempt: Attempt) -> QuizScoreState:
        """Append an attempt to the quiz's ledger."""
        state = self.quiz_scores.setdefault(quiz_id, QuizScoreState())
        state.record(attempt)
        return state

    def attempts_for(self, quiz_id: str) -> int:
        state = self.quiz_scores.get(quiz_id)
        return state.total_attempts if state else 0

    def merge_snapshot(
        self, snapshot: "ProgressSnapshot", now: datetime | None = None
    ) -> list[str]:
        """Merge a client snapshot.

        Completed lessons are unioned, times take the max, and lists gain
        the entries they do not already hold, so replaying the same
        snapshot changes nothing.

        Returns:
            Lesson ids newly completed by the snapshot.
        """
        now = now or utc_now()
        newly_completed: list[str] = []

        for lesson_id, incoming in snapshot.lesson_progress.items():
            state = self._lesson(lesson_id, ensure_utc_aware(incoming.started_at) or now)
            state.time_spent = max(state.time_spent, incoming.time_spent)
            state.last_position = max(state.last_position, incoming.last_position)
            state.interactions = _union(state.interactions, incoming.interactions)
            state.notes = _union(state.notes, incoming.notes)
            state.bookmarks = _union(state.bookmarks, incoming.bookmarks)
            if incoming.completed and self.mark_lesson_completed(lesson_id, now):
                newly_completed.append(lesson_id)

        for lesson_id in snapshot.completed_lessons:
            if self.mark_lesson_completed(lesson_id, now):
                newly_completed.append(lesson_id)

        self.time_spent = max(self.time_spent, snapshot.time_spent)
        if snapshot.current_lesson:
            self.current_lesson = snapshot.current_lesson
        return newly_completed


# ==============================================================================
# Client snapshots
# ==============================================================================


class LessonSnapshot(BaseModel):
    """Client-side lesson state captured while offline."""

    time_spent: int = Field(default=0, ge=0)
    last_position: float = Field(default=0, ge=0)
    interactions: list[dict[str, Any]] = Field(default_factory=list)
    notes: list[Any] = Field(default_factory=list)
    bookmarks: list[Any] = Field(default_factory=list)
    started_at: datetime | None = None
    completed: bool = False


class ProgressSnapshot(BaseModel):
    """Client-side course progress to reconcile with the server."""

    completed_lessons: list[str] = Field(default_factory=list)
    lesson_progress: dict[str, LessonSnapshot] = Field(default_factory=dict)
    time_spent: int = Field(default=0, ge=0)
    current_lesson: str | None = None
