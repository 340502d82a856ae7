"""Pydantic schemas for progress tracking and grade reports.

Request and response models for:
- Lesson progress updates and manual completion
- Offline progress sync
- Course progress view
- Grade report
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from coursetrack.courses.models import CompletionPolicy
from coursetrack.progress.models import (
    LessonActivity,
    LessonProgressState,
    ProgressSnapshot,
)


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class UpdateLessonProgressRequest(LessonActivity):
    """Lesson progress event sent periodically by the player."""


class LessonProgressResult(BaseModel):
    """Lesson state plus the course roll-up after a lesson write."""

    course_id: str
    lesson_id: str
    lesson_completed: bool
    newly_completed: bool = Field(description="True only for the call that completed it")
    section_id: str
    section_complete: bool
    completed_lessons: int
    total_lessons: int
    overall_progress: int = Field(description="0-100 percentage")
    current_lesson: str | None = None
    lesson: LessonProgressState


# ==============================================================================
# Course Progress Schemas
# ==============================================================================


class SectionProgress(BaseModel):
    """Derived completion for one section."""

    section_id: str
    title: str
    completion_policy: CompletionPolicy
    completed_lessons: int
    total_lessons: int
    is_complete: bool


class CourseProgressResponse(BaseModel):
    """Complete course progress for one learner."""

    course_id: str
    user_id: UUID
    completed_lessons: list[str] = Field(default_factory=list)
    total_lessons: int
    overall_progress: int
    time_spent: int = 0
    current_lesson: str | None = None
    resume_lesson_id: str | None = Field(None, description="First lesson not yet completed")
    last_watched: datetime | None = None
    sections: list[SectionProgress] = Field(default_factory=list)
    lesson_progress: dict[str, LessonProgressState] = Field(default_factory=dict)


# ==============================================================================
# Sync Schemas
# ==============================================================================


class SyncProgressRequest(ProgressSnapshot):
    """Client snapshot captured while offline."""


class SyncProgressResponse(BaseModel):
    """Result of merging a client snapshot."""

    resolution: Literal["merged"] = "merged"
    newly_completed: list[str] = Field(default_factory=list)
    ignored_lessons: list[str] = Field(
        default_factory=list, description="Lesson ids not found in the course"
    )
    progress: CourseProgressResponse


# ==============================================================================
# Grade Report Schemas
# ==============================================================================


class QuizGrade(BaseModel):
    """Best result for one attempted quiz."""

    quiz_id: str
    quiz_title: str
    module_title: str
    lesson_title: str | None = None
    type: Literal["module", "final"]
    percentage: int
    passed: bool
    attempts: int
    max_attempts: int
    can_retake: bool
    last_attempt_at: datetime | None = None
    time_spent_minutes: int = 0


class OverallStats(BaseModel):
    """Course-level roll-up of the grade report."""

    overall_grade: int = 0
    letter_grade: str = "F"
    course_passed: bool = False
    total_quizzes: int = 0
    passed_quizzes: int = 0
    modules_completed: int = 0
    completed_lessons: int = 0
    total_lessons: int = 0
    progress_percentage: int = 0


class GradeReport(BaseModel):
    """Per-course grade report."""

    course_id: str
    course_title: str = ""
    grades: list[QuizGrade] = Field(default_factory=list)
    overall_stats: OverallStats = Field(default_factory=OverallStats)
