"""Progress roll-ups: overall percentage, section completion and grade report.

This is the only place that derives ``overall_progress``; the service stores
whatever :func:`overall_progress` returns inside the same write that changed
the completed lessons or quiz scores.
"""

from collections.abc import Sequence

from coursetrack.config.settings import Settings
from coursetrack.courses.models import Course
from coursetrack.courses.tree import (
    QuizSource,
    is_section_complete,
    lesson_ids,
    total_lessons,
)
from coursetrack.grading.engine import letter_grade, round_half_up
from coursetrack.progress.models import Progress
from coursetrack.progress.schemas import (
    CourseProgressResponse,
    GradeReport,
    OverallStats,
    QuizGrade,
    SectionProgress,
)


def completed_in_course(course: Course, progress: Progress | None) -> list[str]:
    """Completed lesson ids that still exist in the course, in tree order."""
    if progress is None:
        return []
    done = set(progress.completed_lessons)
    return [lesson_id for lesson_id in lesson_ids(course) if lesson_id in done]


def overall_progress(course: Course, progress: Progress | None) -> int:
    """Percentage of course lessons completed, 0-100."""
    total = total_lessons(course)
    if total == 0:
        return 0
    percent = round_half_up(100 * len(completed_in_course(course, progress)) / total)
    return max(0, min(100, percent))


def section_progress(course: Course, progress: Progress | None) -> list[SectionProgress]:
    completed = set(progress.completed_lessons) if progress else set()
    return [
        SectionProgress(
            section_id=section.id,
            title=section.title,
            completion_policy=section.completion_criteria.type,
            completed_lessons=sum(1 for lesson in section.lessons if lesson.id in completed),
            total_lessons=len(section.lessons),
            is_complete=is_section_complete(section, completed),
        )
        for section in course.sections
    ]


def build_course_progress(course: Course, progress: Progress) -> CourseProgressResponse:
    """Full progress view for one learner."""
    all_lessons = lesson_ids(course)
    completed = completed_in_course(course, progress)
    done = set(completed)
    resume = next((lesson_id for lesson_id in all_lessons if lesson_id not in done), None)

    return CourseProgressResponse(
        course_id=course.id,
        user_id=progress.user_id,
        completed_lessons=completed,
        total_lessons=len(all_lessons),
        overall_progress=overall_progress(course, progress),
        time_spent=progress.time_spent,
        current_lesson=progress.current_lesson,
        resume_lesson_id=resume,
        last_watched=progress.last_watched,
        sections=section_progress(course, progress),
        lesson_progress=progress.lesson_progress,
    )


def build_grade_report(
    course: Course,
    progress: Progress | None,
    sources: Sequence[QuizSource],
    settings: Settings,
) -> GradeReport:
    """Grade report over every quiz the learner attempted at least once.

    Quizzes are listed in course order. A learner without progress gets a
    zeroed report.
    """
    lesson_count = total_lessons(course)
    if progress is None:
        return GradeReport(
            course_id=course.id,
            course_title=course.title,
            overall_stats=OverallStats(total_lessons=lesson_count),
        )

    grades: list[QuizGrade] = []
    for source in sorted(sources, key=lambda s: s.order):
        state = progress.quiz_scores.get(source.quiz_id)
        if state is None or state.total_attempts == 0:
            continue
        max_attempts = source.max_attempts(settings.default_max_attempts)
        last = state.last_attempt
        grades.append(
            QuizGrade(
                quiz_id=source.quiz_id,
                quiz_title=source.title,
                module_title=source.module_title,
                lesson_title=source.lesson.title if source.lesson else None,
                type=source.report_type,
                percentage=state.best_percentage,
                passed=state.passed,
                attempts=state.total_attempts,
                max_attempts=max_attempts,
                can_retake=not state.passed and state.total_attempts < max_attempts,
                last_attempt_at=last.completed_at if last else None,
                time_spent_minutes=round_half_up(state.time_spent / 60),
            )
        )

    overall_grade = (
        round_half_up(sum(g.percentage for g in grades) / len(grades)) if grades else 0
    )
    modules_completed = sum(1 for g in grades if g.type == "module" and g.passed)

    stats = OverallStats(
        overall_grade=overall_grade,
        letter_grade=letter_grade(overall_grade),
        course_passed=bool(grades) and overall_grade >= settings.course_passing_grade,
        total_quizzes=len(grades),
        passed_quizzes=sum(1 for g in grades if g.passed),
        modules_completed=modules_completed,
        completed_lessons=len(completed_in_course(course, progress)),
        total_lessons=lesson_count,
        progress_percentage=overall_progress(course, progress),
    )
    return GradeReport(
        course_id=course.id,
        course_title=course.title,
        grades=grades,
        overall_stats=stats,
    )
