"""Shared fixtures.

Stores are replaced by in-memory doubles with the same interface and the same
conditional-write semantics as the Cassandra stores: progress updates compare
revisions and enrollment inserts are insert-if-not-exists. Every call yields
to the event loop so ``asyncio.gather`` interleaves concurrent requests.
"""

import asyncio
import os
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_REQUESTS", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coursetrack.auth.security import create_access_token  # noqa: E402
from coursetrack.config.settings import Settings  # noqa: E402
from coursetrack.courses.models import Course  # noqa: E402
from coursetrack.enrollments.models import (  # noqa: E402
    Enrollment,
    EnrollmentSource,
    EnrollmentStatus,
)
from coursetrack.enrollments.service import EnrollmentService  # noqa: E402
from coursetrack.progress.models import Progress  # noqa: E402
from coursetrack.progress.service import ProgressService  # noqa: E402
from coursetrack.quizzes.service import QuizService  # noqa: E402


# ==============================================================================
# In-memory stores
# ==============================================================================


class InMemoryCourseStore:
    def __init__(self, *courses: Course):
        self.courses = {course.id: course for course in courses}

    async def find_by_id(self, course_id: str) -> Course | None:
        await asyncio.sleep(0)
        return self.courses.get(course_id)


class InMemoryProgressStore:
    """Progress documents keyed by (user, course) with revision checks."""

    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, str], tuple[str, int]] = {}
        self.fail_updates = False
        self.always_conflict = False
        self.update_calls = 0

    async def find(self, user_id: UUID, course_id: str) -> Progress | None:
        await asyncio.sleep(0)
        row = self.rows.get((user_id, course_id))
        if row is None:
            return None
        progress = Progress.model_validate_json(row[0])
        progress.revision = row[1]
        return progress

    async def get_or_create_progress(self, user_id: UUID, course_id: str) -> Progress:
        existing = await self.find(user_id, course_id)
        if existing is not None:
            return existing
        await asyncio.sleep(0)
        progress = Progress(user_id=user_id, course_id=course_id)
        self.rows.setdefault((user_id, course_id), (progress.to_document(), 0))
        return await self.find(user_id, course_id)

    async def update(self, progress: Progress) -> bool:
        self.update_calls += 1
        await asyncio.sleep(0)
        if self.fail_updates:
            raise ConnectionError("cassandra unavailable")
        key = (progress.user_id, progress.course_id)
        _, revision = self.rows[key]
        if self.always_conflict or revision != progress.revision:
            return False
        self.rows[key] = (progress.to_document(), revision + 1)
        progress.revision = revision + 1
        return True


class InMemoryEnrollmentStore:
    """Enrollments keyed by (user, course) with insert-if-not-exists."""

    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, str], Enrollment] = {}
        self.insert_calls = 0
        self.created = 0
        self.fail_inserts = False
        self.fail_updates = False

    async def find_by_user_and_course(self, user_id: UUID, course_id: str) -> Enrollment | None:
        await asyncio.sleep(0)
        return self.rows.get((user_id, course_id))

    async def enroll_user(
        self,
        user_id: UUID,
        course_id: str,
        source: EnrollmentSource = EnrollmentSource.MANUAL,
    ) -> tuple[Enrollment, bool]:
        self.insert_calls += 1
        await asyncio.sleep(0)
        if self.fail_inserts:
            raise ConnectionError("cassandra unavailable")
        key = (user_id, course_id)
        if key in self.rows:
            return self.rows[key], False
        enrollment = Enrollment(
            course_id=course_id, user_id=user_id, source=source.value
        )
        self.rows[key] = enrollment
        self.created += 1
        return enrollment, True

    async def update_progress(
        self, user_id: UUID, course_id: str, progress: int
    ) -> Enrollment | None:
        await asyncio.sleep(0)
        if self.fail_updates:
            raise ConnectionError("cassandra unavailable")
        enrollment = self.rows.get((user_id, course_id))
        if enrollment is None:
            return None
        enrollment.progress_percent = max(enrollment.progress_percent, min(100, progress))
        enrollment.last_accessed_at = datetime.now(UTC)
        if enrollment.progress_percent >= 100 and enrollment.status == EnrollmentStatus.ACTIVE.value:
            enrollment.status = EnrollmentStatus.COMPLETED.value
            enrollment.completed_at = enrollment.completed_at or datetime.now(UTC)
        return enrollment

    def add(self, user_id: UUID, course_id: str, status: EnrollmentStatus) -> Enrollment:
        enrollment = Enrollment(course_id=course_id, user_id=user_id, status=status.value)
        self.rows[(user_id, course_id)] = enrollment
        return enrollment


# ==============================================================================
# Course content
# ==============================================================================


def course_document(course_id: str = "course-1", price: float = 0) -> dict[str, Any]:
    """Two sections of five lessons, a lesson quiz, a module quiz and a final."""
    lessons_a: list[dict[str, Any]] = [
        {"id": f"l{i}", "title": f"Lesson {i}", "duration": 600} for i in range(1, 6)
    ]
    lessons_b: list[dict[str, Any]] = [
        {"id": f"l{i}", "title": f"Lesson {i}", "duration": 600} for i in range(6, 11)
    ]
    lessons_a[0]["quiz"] = {
        "id": "quiz-1",
        "title": "Basics Check",
        "settings": {"passingScore": 70, "maxAttempts": 3, "timeLimit": 10},
        "questions": [
            {
                "id": "q1",
                "type": "multiple-choice",
                "questionText": "Pick the second option",
                "options": ["a", "b", "c"],
                "correctAnswer": 1,
                "explanation": "It is b.",
            },
            {
                "id": "q2",
                "type": "true-false",
                "questionText": "The sky is blue",
                "correctAnswer": True,
            },
        ],
    }
    return {
        "id": course_id,
        "title": "Intro Course",
        "price": price,
        "sections": [
            {
                "id": "s1",
                "title": "Getting Started",
                "lessons": lessons_a,
                "moduleQuiz": {
                    "title": "Module 1 Review",
                    "questions": [
                        {
                            "id": "m1",
                            "type": "fill-blank",
                            "questionText": "Capital of France",
                            "correctAnswer": ["Paris"],
                        }
                    ],
                },
            },
            {"id": "s2", "title": "Going Further", "lessons": lessons_b},
        ],
        "finalAssessment": {
            "id": "final",
            "title": "Final Exam",
            "questions": [
                {
                    "id": "f1",
                    "type": "multiple-select",
                    "questionText": "Pick a and c",
                    "options": ["a", "b", "c"],
                    "correctAnswer": [0, 2],
                    "points": 2,
                }
            ],
        },
    }


def make_course(course_id: str = "course-1", price: float = 0) -> Course:
    return Course.model_validate(course_document(course_id, price))


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="testing", log_to_file=False)


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def course() -> Course:
    return make_course()


@pytest.fixture
def paid_course() -> Course:
    return make_course("paid-course", price=49.9)


@pytest.fixture
def course_store(course: Course, paid_course: Course) -> InMemoryCourseStore:
    return InMemoryCourseStore(course, paid_course)


@pytest.fixture
def progress_store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def enrollment_store() -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore()


@pytest.fixture
def enrollment_service(enrollment_store: InMemoryEnrollmentStore) -> EnrollmentService:
    return EnrollmentService(enrollment_store)


@pytest.fixture
def progress_service(
    progress_store: InMemoryProgressStore,
    course_store: InMemoryCourseStore,
    enrollment_service: EnrollmentService,
    settings: Settings,
) -> ProgressService:
    return ProgressService(progress_store, course_store, enrollment_service, settings)


@pytest.fixture
def quiz_service(
    progress_service: ProgressService,
    enrollment_service: EnrollmentService,
    settings: Settings,
) -> QuizService:
    return QuizService(progress_service, enrollment_service, settings)


@pytest.fixture
def client(
    progress_service: ProgressService,
    quiz_service: QuizService,
    enrollment_service: EnrollmentService,
) -> TestClient:
    """Test client with services wired on app.state (lifespan not started)."""
    from coursetrack.main import create_app

    app = create_app()
    app.state.enrollment_service = enrollment_service
    app.state.progress_service = progress_service
    app.state.quiz_service = quiz_service
    return TestClient(app)


@pytest.fixture
def auth_headers(user_id: UUID) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user_id), "email": "learner@example.com", "role": "student"}
    )
    return {"Authorization": f"Bearer {token}"}


