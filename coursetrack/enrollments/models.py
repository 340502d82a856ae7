"""Database models for course enrollments.

Cassandra table definitions for:
- Enrollments: one row per (course, user), written with lightweight
  transactions so concurrent first access creates exactly one row
- Lookup table: enrollments by user
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ACTIVE = "active"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    REFUNDED = "refunded"


# Statuses that may read and record progress
ACCESS_STATUSES = frozenset({EnrollmentStatus.ACTIVE.value, EnrollmentStatus.COMPLETED.value})


class EnrollmentSource(str, Enum):
    """How the enrollment was created."""

    MANUAL = "manual"
    AUTO = "auto"


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by course_id: "who is enrolled in this course?"
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id TEXT,
    user_id UUID,
    status TEXT,
    source TEXT,
    progress_percent INT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (course_id, user_id)
)
"""

# Lookup: courses per user
ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    course_id TEXT,
    status TEXT,
    progress_percent INT,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (user_id, enrolled_at, course_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, course_id ASC)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        course_id: Course ID
        user_id: User UUID
        status: active, completed, suspended or refunded
        source: manual or auto
        progress_percent: Rounded mirror of the learner's overall progress
        enrolled_at: Enrollment timestamp
        completed_at: Set once when progress first reaches 100
        last_accessed_at: Last progress write
    """

    def __init__(
        self,
        course_id: str,
        user_id: UUID,
        status: str = EnrollmentStatus.ACTIVE.value,
        source: str = EnrollmentSource.MANUAL.value,
        progress_percent: int = 0,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.course_id = course_id
        self.user_id = user_id
        self.status = status
        self.source = source
        self.progress_percent = progress_percent
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)

    @property
    def has_access(self) -> bool:
        return self.status in ACCESS_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED.value

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            course_id=row.course_id,
            user_id=row.user_id,
            status=row.status or EnrollmentStatus.ACTIVE.value,
            source=row.source or EnrollmentSource.MANUAL.value,
            progress_percent=row.progress_percent or 0,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
            last_accessed_at=row.last_accessed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "course_id": self.course_id,
            "user_id": self.user_id,
            "status": self.status,
            "source": self.source,
            "progress_percent": self.progress_percent,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "last_accessed_at": self.last_accessed_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status} {self.progress_percent}%>"
        )
