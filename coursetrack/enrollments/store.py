"""Enrollment persistence.

Creation uses ``INSERT ... IF NOT EXISTS`` keyed on (course, user): when two
requests race, one insert is applied and both callers end up with the same
row.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from coursetrack.core.exceptions import PersistenceError
from coursetrack.core.logging import get_logger
from coursetrack.enrollments.models import Enrollment, EnrollmentSource, EnrollmentStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class EnrollmentStore:
    """Cassandra-backed enrollment store."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, status, source, progress_percent,
             enrolled_at, completed_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET progress_percent = ?, status = ?, completed_at = ?, last_accessed_at = ?
            WHERE course_id = ? AND user_id = ?
            IF EXISTS
        """)

        self._upsert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, course_id, status, progress_percent, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

    async def find_by_user_and_course(self, user_id: UUID, course_id: str) -> Enrollment | None:
        """Get enrollment by user and course."""
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def enroll_user(
        self,
        user_id: UUID,
        course_id: str,
        source: EnrollmentSource = EnrollmentSource.MANUAL,
    ) -> tuple[Enrollment, bool]:
        """Create an active enrollment unless one already exists.

        Returns:
            (enrollment, created). When another writer won the insert, the
            existing enrollment is returned with ``created=False``.
        """
        now = datetime.now(UTC)
        enrollment = Enrollment(
            course_id=course_id,
            user_id=user_id,
            status=EnrollmentStatus.ACTIVE.value,
            source=source.value,
            progress_percent=0,
            enrolled_at=now,
            last_accessed_at=now,
        )

        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.course_id,
                enrollment.user_id,
                enrollment.status,
                enrollment.source,
                enrollment.progress_percent,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.last_accessed_at,
            ],
        )

        if not result.was_applied:
            existing = await self.find_by_user_and_course(user_id, course_id)
            if existing is None:
                raise PersistenceError(
                    "Enrollment insert was rejected but no enrollment exists",
                    course_id=course_id,
                )
            logger.info(
                "enrollment_insert_lost_race",
                user_id=str(user_id),
                course_id=course_id,
            )
            return existing, False

        await self._write_lookup(enrollment)
        logger.info(
            "user_enrolled",
            user_id=str(user_id),
            course_id=course_id,
            source=enrollment.source,
        )
        return enrollment, True

    async def update_progress(
        self, user_id: UUID, course_id: str, progress: int
    ) -> Enrollment | None:
        """Mirror overall progress onto the enrollment.

        Overall progress never decreases, so the stored value only moves up
        and a mirror that lands late cannot overwrite a newer percentage.
        Reaching 100 marks an active enrollment completed. Suspended and
        refunded enrollments keep their status.
        """
        enrollment = await self.find_by_user_and_course(user_id, course_id)
        if enrollment is None:
            return None

        now = datetime.now(UTC)
        enrollment.progress_percent = max(enrollment.progress_percent, min(100, progress))
        enrollment.last_accessed_at = now
        if enrollment.progress_percent >= 100 and enrollment.status == EnrollmentStatus.ACTIVE.value:
            enrollment.status = EnrollmentStatus.COMPLETED.value
            enrollment.completed_at = enrollment.completed_at or now

        await self.session.aexecute(
            self._update_progress,
            [
                enrollment.progress_percent,
                enrollment.status,
                enrollment.completed_at,
                enrollment.last_accessed_at,
                enrollment.course_id,
                enrollment.user_id,
            ],
        )
        await self._write_lookup(enrollment)
        return enrollment

    async def _write_lookup(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._upsert_enrollment_by_user,
            [
                enrollment.user_id,
                enrollment.enrolled_at,
                enrollment.course_id,
                enrollment.status,
                enrollment.progress_percent,
                enrollment.last_accessed_at,
            ],
        )
