"""Progress persistence.

One row per (user, course) holding the JSON document and a revision counter.
``update`` only applies when the stored revision still matches the one the
caller read, so a stale writer gets ``False`` back and must re-read.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from coursetrack.core.exceptions import PersistenceError
from coursetrack.core.logging import get_logger
from coursetrack.progress.models import Progress


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class ProgressStore:
    """Cassandra-backed progress document store."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_progress = self.session.prepare(f"""
            SELECT document, revision FROM {self.keyspace}.progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.progress
            (user_id, course_id, document, revision, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.progress
            SET document = ?, revision = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ?
            IF revision = ?
        """)

    async def find(self, user_id: UUID, course_id: str) -> Progress | None:
        """Get the progress document, or None if the learner has none yet."""
        result = await self.session.aexecute(self._get_progress, [user_id, course_id])
        row = result.one()
        return Progress.from_row(row) if row else None

    async def get_or_create_progress(self, user_id: UUID, course_id: str) -> Progress:
        """Return the stored document, creating an empty one on first access."""
        existing = await self.find(user_id, course_id)
        if existing is not None:
            return existing

        progress = Progress(user_id=user_id, course_id=course_id)
        result = await self.session.aexecute(
            self._insert_progress,
            [
                user_id,
                course_id,
                progress.to_document(),
                0,
                progress.created_at,
                progress.updated_at,
            ],
        )
        if result.was_applied:
            logger.info("progress_created", user_id=str(user_id), course_id=course_id)
            return progress

        # Another request created it first
        existing = await self.find(user_id, course_id)
        if existing is None:
            raise PersistenceError(
                "Progress insert was rejected but no progress exists",
                course_id=course_id,
            )
        return existing

    async def update(self, progress: Progress) -> bool:
        """Write the document if nobody else wrote since it was read.

        On success the in-memory revision is advanced.

        Returns:
            True if applied, False on a revision conflict.
        """
        expected = progress.revision
        progress.updated_at = datetime.now(UTC)
        result = await self.session.aexecute(
            self._update_progress,
            [
                progress.to_document(),
                expected + 1,
                progress.updated_at,
                progress.user_id,
                progress.course_id,
                expected,
            ],
        )
        if not result.was_applied:
            logger.debug(
                "progress_revision_conflict",
                user_id=str(progress.user_id),
                course_id=progress.course_id,
                revision=expected,
            )
            return False

        progress.revision = expected + 1
        return True
