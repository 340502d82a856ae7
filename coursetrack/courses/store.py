"""Course content store.

Reads the authored course document from Cassandra and caches the validated
JSON in Redis. Course authoring lives elsewhere; ``save`` exists so content
can be loaded by tooling and tests.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError

from coursetrack.core.exceptions import MalformedQuizError
from coursetrack.core.logging import get_logger
from coursetrack.core.redis import course_cache_key
from coursetrack.courses.models import Course


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class CourseContentStore:
    """Read access to authored course content."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: redis.Redis | None = None,
        cache_ttl_seconds: int = 300,
    ):
        """Initialize with Cassandra session and optional Redis cache."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self.cache_ttl_seconds = cache_ttl_seconds
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_course = self.session.prepare(f"""
            SELECT id, content, version FROM {self.keyspace}.courses WHERE id = ?
        """)

        self._upsert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, price, content, version, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

    async def find_by_id(self, course_id: str) -> Course | None:
        """Get a course content tree by ID.

        Raises:
            MalformedQuizError: If the stored document does not parse.
        """
        if self.redis:
            try:
                cached = await self.redis.get(course_cache_key(course_id))
            except redis.RedisError as e:
                logger.warning("course_cache_read_failed", course_id=course_id, error=str(e))
                cached = None
            if cached:
                return Course.model_validate_json(cached)

        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        if not row or not row.content:
            return None

        try:
            course = Course.model_validate_json(row.content)
        except PydanticValidationError as e:
            logger.error(
                "course_content_invalid",
                course_id=course_id,
                version=row.version,
                errors=e.error_count(),
            )
            raise MalformedQuizError(
                "Course content could not be parsed", course_id=course_id
            ) from e

        await self._cache(course)
        return course

    async def save(self, course: Course, version: int = 1) -> None:
        """Store a course content document and refresh the cache."""
        await self.session.aexecute(
            self._upsert_course,
            [
                course.id,
                course.title,
                Decimal(str(course.price)),
                course.model_dump_json(),
                version,
                datetime.now(UTC),
            ],
        )
        await self._cache(course)
        logger.info("course_content_saved", course_id=course.id, version=version)

    async def _cache(self, course: Course) -> None:
        if not self.redis or self.cache_ttl_seconds <= 0:
            return
        try:
            await self.redis.setex(
                course_cache_key(course.id),
                self.cache_ttl_seconds,
                course.model_dump_json(),
            )
        except redis.RedisError as e:
            logger.warning("course_cache_write_failed", course_id=course.id, error=str(e))
