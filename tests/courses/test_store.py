"""Tests for the course content store (Cassandra and Redis mocked)."""

import json
from unittest.mock import AsyncMock, Mock

import pytest
import redis.asyncio as redis
from cassandra.cluster import Session

from coursetrack.core.exceptions import MalformedQuizError
from coursetrack.courses.store import CourseContentStore
from tests.conftest import course_document, make_course


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock()
    return session


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis_mock = AsyncMock()
    redis_mock.get = AsyncMock(return_value=None)
    redis_mock.setex = AsyncMock(return_value=True)
    return redis_mock


def _row(content: str | None, version: int = 1) -> Mock:
    row = Mock()
    row.content = content
    row.version = version
    return row


def _result(row) -> Mock:
    result = Mock()
    result.one = Mock(return_value=row)
    return result


@pytest.mark.asyncio
async def test_find_reads_cassandra_and_caches(mock_session, mock_redis) -> None:
    mock_session.aexecute.return_value = _result(_row(json.dumps(course_document())))
    store = CourseContentStore(mock_session, "test_keyspace", redis=mock_redis)

    course = await store.find_by_id("course-1")

    assert course is not None
    assert course.id == "course-1"
    assert len(course.sections) == 2
    mock_redis.setex.assert_awaited_once()
    key, ttl, _ = mock_redis.setex.await_args.args
    assert key == "course:course-1"
    assert ttl == 300


@pytest.mark.asyncio
async def test_find_uses_cache_hit(mock_session, mock_redis) -> None:
    mock_redis.get.return_value = make_course().model_dump_json()
    store = CourseContentStore(mock_session, "test_keyspace", redis=mock_redis)

    course = await store.find_by_id("course-1")

    assert course == make_course()
    mock_session.aexecute.assert_not_awaited()


@pytest.mark.asyncio
async def test_cache_errors_fall_back_to_cassandra(mock_session, mock_redis) -> None:
    mock_redis.get.side_effect = redis.ConnectionError("down")
    mock_redis.setex.side_effect = redis.ConnectionError("down")
    mock_session.aexecute.return_value = _result(_row(json.dumps(course_document())))
    store = CourseContentStore(mock_session, "test_keyspace", redis=mock_redis)

    course = await store.find_by_id("course-1")

    assert course is not None


@pytest.mark.asyncio
async def test_missing_course(mock_session) -> None:
    mock_session.aexecute.return_value = _result(None)
    store = CourseContentStore(mock_session, "test_keyspace")

    assert await store.find_by_id("nope") is None


@pytest.mark.asyncio
async def test_invalid_content_raises(mock_session) -> None:
    broken = {"id": "c", "sections": [{"id": "s", "moduleQuiz": {"questions": [{"id": "q", "type": "poll"}]}}]}
    mock_session.aexecute.return_value = _result(_row(json.dumps(broken)))
    store = CourseContentStore(mock_session, "test_keyspace")

    with pytest.raises(MalformedQuizError):
        await store.find_by_id("c")
