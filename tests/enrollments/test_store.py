"""Tests for EnrollmentStore (Cassandra mocked)."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from coursetrack.core.exceptions import PersistenceError
from coursetrack.enrollments.models import EnrollmentSource, EnrollmentStatus
from coursetrack.enrollments.store import EnrollmentStore


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock()
    return session


@pytest.fixture
def store(mock_session) -> EnrollmentStore:
    return EnrollmentStore(session=mock_session, keyspace="test_keyspace")


def _lwt(applied: bool) -> Mock:
    result = Mock()
    result.was_applied = applied
    return result


def _row(user_id, course_id: str, status: str = "active", progress: int = 0) -> Mock:
    row = Mock()
    row.course_id = course_id
    row.user_id = user_id
    row.status = status
    row.source = "manual"
    row.progress_percent = progress
    row.enrolled_at = datetime(2026, 1, 1)
    row.completed_at = None
    row.last_accessed_at = None
    return row


def _found(row) -> Mock:
    result = Mock()
    result.one = Mock(return_value=row)
    return result


@pytest.mark.asyncio
async def test_enroll_user_creates(store: EnrollmentStore, mock_session) -> None:
    user_id = uuid4()
    mock_session.aexecute.side_effect = [_lwt(True), Mock()]

    enrollment, created = await store.enroll_user(user_id, "c", EnrollmentSource.AUTO)

    assert created is True
    assert enrollment.source == "auto"
    assert enrollment.status == EnrollmentStatus.ACTIVE.value
    assert mock_session.aexecute.await_count == 2


@pytest.mark.asyncio
async def test_enroll_user_lost_race_returns_winner(store: EnrollmentStore, mock_session) -> None:
    user_id = uuid4()
    mock_session.aexecute.side_effect = [_lwt(False), _found(_row(user_id, "c"))]

    enrollment, created = await store.enroll_user(user_id, "c", EnrollmentSource.AUTO)

    assert created is False
    assert enrollment.source == "manual"
    assert enrollment.enrolled_at.tzinfo is UTC


@pytest.mark.asyncio
async def test_enroll_user_rejected_without_row(store: EnrollmentStore, mock_session) -> None:
    mock_session.aexecute.side_effect = [_lwt(False), _found(None)]

    with pytest.raises(PersistenceError):
        await store.enroll_user(uuid4(), "c")


@pytest.mark.asyncio
async def test_update_progress_completes_at_hundred(store: EnrollmentStore, mock_session) -> None:
    user_id = uuid4()
    mock_session.aexecute.side_effect = [_found(_row(user_id, "c", progress=90)), _lwt(True), Mock()]

    enrollment = await store.update_progress(user_id, "c", 120)

    assert enrollment.progress_percent == 100
    assert enrollment.status == EnrollmentStatus.COMPLETED.value
    assert enrollment.completed_at is not None


@pytest.mark.asyncio
async def test_update_progress_keeps_suspended_status(store: EnrollmentStore, mock_session) -> None:
    user_id = uuid4()
    mock_session.aexecute.side_effect = [
        _found(_row(user_id, "c", status="suspended")),
        _lwt(True),
        Mock(),
    ]

    enrollment = await store.update_progress(user_id, "c", 100)

    assert enrollment.status == "suspended"


@pytest.mark.asyncio
async def test_late_mirror_does_not_lower_progress(store: EnrollmentStore, mock_session) -> None:
    user_id = uuid4()
    mock_session.aexecute.side_effect = [
        _found(_row(user_id, "c", progress=60)),
        _lwt(True),
        Mock(),
    ]

    enrollment = await store.update_progress(user_id, "c", 40)

    assert enrollment.progress_percent == 60
    update_params = mock_session.aexecute.await_args_list[1].args[1]
    assert update_params[0] == 60


@pytest.mark.asyncio
async def test_update_progress_without_enrollment(store: EnrollmentStore, mock_session) -> None:
    mock_session.aexecute.return_value = _found(None)
    assert await store.update_progress(uuid4(), "c", 50) is None
