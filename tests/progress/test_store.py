"""Tests for ProgressStore conditional writes (Cassandra mocked)."""

from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from coursetrack.core.exceptions import PersistenceError
from coursetrack.progress.models import Progress
from coursetrack.progress.store import ProgressStore


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock()
    return session


@pytest.fixture
def store(mock_session) -> ProgressStore:
    return ProgressStore(session=mock_session, keyspace="test_keyspace")


def _lwt(applied: bool) -> Mock:
    result = Mock()
    result.was_applied = applied
    return result


def _found(progress: Progress | None, revision: int = 0) -> Mock:
    result = Mock()
    if progress is None:
        result.one = Mock(return_value=None)
    else:
        row = Mock()
        row.document = progress.to_document()
        row.revision = revision
        result.one = Mock(return_value=row)
    return result


def test_statements_use_lightweight_transactions(store: ProgressStore, mock_session) -> None:
    cql = [call.args[0] for call in mock_session.prepare.call_args_list]
    assert any("IF NOT EXISTS" in stmt for stmt in cql)
    assert any("IF revision = ?" in stmt for stmt in cql)


@pytest.mark.asyncio
async def test_update_applies_and_bumps_revision(store: ProgressStore, mock_session) -> None:
    progress = Progress(user_id=uuid4(), course_id="c")
    progress.revision = 4
    mock_session.aexecute.return_value = _lwt(True)

    assert await store.update(progress) is True
    assert progress.revision == 5
    params = mock_session.aexecute.await_args.args[1]
    assert params[1] == 5
    assert params[-1] == 4


@pytest.mark.asyncio
async def test_update_conflict_keeps_revision(store: ProgressStore, mock_session) -> None:
    progress = Progress(user_id=uuid4(), course_id="c")
    progress.revision = 4
    mock_session.aexecute.return_value = _lwt(False)

    assert await store.update(progress) is False
    assert progress.revision == 4


@pytest.mark.asyncio
async def test_get_or_create_returns_existing(store: ProgressStore, mock_session) -> None:
    existing = Progress(user_id=uuid4(), course_id="c", completed_lessons=["l1"])
    mock_session.aexecute.return_value = _found(existing, revision=3)

    progress = await store.get_or_create_progress(existing.user_id, "c")

    assert progress.completed_lessons == ["l1"]
    assert progress.revision == 3
    assert mock_session.aexecute.await_count == 1


@pytest.mark.asyncio
async def test_get_or_create_inserts(store: ProgressStore, mock_session) -> None:
    user_id = uuid4()
    mock_session.aexecute.side_effect = [_found(None), _lwt(True)]

    progress = await store.get_or_create_progress(user_id, "c")

    assert progress.user_id == user_id
    assert progress.revision == 0


@pytest.mark.asyncio
async def test_get_or_create_reads_winner_after_lost_insert(
    store: ProgressStore, mock_session
) -> None:
    user_id = uuid4()
    winner = Progress(user_id=user_id, course_id="c", completed_lessons=["l2"])
    mock_session.aexecute.side_effect = [_found(None), _lwt(False), _found(winner, 1)]

    progress = await store.get_or_create_progress(user_id, "c")

    assert progress.completed_lessons == ["l2"]
    assert progress.revision == 1


@pytest.mark.asyncio
async def test_lost_insert_without_row_raises(store: ProgressStore, mock_session) -> None:
    mock_session.aexecute.side_effect = [_found(None), _lwt(False), _found(None)]

    with pytest.raises(PersistenceError):
        await store.get_or_create_progress(uuid4(), "c")
