"""Shared fixtures for the entry sync tests."""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from entrysync.core.database import Database
from entrysync.schemas.records import RosterStudent, UpsertResult
from entrysync.services.remote.sql import SqlRemoteStore
from entrysync.services.drafts import (
    MemoryDraftStorage, DraftStoreRegistry, ReadCache, StaticIdentity, SyncEngine
)

FIXED_NOW = datetime(2024, 2, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def storage():
    return MemoryDraftStorage()


@pytest.fixture
def registry(storage):
    return DraftStoreRegistry(storage)


@pytest.fixture
def identity():
    return StaticIdentity("teacher-1")


@pytest.fixture
def read_cache():
    return ReadCache(ttl_seconds=60)


@pytest.fixture
def roster():
    """Roster in display order."""
    return [
        RosterStudent(id="s1", full_name="Ada Lovelace", email="ada@example.com"),
        RosterStudent(id="s2", full_name="Alan Turing", email="alan@example.com"),
        RosterStudent(id="s3", full_name="Grace Hopper", email="grace@example.com"),
        RosterStudent(id="s4", full_name="Edsger Dijkstra", email="edsger@example.com"),
    ]


@pytest.fixture
def mock_remote_store():
    """Remote store whose upserts succeed and report one id per item."""
    store = AsyncMock()

    async def batch_upsert(collection, items, conflict_fields):
        return UpsertResult(saved=len(items), ids=list(range(1, len(items) + 1)))

    store.batch_upsert.side_effect = batch_upsert
    store.query.return_value = []
    return store


@pytest.fixture
def mock_engine(registry, mock_remote_store, identity, read_cache):
    return SyncEngine(registry, mock_remote_store, identity, read_cache=read_cache, clock=lambda: FIXED_NOW)


@pytest.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'records.db'}")
    await database.init_db()
    yield database
    await database.dispose()


@pytest.fixture
async def record_store(database):
    return SqlRemoteStore(database)


@pytest.fixture
def sql_engine(registry, record_store, identity, read_cache):
    return SyncEngine(registry, record_store, identity, read_cache=read_cache, clock=lambda: FIXED_NOW)
