"""
Centralized Test Configuration.
"""

import copy
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport

from location_sync.app.main import app
from location_sync.app.db.session import get_db, Base, build_engine, build_session_factory
from location_sync.app.core.exceptions import DuplicateSampleError, ResourceNotFoundError
from location_sync.app.domain.location.types import ConflictRecord, StoredSample
from location_sync.app.models.location_enums import ConflictStatus

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def raw_sample(client_id, subject_id="emp-1", seconds=0, **overrides):
    """Build an upload payload the way the mobile app sends it."""
    sample = {
        "client_id": client_id,
        "subject_id": subject_id,
        "latitude": 55.6761234,
        "longitude": 12.5683371,
        "accuracy_meters": 8.5,
        "timestamp": (BASE_TIME + timedelta(seconds=seconds)).isoformat().replace("+00:00", "Z"),
        "battery_percent": 80,
    }
    sample.update(overrides)
    return sample


# In-memory store for domain-level tests
class InMemoryLocationStore:
    """
    Fake LocationStore.

    Writes are applied immediately and undone on rollback, which mirrors
    a session that flushes inside an open transaction.
    """

    def __init__(self):
        self.samples = {}  # client_id -> StoredSample
        self.conflicts = {}  # id -> dict
        self.zones = []
        self.profiles = {}  # subject_id -> profile_id
        self.fail_on_insert = set()  # client_ids whose insert raises
        self.race_on_insert = set()  # client_ids that look already stored at insert time
        self.commits = 0
        self.rollbacks = 0
        self._undo = []
        self._next_sample_id = 1
        self._next_conflict_id = 1

    async def find_samples_by_client_ids(self, client_ids, subject_id=None):
        return {
            cid for cid in client_ids
            if cid in self.samples
            and (subject_id is None or self.samples[cid].sample.subject_id == subject_id)
        }

    async def find_conflicted_client_ids(self, client_ids):
        held = {c["client_id"] for c in self.conflicts.values()}
        return {cid for cid in client_ids if cid in held}

    async def find_overlapping_sample(self, subject_id, start, end, exclude_client_id):
        candidates = sorted(
            (
                s for s in self.samples.values()
                if s.sample.subject_id == subject_id
                and start <= s.sample.timestamp_utc <= end
                and s.sample.client_id != exclude_client_id
            ),
            key=lambda s: s.sample.timestamp_utc,
        )
        return candidates[0] if candidates else None

    async def insert_sample(self, sample, synced_at_utc):
        if sample.client_id in self.fail_on_insert:
            raise RuntimeError("connection reset by peer")
        if sample.client_id in self.samples or sample.client_id in self.race_on_insert:
            raise DuplicateSampleError(sample.client_id)
        stored = StoredSample(id=self._next_sample_id, sample=sample, synced_at_utc=synced_at_utc)
        self._next_sample_id += 1
        self.samples[sample.client_id] = stored
        self._undo.append(lambda: self.samples.pop(sample.client_id, None))
        return stored.id

    async def create_conflict(self, *, subject_id, client_id, client_sample, server_sample):
        conflict_id = self._next_conflict_id
        self._next_conflict_id += 1
        self.conflicts[conflict_id] = {
            "id": conflict_id,
            "subject_id": subject_id,
            "client_id": client_id,
            "client_sample": copy.deepcopy(client_sample),
            "server_sample": copy.deepcopy(server_sample),
            "status": ConflictStatus.PENDING,
            "created_at": datetime.now(timezone.utc),
            "resolution": None,
            "resolved_sample": None,
            "resolved_at_utc": None,
        }
        self._undo.append(lambda: self.conflicts.pop(conflict_id, None))
        return conflict_id

    def _record(self, row):
        return ConflictRecord(**{k: v for k, v in row.items() if k != "client_id"})

    async def get_conflict(self, conflict_id):
        if conflict_id not in self.conflicts:
            raise ResourceNotFoundError("Conflict", conflict_id)
        return self._record(self.conflicts[conflict_id])

    async def update_conflict(self, conflict_id, fields, expected_status):
        row = self.conflicts.get(conflict_id)
        if row is None or row["status"] != expected_status:
            return False
        before = dict(row)
        row.update(fields)
        self._undo.append(lambda: row.update(before))
        return True

    async def list_pending_conflicts(self, subject_id):
        rows = [
            c for c in self.conflicts.values()
            if c["subject_id"] == subject_id and c["status"] == ConflictStatus.PENDING
        ]
        return [self._record(c) for c in sorted(rows, key=lambda c: c["id"], reverse=True)]

    async def count_pending_conflicts(self, subject_id):
        return len(await self.list_pending_conflicts(subject_id))

    async def count_samples(self, subject_id):
        return sum(1 for s in self.samples.values() if s.sample.subject_id == subject_id)

    async def last_synced_at(self, subject_id):
        times = [s.synced_at_utc for s in self.samples.values() if s.sample.subject_id == subject_id]
        return max(times) if times else None

    async def get_shared_profile_id(self, subject_id):
        return self.profiles.get(subject_id)

    async def find_active_zones_by_owner(self, subject_id):
        return [z for (owner, _), z in self._zone_index() if owner == subject_id and z.is_active]

    async def find_active_zones_by_profile(self, profile_id):
        return [z for (_, profile), z in self._zone_index() if profile == profile_id and z.is_active]

    def _zone_index(self):
        return [((subject_id, profile_id), zone) for subject_id, profile_id, zone in self.zones]

    def add_zone(self, zone, subject_id=None, profile_id=None):
        self.zones.append((subject_id, profile_id, zone))

    async def commit(self):
        self.commits += 1
        self._undo.clear()

    async def rollback(self):
        self.rollbacks += 1
        while self._undo:
            self._undo.pop()()


@pytest.fixture
def store():
    return InMemoryLocationStore()


@pytest.fixture
def make_raw():
    """Factory for raw upload samples, offset in seconds from BASE_TIME."""
    return raw_sample


@pytest.fixture
def base_time():
    return BASE_TIME


# SQLite-backed fixtures for API tests
@pytest.fixture
async def engine():
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def client(session_factory):
    """Async client for testing."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
