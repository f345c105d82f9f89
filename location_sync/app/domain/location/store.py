"""
Persistence port for the location sync domain.

Services receive a LocationStore at construction time; production wires
the SQLAlchemy adapter, tests wire an in-memory fake.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence, Set

from location_sync.app.models.location_enums import ConflictStatus
from location_sync.app.domain.location.types import ConflictRecord, LocationSample, StoredSample, Zone


class LocationStore(Protocol):
    async def find_samples_by_client_ids(
        self, client_ids: Iterable[str], subject_id: Optional[str] = None
    ) -> Set[str]:
        """Return the subset of client_ids already stored as samples."""
        raise NotImplementedError

    async def find_conflicted_client_ids(self, client_ids: Iterable[str]) -> Set[str]:
        """Return the subset of client_ids already held by a conflict record."""
        raise NotImplementedError

    async def find_overlapping_sample(
        self, subject_id: str, start: datetime, end: datetime, exclude_client_id: str
    ) -> Optional[StoredSample]:
        raise NotImplementedError

    async def insert_sample(self, sample: LocationSample, synced_at_utc: datetime) -> int:
        """Stage a new sample. Raises DuplicateSampleError if client_id exists."""
        raise NotImplementedError

    async def create_conflict(
        self,
        *,
        subject_id: str,
        client_id: str,
        client_sample: Dict[str, Any],
        server_sample: Dict[str, Any],
    ) -> int:
        raise NotImplementedError

    async def get_conflict(self, conflict_id: int) -> ConflictRecord:
        """Raises ResourceNotFoundError if the conflict does not exist."""
        raise NotImplementedError

    async def update_conflict(
        self, conflict_id: int, fields: Dict[str, Any], expected_status: ConflictStatus
    ) -> bool:
        """Conditional update; False when the row is missing or not in expected_status."""
        raise NotImplementedError

    async def list_pending_conflicts(self, subject_id: str) -> Sequence[ConflictRecord]:
        raise NotImplementedError

    async def count_pending_conflicts(self, subject_id: str) -> int:
        raise NotImplementedError

    async def count_samples(self, subject_id: str) -> int:
        raise NotImplementedError

    async def last_synced_at(self, subject_id: str) -> Optional[datetime]:
        raise NotImplementedError

    async def get_shared_profile_id(self, subject_id: str) -> Optional[str]:
        raise NotImplementedError

    async def find_active_zones_by_owner(self, subject_id: str) -> Sequence[Zone]:
        raise NotImplementedError

    async def find_active_zones_by_profile(self, profile_id: str) -> Sequence[Zone]:
        raise NotImplementedError

    async def commit(self) -> None:
        raise NotImplementedError

    async def rollback(self) -> None:
        raise NotImplementedError
