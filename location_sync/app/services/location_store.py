"""
SQLAlchemy-backed LocationStore.

Adapts the async session to the persistence port used by the location
sync domain. Write methods only flush; the calling service decides when
to commit or roll back.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from fastapi import Depends
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from location_sync.app.core.exceptions import DuplicateSampleError, ResourceNotFoundError
from location_sync.app.db.session import get_db
from location_sync.app.domain.location.types import (
    ConflictRecord, Coordinate, LocationSample, StoredSample, Zone, ensure_utc
)
from location_sync.app.models.geofence import Geofence
from location_sync.app.models.location_conflict import LocationConflict
from location_sync.app.models.location_enums import ConflictStatus
from location_sync.app.models.location_sample import LocationSample as LocationSampleRow
from location_sync.app.models.subject import Subject

UNIQUE_VIOLATION = "23505"


def _optional_utc(value: Optional[datetime]) -> Optional[datetime]:
    return None if value is None else ensure_utc(value)


def _is_client_id_violation(exc: IntegrityError) -> bool:
    """True only for the unique index on location_samples.client_id."""
    message = str(exc.orig).lower()
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    is_unique = sqlstate == UNIQUE_VIOLATION or "unique" in message or "duplicate key" in message
    return is_unique and "client_id" in message


def _to_stored_sample(row: LocationSampleRow) -> StoredSample:
    return StoredSample(
        id=row.id,
        sample=LocationSample(
            client_id=row.client_id,
            subject_id=row.subject_id,
            latitude=row.latitude,
            longitude=row.longitude,
            accuracy_meters=row.accuracy_meters,
            timestamp_utc=ensure_utc(row.timestamp_utc),
            battery_percent=row.battery_percent,
            speed=row.speed,
            heading=row.heading,
        ),
        synced_at_utc=ensure_utc(row.synced_at_utc),
    )


def _to_conflict_record(row: LocationConflict) -> ConflictRecord:
    return ConflictRecord(
        id=row.id,
        subject_id=row.subject_id,
        client_sample=row.client_sample,
        server_sample=row.server_sample,
        status=row.status,
        created_at=_optional_utc(row.created_at),
        resolution=row.resolution,
        resolved_sample=row.resolved_sample,
        resolved_at_utc=_optional_utc(row.resolved_at_utc),
    )


def _to_zone(row: Geofence) -> Zone:
    return Zone(
        id=row.id,
        name=row.name,
        center=Coordinate(row.latitude, row.longitude),
        radius_meters=row.radius_meters,
        task_type=row.task_type,
        is_active=row.is_active,
    )


class SqlAlchemyLocationStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    # Samples

    async def find_samples_by_client_ids(
        self, client_ids: Iterable[str], subject_id: Optional[str] = None
    ) -> Set[str]:
        ids = list(client_ids)
        if not ids:
            return set()
        query = select(LocationSampleRow.client_id).where(LocationSampleRow.client_id.in_(ids))
        if subject_id is not None:
            query = query.where(LocationSampleRow.subject_id == subject_id)
        result = await self.db.execute(query)
        return set(result.scalars().all())

    async def find_overlapping_sample(
        self, subject_id: str, start: datetime, end: datetime, exclude_client_id: str
    ) -> Optional[StoredSample]:
        result = await self.db.execute(
            select(LocationSampleRow).where(
                LocationSampleRow.subject_id == subject_id,
                LocationSampleRow.timestamp_utc >= ensure_utc(start),
                LocationSampleRow.timestamp_utc <= ensure_utc(end),
                LocationSampleRow.client_id != exclude_client_id,
            ).order_by(LocationSampleRow.timestamp_utc).limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_stored_sample(row) if row else None

    async def insert_sample(self, sample: LocationSample, synced_at_utc: datetime) -> int:
        row = LocationSampleRow(
            client_id=sample.client_id,
            subject_id=sample.subject_id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            accuracy_meters=sample.accuracy_meters,
            battery_percent=sample.battery_percent,
            speed=sample.speed,
            heading=sample.heading,
            timestamp_utc=ensure_utc(sample.timestamp_utc),
            synced_at_utc=ensure_utc(synced_at_utc),
        )
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            if _is_client_id_violation(exc):
                raise DuplicateSampleError(sample.client_id) from exc
            raise
        return row.id

    async def count_samples(self, subject_id: str) -> int:
        result = await self.db.execute(
            select(func.count(LocationSampleRow.id)).where(LocationSampleRow.subject_id == subject_id)
        )
        return result.scalar() or 0

    async def last_synced_at(self, subject_id: str) -> Optional[datetime]:
        result = await self.db.execute(
            select(func.max(LocationSampleRow.synced_at_utc)).where(
                LocationSampleRow.subject_id == subject_id
            )
        )
        return _optional_utc(result.scalar())

    # Conflicts

    async def find_conflicted_client_ids(self, client_ids: Iterable[str]) -> Set[str]:
        ids = list(client_ids)
        if not ids:
            return set()
        result = await self.db.execute(
            select(LocationConflict.client_id).where(LocationConflict.client_id.in_(ids))
        )
        return set(result.scalars().all())

    async def create_conflict(
        self,
        *,
        subject_id: str,
        client_id: str,
        client_sample: Dict[str, Any],
        server_sample: Dict[str, Any],
    ) -> int:
        conflict = LocationConflict(
            subject_id=subject_id,
            client_id=client_id,
            client_sample=client_sample,
            server_sample=server_sample,
            status=ConflictStatus.PENDING,
        )
        self.db.add(conflict)
        await self.db.flush()
        return conflict.id

    async def get_conflict(self, conflict_id: int) -> ConflictRecord:
        conflict = await self.db.get(LocationConflict, conflict_id, populate_existing=True)
        if not conflict:
            raise ResourceNotFoundError("Conflict", conflict_id)
        return _to_conflict_record(conflict)

    async def update_conflict(
        self, conflict_id: int, fields: Dict[str, Any], expected_status: ConflictStatus
    ) -> bool:
        result = await self.db.execute(
            update(LocationConflict)
            .where(
                LocationConflict.id == conflict_id,
                LocationConflict.status == expected_status,
            )
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_pending_conflicts(self, subject_id: str) -> Sequence[ConflictRecord]:
        result = await self.db.execute(
            select(LocationConflict).where(
                LocationConflict.subject_id == subject_id,
                LocationConflict.status == ConflictStatus.PENDING,
            ).order_by(LocationConflict.created_at.desc(), LocationConflict.id.desc())
        )
        return [_to_conflict_record(c) for c in result.scalars().all()]

    async def count_pending_conflicts(self, subject_id: str) -> int:
        result = await self.db.execute(
            select(func.count(LocationConflict.id)).where(
                LocationConflict.subject_id == subject_id,
                LocationConflict.status == ConflictStatus.PENDING,
            )
        )
        return result.scalar() or 0

    # Geofences

    async def get_shared_profile_id(self, subject_id: str) -> Optional[str]:
        result = await self.db.execute(
            select(Subject.shared_profile_id).where(Subject.id == subject_id)
        )
        return result.scalar_one_or_none()

    async def find_active_zones_by_owner(self, subject_id: str) -> List[Zone]:
        result = await self.db.execute(
            select(Geofence).where(
                Geofence.subject_id == subject_id,
                Geofence.is_active == True
            )
        )
        return [_to_zone(g) for g in result.scalars().all()]

    async def find_active_zones_by_profile(self, profile_id: str) -> List[Zone]:
        result = await self.db.execute(
            select(Geofence).where(
                Geofence.shared_profile_id == profile_id,
                Geofence.is_active == True
            )
        )
        return [_to_zone(g) for g in result.scalars().all()]

    # Unit of work

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()


async def get_location_store(db: AsyncSession = Depends(get_db)) -> SqlAlchemyLocationStore:
    """FastAPI dependency providing a request-scoped store."""
    return SqlAlchemyLocationStore(db)
