"""
Value types shared by the location sync domain.

These are plain dataclasses decoupled from the ORM rows so that the
domain services can run against any LocationStore implementation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from location_sync.app.models.location_enums import ConflictStatus, ResolutionChoice, TaskType

Number = Union[Decimal, float, int]


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _decimal_or_none(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class Coordinate:
    latitude: Number
    longitude: Number


@dataclass(frozen=True)
class LocationSample:
    """A single GPS fix as the domain sees it."""
    client_id: str
    subject_id: str
    latitude: Decimal
    longitude: Decimal
    accuracy_meters: Decimal
    timestamp_utc: datetime
    battery_percent: Optional[Decimal] = None
    speed: Optional[Decimal] = None
    heading: Optional[Decimal] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe representation; decimals travel as strings to keep precision."""
        return {
            "client_id": self.client_id,
            "subject_id": self.subject_id,
            "latitude": str(self.latitude),
            "longitude": str(self.longitude),
            "accuracy_meters": str(self.accuracy_meters),
            "timestamp": ensure_utc(self.timestamp_utc).isoformat(),
            "battery_percent": _decimal_or_none(self.battery_percent),
            "speed": _decimal_or_none(self.speed),
            "heading": _decimal_or_none(self.heading),
        }


@dataclass(frozen=True)
class StoredSample:
    """A persisted sample, as returned by the store."""
    id: int
    sample: LocationSample
    synced_at_utc: datetime

    def snapshot(self) -> Dict[str, Any]:
        """Snapshot of the stored row kept on a conflict record."""
        payload = self.sample.to_payload()
        payload["id"] = self.id
        payload["synced_at"] = ensure_utc(self.synced_at_utc).isoformat()
        return payload


@dataclass(frozen=True)
class ConflictRecord:
    id: int
    subject_id: str
    client_sample: Dict[str, Any]
    server_sample: Dict[str, Any]
    status: ConflictStatus
    created_at: Optional[datetime] = None
    resolution: Optional[ResolutionChoice] = None
    resolved_sample: Optional[Dict[str, Any]] = None
    resolved_at_utc: Optional[datetime] = None


@dataclass(frozen=True)
class Zone:
    id: int
    name: str
    center: Coordinate
    radius_meters: Number
    task_type: TaskType
    is_active: bool = True


@dataclass(frozen=True)
class ZoneMatch:
    id: int
    name: str
    task_type: TaskType


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    success: bool = True
    created: int = 0
    duplicates: int = 0
    conflicts: int = 0
    errors: List[str] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True)
class SyncStatus:
    pending_conflicts: int
    last_synced_at: Optional[datetime]
    total_points: int
