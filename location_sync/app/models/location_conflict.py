"""
Location Conflict database model.

Records an incoming sample that collided in time with a stored one.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum
from sqlalchemy.sql import func
from location_sync.app.db.session import Base
from location_sync.app.models.location_enums import ConflictStatus, ResolutionChoice


class LocationConflict(Base):
    """
    Location Conflict model.

    The incoming payload is held here, not in location_samples, until an
    operator resolves the conflict in its favour.
    """
    __tablename__ = "location_conflicts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    subject_id = Column(String(64), nullable=False, index=True)
    client_id = Column(String(64), nullable=False, index=True)  # Incoming sample's idempotency key

    client_sample = Column(JSON, nullable=False)  # Incoming payload
    server_sample = Column(JSON, nullable=False)  # Snapshot of colliding stored row

    status = Column(Enum(ConflictStatus), default=ConflictStatus.PENDING, nullable=False, index=True)
    resolution = Column(Enum(ResolutionChoice), nullable=True)
    resolved_sample = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at_utc = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<LocationConflict(id={self.id}, subject_id={self.subject_id}, status='{self.status}')>"
