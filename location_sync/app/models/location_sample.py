"""
Location Sample database model.

Stores GPS fixes uploaded from (possibly offline) mobile clients.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Index
from location_sync.app.db.session import Base


class LocationSample(Base):
    """
    Location Sample model.

    One row per accepted GPS fix. Rows are insert-only; client_id is
    unique for all time so re-uploads can never produce a second row.
    """
    __tablename__ = "location_samples"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identity
    client_id = Column(String(64), nullable=False, unique=True, index=True)  # Client-generated, idempotency key
    subject_id = Column(String(64), nullable=False, index=True)  # Owning employee

    # GPS fix (fixed-point so re-submission never drifts)
    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)
    accuracy_meters = Column(Numeric(10, 2), nullable=False)
    battery_percent = Column(Numeric(5, 2), nullable=True)
    speed = Column(Numeric(10, 2), nullable=True)
    heading = Column(Numeric(6, 2), nullable=True)

    # Timing
    timestamp_utc = Column(DateTime(timezone=True), nullable=False)  # When GPS was recorded on device
    synced_at_utc = Column(DateTime(timezone=True), nullable=False)  # When the server accepted it

    __table_args__ = (
        Index("ix_location_samples_subject_timestamp", "subject_id", "timestamp_utc"),
    )

    def __repr__(self):
        return f"<LocationSample(client_id={self.client_id}, subject_id={self.subject_id}, ts={self.timestamp_utc})>"
