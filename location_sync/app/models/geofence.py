"""
Geofence database model.

Circular containment zones owned by one subject or one shared profile.
"""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from location_sync.app.db.session import Base
from location_sync.app.models.location_enums import TaskType


class Geofence(Base):
    """
    Geofence model.

    Owner is exactly one of subject_id or shared_profile_id,
    enforced at the database level as well as on input.
    """
    __tablename__ = "geofences"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)

    # Zone geometry
    latitude = Column(Numeric(10, 7), nullable=False)
    longitude = Column(Numeric(10, 7), nullable=False)
    radius_meters = Column(Integer, nullable=False)

    task_type = Column(Enum(TaskType), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Ownership (mutually exclusive)
    subject_id = Column(String(64), nullable=True, index=True)
    shared_profile_id = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(subject_id IS NULL) <> (shared_profile_id IS NULL)",
            name="ck_geofences_single_owner",
        ),
        CheckConstraint("radius_meters > 0", name="ck_geofences_positive_radius"),
    )

    def __repr__(self):
        return f"<Geofence(id={self.id}, name='{self.name}', radius={self.radius_meters})>"
