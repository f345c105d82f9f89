"""
Subject and Shared Profile read models.

Employees and their calculation profiles are managed by the payroll
CRUD screens; this service only reads the profile link.
"""

from sqlalchemy import Column, String, ForeignKey
from location_sync.app.db.session import Base


class SharedProfile(Base):
    """Group profile whose geofences apply to every member subject."""
    __tablename__ = "shared_profiles"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)

    def __repr__(self):
        return f"<SharedProfile(id={self.id}, name='{self.name}')>"


class Subject(Base):
    """Tracked employee."""
    __tablename__ = "subjects"

    id = Column(String(64), primary_key=True)
    shared_profile_id = Column(String(64), ForeignKey("shared_profiles.id"), nullable=True, index=True)

    def __repr__(self):
        return f"<Subject(id={self.id}, shared_profile_id={self.shared_profile_id})>"
