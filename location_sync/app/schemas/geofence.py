"""
Geofence Pydantic schemas.

Defines request and response models for geofence management and checks.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from location_sync.app.models.location_enums import TaskType


class GeofenceCreate(BaseModel):
    """Schema for creating a geofence. Exactly one owner must be given."""
    name: str = Field(..., min_length=1, max_length=100, description="Zone name")
    description: Optional[str] = Field(None, max_length=500)
    latitude: Decimal = Field(..., ge=-90, le=90, description="Center latitude")
    longitude: Decimal = Field(..., ge=-180, le=180, description="Center longitude")
    radius_meters: int = Field(..., ge=10, le=10000, description="Radius, 10 m to 10 km")
    task_type: TaskType
    subject_id: Optional[str] = Field(None, min_length=1, max_length=64)
    shared_profile_id: Optional[str] = Field(None, min_length=1, max_length=64)
    is_active: bool = True

    @model_validator(mode="after")
    def check_single_owner(self):
        if self.subject_id and self.shared_profile_id:
            raise ValueError("Geofence can belong to either a subject or a shared profile, not both")
        if not self.subject_id and not self.shared_profile_id:
            raise ValueError("Geofence must belong to either a subject or a shared profile")
        return self


class GeofenceUpdate(BaseModel):
    """Schema for updating a geofence. Ownership cannot be changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    radius_meters: Optional[int] = Field(None, ge=10, le=10000)
    task_type: Optional[TaskType] = None
    is_active: Optional[bool] = None


class GeofenceResponse(BaseModel):
    """Schema for geofence response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    latitude: Decimal
    longitude: Decimal
    radius_meters: int
    task_type: TaskType
    subject_id: Optional[str]
    shared_profile_id: Optional[str]
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class GeofenceListResponse(BaseModel):
    geofences: List[GeofenceResponse]
    total: int


class GeofenceCheckRequest(BaseModel):
    """Live coordinate to test against a subject's zones."""
    subject_id: str = Field(..., min_length=1)
    latitude: Decimal = Field(..., ge=-90, le=90)
    longitude: Decimal = Field(..., ge=-180, le=180)


class ZoneMatchResponse(BaseModel):
    id: int
    name: str
    task_type: TaskType


class GeofenceCheckResponse(BaseModel):
    is_in_zone: bool
    matches: List[ZoneMatchResponse]
