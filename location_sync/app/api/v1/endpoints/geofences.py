"""
Geofence API Endpoints.

CRUD for containment zones and live containment checks.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional
import logging

from location_sync.app.core.exceptions import ResourceNotFoundError
from location_sync.app.db.session import get_db
from location_sync.app.domain.location.geofence_matcher import GeofenceMatcher
from location_sync.app.domain.location.types import Coordinate
from location_sync.app.models.geofence import Geofence
from location_sync.app.models.subject import SharedProfile, Subject
from location_sync.app.schemas.geofence import (
    GeofenceCreate, GeofenceUpdate, GeofenceResponse, GeofenceListResponse,
    GeofenceCheckRequest, GeofenceCheckResponse, ZoneMatchResponse
)
from location_sync.app.services.location_store import SqlAlchemyLocationStore, get_location_store

router = APIRouter(prefix="/geofences", tags=["Geofences"])
logger = logging.getLogger(__name__)


async def _get_geofence_or_404(db: AsyncSession, geofence_id: int) -> Geofence:
    result = await db.execute(
        select(Geofence).where(Geofence.id == geofence_id)
    )
    geofence = result.scalar_one_or_none()

    if not geofence:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Geofence not found"
        )
    return geofence


async def _ensure_owner_exists(db: AsyncSession, geofence_data: GeofenceCreate) -> None:
    if geofence_data.subject_id:
        if await db.get(Subject, geofence_data.subject_id) is None:
            raise ResourceNotFoundError("Subject", geofence_data.subject_id)
    elif await db.get(SharedProfile, geofence_data.shared_profile_id) is None:
        raise ResourceNotFoundError("Shared profile", geofence_data.shared_profile_id)


@router.post("/check", response_model=GeofenceCheckResponse)
async def check_geofence(
    request: GeofenceCheckRequest,
    store: SqlAlchemyLocationStore = Depends(get_location_store)
):
    """
    Check which of a subject's active zones contain a coordinate.

    Considers the subject's own zones and those of its shared profile.
    """
    matcher = GeofenceMatcher(store)
    matches = await matcher.matches(
        request.subject_id,
        Coordinate(request.latitude, request.longitude)
    )

    return GeofenceCheckResponse(
        is_in_zone=len(matches) > 0,
        matches=[
            ZoneMatchResponse(id=m.id, name=m.name, task_type=m.task_type)
            for m in matches
        ]
    )


@router.post("", response_model=GeofenceResponse, status_code=status.HTTP_201_CREATED)
async def create_geofence(
    geofence_data: GeofenceCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a geofence owned by a subject or a shared profile (never both).

    404 if the owning subject or shared profile does not exist.
    """
    await _ensure_owner_exists(db, geofence_data)

    geofence = Geofence(
        name=geofence_data.name,
        description=geofence_data.description,
        latitude=geofence_data.latitude,
        longitude=geofence_data.longitude,
        radius_meters=geofence_data.radius_meters,
        task_type=geofence_data.task_type,
        subject_id=geofence_data.subject_id,
        shared_profile_id=geofence_data.shared_profile_id,
        is_active=geofence_data.is_active
    )

    db.add(geofence)
    await db.commit()
    await db.refresh(geofence)

    logger.info("Geofence created: %s - %s", geofence.id, geofence.name)

    return GeofenceResponse.model_validate(geofence)


@router.get("", response_model=GeofenceListResponse)
async def list_geofences(
    subject_id: Optional[str] = Query(None, description="Filter by owning subject"),
    shared_profile_id: Optional[str] = Query(None, description="Filter by owning profile"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: AsyncSession = Depends(get_db)
):
    """List geofences, newest first."""
    conditions = []
    if subject_id:
        conditions.append(Geofence.subject_id == subject_id)
    if shared_profile_id:
        conditions.append(Geofence.shared_profile_id == shared_profile_id)
    if is_active is not None:
        conditions.append(Geofence.is_active == is_active)

    total_result = await db.execute(select(func.count(Geofence.id)).where(*conditions))
    total = total_result.scalar()

    result = await db.execute(
        select(Geofence).where(*conditions).order_by(Geofence.created_at.desc(), Geofence.id.desc())
    )
    geofences = result.scalars().all()

    return GeofenceListResponse(
        geofences=[GeofenceResponse.model_validate(g) for g in geofences],
        total=total
    )


@router.get("/{geofence_id}", response_model=GeofenceResponse)
async def get_geofence(
    geofence_id: int = Path(..., description="Geofence ID"),
    db: AsyncSession = Depends(get_db)
):
    """Get a single geofence."""
    geofence = await _get_geofence_or_404(db, geofence_id)
    return GeofenceResponse.model_validate(geofence)


@router.patch("/{geofence_id}", response_model=GeofenceResponse)
async def update_geofence(
    geofence_data: GeofenceUpdate,
    geofence_id: int = Path(..., description="Geofence ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a geofence.

    Owner fields are not part of the update schema and cannot change.
    """
    geofence = await _get_geofence_or_404(db, geofence_id)

    for field, value in geofence_data.model_dump(exclude_unset=True).items():
        if value is None and field != "description":
            continue
        setattr(geofence, field, value)

    await db.commit()
    await db.refresh(geofence)

    logger.info("Geofence updated: %s - %s", geofence.id, geofence.name)

    return GeofenceResponse.model_validate(geofence)


@router.delete("/{geofence_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_geofence(
    geofence_id: int = Path(..., description="Geofence ID"),
    db: AsyncSession = Depends(get_db)
):
    """Delete a geofence."""
    geofence = await _get_geofence_or_404(db, geofence_id)

    await db.delete(geofence)
    await db.commit()

    logger.info("Geofence deleted: %s", geofence_id)
