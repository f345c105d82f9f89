"""
GPS Sync API Endpoints.

Mobile devices upload GPS samples queued while offline; operators review
and settle the conflicts those uploads produce.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, Path, Body

from location_sync.app.core.config import settings
from location_sync.app.core.exceptions import BatchValidationError
from location_sync.app.domain.location.conflict_resolution import ConflictResolutionService
from location_sync.app.domain.location.ingestion import IngestionPipeline
from location_sync.app.domain.location.types import ConflictRecord
from location_sync.app.models.location_enums import ConflictStatus
from location_sync.app.schemas.gps_sync import (
    BatchUploadRequest, BatchUploadResponse, SyncStatusResponse,
    ConflictResponse, ResolveConflictRequest, ConflictActionResponse
)
from location_sync.app.services.location_store import SqlAlchemyLocationStore, get_location_store
from typing import List

router = APIRouter(prefix="/gps-sync", tags=["GPS Sync"])


def get_ingestion_pipeline(
    store: SqlAlchemyLocationStore = Depends(get_location_store)
) -> IngestionPipeline:
    return IngestionPipeline(
        store,
        max_batch_size=settings.max_batch_size,
        conflict_window=timedelta(seconds=settings.conflict_window_seconds),
    )


def get_resolution_service(
    store: SqlAlchemyLocationStore = Depends(get_location_store)
) -> ConflictResolutionService:
    return ConflictResolutionService(store)


def _conflict_response(conflict: ConflictRecord) -> ConflictResponse:
    return ConflictResponse(
        id=conflict.id,
        subject_id=conflict.subject_id,
        client_sample=conflict.client_sample,
        server_sample=conflict.server_sample,
        status=conflict.status.value,
        created_at=conflict.created_at,
        resolution=conflict.resolution.value if conflict.resolution else None,
        resolved_sample=conflict.resolved_sample,
        resolved_at_utc=conflict.resolved_at_utc,
    )


@router.post("/batch-upload", response_model=BatchUploadResponse)
async def batch_upload(
    payload: BatchUploadRequest,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    Upload a batch of queued GPS samples.

    Idempotent per client_id: re-sending a batch reports its samples as
    duplicates. Validation failures reject the whole batch with 400;
    once validation passes the response is 200 even if some samples
    failed (listed in `errors`).
    """
    result = await pipeline.process_batch(payload.data)

    if not result.success:
        raise BatchValidationError(result.errors)

    return BatchUploadResponse(
        created=result.created,
        duplicates=result.duplicates,
        conflicts=result.conflicts,
        total=result.total,
        errors=result.errors
    )


@router.get("/sync-status/{subject_id}", response_model=SyncStatusResponse)
async def get_sync_status(
    subject_id: str = Path(..., description="Subject (employee) ID"),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """Pending conflict count, last sync time and stored point count."""
    status = await pipeline.get_sync_status(subject_id)
    return SyncStatusResponse(
        pending_conflicts=status.pending_conflicts,
        last_synced_at=status.last_synced_at,
        total_points=status.total_points
    )


@router.get("/conflicts/{subject_id}", response_model=List[ConflictResponse])
async def get_pending_conflicts(
    subject_id: str = Path(..., description="Subject (employee) ID"),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """List PENDING conflicts for a subject, newest first."""
    conflicts = await pipeline.list_pending_conflicts(subject_id)
    return [_conflict_response(c) for c in conflicts]


@router.post("/resolve-conflict/{conflict_id}", response_model=ConflictActionResponse)
async def resolve_conflict(
    conflict_id: int = Path(..., description="Conflict ID"),
    request: ResolveConflictRequest = Body(...),
    service: ConflictResolutionService = Depends(get_resolution_service)
):
    """
    Resolve a conflict with client, server or manual data.

    404 if the conflict is missing or already resolved/rejected.
    """
    winner = await service.resolve(conflict_id, request.resolution, request.manual_data)

    return ConflictActionResponse(
        conflict_id=conflict_id,
        status=ConflictStatus.RESOLVED.value,
        resolved_sample=winner.to_payload()
    )


@router.post("/reject-conflict/{conflict_id}", response_model=ConflictActionResponse)
async def reject_conflict(
    conflict_id: int = Path(..., description="Conflict ID"),
    service: ConflictResolutionService = Depends(get_resolution_service)
):
    """Reject a conflict; neither side is stored."""
    await service.reject(conflict_id)

    return ConflictActionResponse(
        conflict_id=conflict_id,
        status=ConflictStatus.REJECTED.value
    )
