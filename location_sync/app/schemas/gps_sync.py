"""
GPS sync schemas.

Upload samples stay loosely typed on the way in so the batch validator can
report every problem with its index instead of failing on the first one.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional


class BatchUploadRequest(BaseModel):
    """Batch of queued GPS samples from one device."""
    data: List[Any] = Field(..., description="Raw GPS samples, at most 100")


class BatchUploadResponse(BaseModel):
    """Counts for a processed batch."""
    created: int
    duplicates: int
    conflicts: int
    total: int
    errors: List[str] = []


class SyncStatusResponse(BaseModel):
    pending_conflicts: int
    last_synced_at: Optional[datetime]
    total_points: int


class ConflictResponse(BaseModel):
    """GPS conflict response."""
    id: int
    subject_id: str
    client_sample: Dict[str, Any]
    server_sample: Dict[str, Any]
    status: str
    created_at: Optional[datetime]
    resolution: Optional[str] = None
    resolved_sample: Optional[Dict[str, Any]] = None
    resolved_at_utc: Optional[datetime] = None


class ResolveConflictRequest(BaseModel):
    resolution: Any = Field(..., description="client, server or manual")
    manual_data: Optional[Dict[str, Any]] = None


class ConflictActionResponse(BaseModel):
    conflict_id: int
    status: str
    resolved_sample: Optional[Dict[str, Any]] = None
