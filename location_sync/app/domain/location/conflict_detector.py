"""
Conflict Detector.

Decides whether an incoming sample collides in time with a stored sample
for the same subject.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from location_sync.app.domain.location.store import LocationStore
from location_sync.app.domain.location.types import LocationSample

DEFAULT_CONFLICT_WINDOW = timedelta(seconds=5)


async def detect(
    store: LocationStore,
    sample: LocationSample,
    window: timedelta = DEFAULT_CONFLICT_WINDOW,
) -> Optional[Dict[str, Any]]:
    """
    Look for a stored sample within +/- window of the incoming timestamp.

    Device and server clocks drift, so two recordings of the same moment
    rarely match to the millisecond. Only the first match is reported.
    Rows with the same client_id are excluded.

    Returns:
        Snapshot of the colliding stored row, or None
    """
    existing = await store.find_overlapping_sample(
        subject_id=sample.subject_id,
        start=sample.timestamp_utc - window,
        end=sample.timestamp_utc + window,
        exclude_client_id=sample.client_id,
    )
    if existing is None:
        return None
    return existing.snapshot()
