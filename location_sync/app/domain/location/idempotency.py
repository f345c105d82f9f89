"""
Idempotency Filter.

Drops samples whose client_id the server has already seen, using one
lookup per batch rather than one per sample.
"""

from typing import List, Sequence, Tuple

from location_sync.app.domain.location.store import LocationStore
from location_sync.app.domain.location.types import LocationSample


async def partition(
    store: LocationStore,
    samples: Sequence[LocationSample],
) -> Tuple[List[LocationSample], int]:
    """
    Split a batch into fresh samples and a duplicate count.

    A client_id is known if it is stored as a sample or is already held by
    a conflict record, so a re-sent batch converges to all-duplicates
    even when some of its samples were parked as conflicts.

    Returns:
        (fresh samples in input order, number of duplicates dropped)
    """
    client_ids = [s.client_id for s in samples if s.client_id]
    if not client_ids:
        return list(samples), 0

    known = set(await store.find_samples_by_client_ids(client_ids))
    known |= set(await store.find_conflicted_client_ids(client_ids))

    fresh = [s for s in samples if s.client_id not in known]
    return fresh, len(samples) - len(fresh)
