"""
Ingestion Pipeline (Domain Logic).

Accepts batches of GPS samples queued on offline devices.
Must be idempotent: a batch may be re-sent any number of times.
"""

import logging
from datetime import timedelta
from typing import Any, Sequence

from location_sync.app.core.exceptions import DuplicateSampleError
from location_sync.app.domain.location import conflict_detector, idempotency
from location_sync.app.domain.location.batch_validator import (
    DEFAULT_MAX_BATCH_SIZE, parse_sample, validate_batch
)
from location_sync.app.domain.location.store import LocationStore
from location_sync.app.domain.location.types import (
    BatchResult, ConflictRecord, LocationSample, SyncStatus, utc_now
)

logger = logging.getLogger(__name__)


class IngestionPipeline:

    def __init__(
        self,
        store: LocationStore,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        conflict_window: timedelta = conflict_detector.DEFAULT_CONFLICT_WINDOW,
    ):
        self._store = store
        self._max_batch_size = int(max_batch_size)
        self._conflict_window = conflict_window

    async def process_batch(self, raw: Any) -> BatchResult:
        """
        Process one uploaded batch.

        Flow:
        1. Validate the whole batch (reject wholesale on any error)
        2. Drop samples whose client_id is already known
        3. Per fresh sample: detect collision, then store sample or conflict

        Each fresh sample is its own unit of work; a failure is recorded in
        `errors` and the remaining samples are still processed.
        """
        validation = validate_batch(raw, max_batch_size=self._max_batch_size)
        if not validation.valid:
            logger.info("Rejected batch: %d validation errors", len(validation.errors))
            return BatchResult(success=False, errors=validation.errors, total=_safe_len(raw))

        result = BatchResult(total=len(raw))
        samples = [parse_sample(point) for point in raw]

        fresh, result.duplicates = await idempotency.partition(self._store, samples)

        seen_in_batch = set()
        for sample in fresh:
            # Same client_id twice in one upload: the second copy is a re-send
            if sample.client_id in seen_in_batch:
                result.duplicates += 1
                continue
            seen_in_batch.add(sample.client_id)

            try:
                outcome = await self._ingest_one(sample)
            except DuplicateSampleError:
                # Lost a race with a concurrent upload of the same sample
                await self._store.rollback()
                result.duplicates += 1
                continue
            except Exception as exc:
                await self._store.rollback()
                logger.warning("Failed to process point %s: %s", sample.client_id, exc)
                result.errors.append(f"Failed to process point {sample.client_id}: {exc}")
                continue

            if outcome == "conflict":
                result.conflicts += 1
            else:
                result.created += 1

        logger.info(
            "Processed batch of %d: created=%d duplicates=%d conflicts=%d errors=%d",
            result.total, result.created, result.duplicates, result.conflicts, len(result.errors),
        )
        return result

    async def _ingest_one(self, sample: LocationSample) -> str:
        server_snapshot = await conflict_detector.detect(
            self._store, sample, window=self._conflict_window
        )

        if server_snapshot is not None:
            conflict_id = await self._store.create_conflict(
                subject_id=sample.subject_id,
                client_id=sample.client_id,
                client_sample=sample.to_payload(),
                server_sample=server_snapshot,
            )
            await self._store.commit()
            logger.info(
                "Conflict %s: sample %s collides with stored sample %s",
                conflict_id, sample.client_id, server_snapshot.get("client_id"),
            )
            return "conflict"

        await self._store.insert_sample(sample, synced_at_utc=utc_now())
        await self._store.commit()
        return "created"

    async def get_sync_status(self, subject_id: str) -> SyncStatus:
        return SyncStatus(
            pending_conflicts=await self._store.count_pending_conflicts(subject_id),
            last_synced_at=await self._store.last_synced_at(subject_id),
            total_points=await self._store.count_samples(subject_id),
        )

    async def list_pending_conflicts(self, subject_id: str) -> Sequence[ConflictRecord]:
        return await self._store.list_pending_conflicts(subject_id)


def _safe_len(raw: Any) -> int:
    return len(raw) if isinstance(raw, list) else 0
