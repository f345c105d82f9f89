"""
Conflict Resolution Workflow.

State machine per conflict:
    PENDING --resolve(choice)--> RESOLVED
    PENDING --reject()---------> REJECTED
Both targets are terminal. Each transition is a conditional update on
status = PENDING, so of two concurrent calls on one conflict only the
first can succeed.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from location_sync.app.core.exceptions import (
    DuplicateSampleError, InvalidArgumentError, ResourceNotFoundError
)
from location_sync.app.domain.location.batch_validator import parse_sample, validate_sample
from location_sync.app.domain.location.store import LocationStore
from location_sync.app.domain.location.types import ConflictRecord, LocationSample, utc_now
from location_sync.app.models.location_enums import ConflictStatus, ResolutionChoice

logger = logging.getLogger(__name__)


def parse_choice(value: Union[ResolutionChoice, str, None]) -> ResolutionChoice:
    """Accept the enum or its value in any case ('client', 'SERVER', ...)."""
    if isinstance(value, ResolutionChoice):
        return value
    if isinstance(value, str):
        try:
            return ResolutionChoice(value.strip().upper())
        except ValueError:
            pass
    raise InvalidArgumentError(
        "Invalid resolution type. Must be: client, server, or manual",
        details={"resolution": value},
    )


class ConflictResolutionService:

    def __init__(self, store: LocationStore):
        self._store = store

    async def _get_pending(self, conflict_id: int) -> ConflictRecord:
        conflict = await self._store.get_conflict(conflict_id)
        if conflict.status != ConflictStatus.PENDING:
            raise ResourceNotFoundError(
                "Pending conflict",
                conflict_id,
                message=f"Conflict {conflict_id} is already {conflict.status.value}",
            )
        return conflict

    def _winning_payload(
        self,
        conflict: ConflictRecord,
        choice: ResolutionChoice,
        manual_payload: Optional[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        if choice == ResolutionChoice.CLIENT:
            return dict(conflict.client_sample)

        if choice == ResolutionChoice.SERVER:
            return dict(conflict.server_sample)

        if manual_payload is None:
            raise InvalidArgumentError("Manual data required for manual resolution")

        payload = dict(manual_payload)
        payload.setdefault("subject_id", conflict.subject_id)
        if str(payload["subject_id"]) != conflict.subject_id:
            raise InvalidArgumentError(
                "Manual data must belong to the conflict's subject",
                details={"subject_id": payload["subject_id"]},
            )

        errors = validate_sample(payload, 0)
        if errors:
            raise InvalidArgumentError("Invalid manual data", details={"errors": errors})
        return payload

    async def resolve(
        self,
        conflict_id: int,
        choice: Union[ResolutionChoice, str],
        manual_payload: Optional[Mapping[str, Any]] = None,
    ) -> LocationSample:
        """
        Resolve a pending conflict and materialize the winning sample.

        The status transition and the sample insert are committed together
        or not at all.

        Raises:
            InvalidArgumentError: unknown choice, or MANUAL without valid data
            ResourceNotFoundError: conflict missing or no longer PENDING
        """
        choice = parse_choice(choice)
        conflict = await self._get_pending(conflict_id)
        winner = parse_sample(self._winning_payload(conflict, choice, manual_payload))
        resolved_at = utc_now()

        # The server row normally still exists; it is already the stored sample
        already_stored = False
        if choice == ResolutionChoice.SERVER:
            known = await self._store.find_samples_by_client_ids([winner.client_id])
            already_stored = winner.client_id in known

        try:
            updated = await self._store.update_conflict(
                conflict_id,
                {
                    "status": ConflictStatus.RESOLVED,
                    "resolution": choice,
                    "resolved_sample": winner.to_payload(),
                    "resolved_at_utc": resolved_at,
                },
                expected_status=ConflictStatus.PENDING,
            )
            if not updated:
                raise ResourceNotFoundError(
                    "Pending conflict", conflict_id,
                    message=f"Conflict {conflict_id} was resolved concurrently",
                )

            if not already_stored:
                await self._store.insert_sample(winner, synced_at_utc=resolved_at)

            await self._store.commit()
        except DuplicateSampleError as exc:
            await self._store.rollback()
            raise InvalidArgumentError(
                f"Winning sample {exc.client_id} is already stored",
                details={"client_id": exc.client_id},
            ) from exc
        except Exception:
            await self._store.rollback()
            raise

        logger.info("Conflict %s resolved with %s data", conflict_id, choice.value)
        return winner

    async def reject(self, conflict_id: int) -> None:
        """
        Reject a pending conflict; neither side is stored.

        Raises:
            ResourceNotFoundError: conflict missing or no longer PENDING
        """
        await self._get_pending(conflict_id)

        try:
            updated = await self._store.update_conflict(
                conflict_id,
                {"status": ConflictStatus.REJECTED, "resolved_at_utc": utc_now()},
                expected_status=ConflictStatus.PENDING,
            )
            if not updated:
                raise ResourceNotFoundError(
                    "Pending conflict", conflict_id,
                    message=f"Conflict {conflict_id} was resolved concurrently",
                )
            await self._store.commit()
        except Exception:
            await self._store.rollback()
            raise

        logger.info("Conflict %s rejected", conflict_id)
