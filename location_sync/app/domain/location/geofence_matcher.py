"""
Geofence Matcher.

Finds the active zones that contain a live coordinate for a subject:
the subject's own zones plus those inherited from its shared profile.
"""

from typing import Dict, List

from location_sync.app.domain.location.geo import distance_meters
from location_sync.app.domain.location.store import LocationStore
from location_sync.app.domain.location.types import Coordinate, Zone, ZoneMatch


class GeofenceMatcher:

    def __init__(self, store: LocationStore):
        self._store = store

    async def candidate_zones(self, subject_id: str) -> List[Zone]:
        """Active zones applicable to the subject, each exactly once."""
        zones: Dict[int, Zone] = {}

        for zone in await self._store.find_active_zones_by_owner(subject_id):
            zones[zone.id] = zone

        profile_id = await self._store.get_shared_profile_id(subject_id)
        if profile_id:
            for zone in await self._store.find_active_zones_by_profile(profile_id):
                zones.setdefault(zone.id, zone)

        return [z for z in zones.values() if z.is_active]

    async def matches(self, subject_id: str, point: Coordinate) -> List[ZoneMatch]:
        """
        Zones whose circle contains the point (boundary inclusive).

        A subject with no zones and no profile yields an empty list.
        """
        return [
            ZoneMatch(id=zone.id, name=zone.name, task_type=zone.task_type)
            for zone in await self.candidate_zones(subject_id)
            if distance_meters(zone.center, point) <= float(zone.radius_meters)
        ]
