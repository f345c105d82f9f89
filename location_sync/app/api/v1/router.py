"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from location_sync.app.api.v1.endpoints import gps_sync, geofences

router = APIRouter()

# Offline GPS batch upload and conflict workflow
router.include_router(gps_sync.router)

# Geofence management and containment checks
router.include_router(geofences.router)
