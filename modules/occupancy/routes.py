"""
Occupancy Module - Routes
==========================
Endpoints:
  GET /api/occupancy - occupied destinations (tracker read model)
"""

from fastapi import APIRouter, Depends

from common.exceptions import ComandaError, raise_http
from modules.auth.deps import get_current_staff
from modules.occupancy.tracker import occupancy_tracker
from modules.user.models import User

router = APIRouter(prefix="/api/occupancy", tags=["occupancy"])


@router.get("")
async def list_occupancy(staff: User = Depends(get_current_staff)):
    try:
        # Not started (e.g. scripts, tests without lifespan): read straight from the DB
        snapshot = occupancy_tracker.snapshot if occupancy_tracker.running else occupancy_tracker.refresh()
    except ComandaError as e:
        raise_http(e)
    return {
        "success": True,
        "occupied": [snap.to_dict() for snap in snapshot.values()],
    }
