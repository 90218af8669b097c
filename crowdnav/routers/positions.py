# crowdnav/routers/positions.py
"""
User position stream + SOS.
POST /positions is the location-update entry point called by the user app.
"""

from fastapi import APIRouter, Depends, Response, status
from crowdnav.schemas.position import PositionUpdateIn, PositionOut, SosUpdate
from crowdnav.services.domain import Coordinate, PositionStatus
from crowdnav.services.sync_orchestrator import SyncOrchestrator
from crowdnav.state import get_orchestrator
from crowdnav.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/positions", response_model=PositionOut, summary="Report a user's GPS position")
async def report_position(body: PositionUpdateIn, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Locates the user, updates zone occupancy and returns the assignment immediately."""
    position = await orchestrator.on_position_update(
        body.user_id,
        Coordinate(latitude=body.lat, longitude=body.lng),
        observed_at=body.observed_at,
        name=body.name,
        group_size=body.group_size,
        accuracy=body.accuracy,
    )
    return PositionOut.from_domain(position)


@router.get("/positions", response_model=list[PositionOut])
async def list_positions(zone_id: str = None, online_only: bool = False,
                         orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Last known position of every user, optionally filtered by zone / online status."""
    positions = orchestrator.positions_snapshot()
    if zone_id:
        positions = [p for p in positions if p.assigned_zone_id == zone_id]
    if online_only:
        positions = [p for p in positions if p.status == PositionStatus.ONLINE]
    return [PositionOut.from_domain(p) for p in positions]


@router.get("/positions/sos", response_model=list[PositionOut], summary="Users who raised SOS")
async def list_sos(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return [PositionOut.from_domain(p) for p in orchestrator.positions_snapshot() if p.sos]


@router.get("/positions/{user_id}", response_model=PositionOut)
async def get_position(user_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return PositionOut.from_domain(orchestrator.get_position(user_id))


@router.put("/positions/{user_id}/sos", response_model=PositionOut)
async def set_sos(user_id: str, body: SosUpdate, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return PositionOut.from_domain(orchestrator.set_sos(user_id, body.sos))


@router.delete("/positions/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(user_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Forget a user (logout / account removal). Frees their slot in the zone count."""
    orchestrator.remove_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
