# crowdnav/routers/routes.py
"""Route planning between zones."""

from fastapi import APIRouter, Depends, Query
from crowdnav.schemas.route import RouteOut, AlternativeRequest, AlternativeOut
from crowdnav.services.sync_orchestrator import SyncOrchestrator
from crowdnav.state import get_orchestrator

router = APIRouter()


@router.get("/routes", response_model=RouteOut, summary="Least-congested route between two zones")
async def get_route(source: str = Query(..., min_length=1), destination: str = Query(..., min_length=1),
                    orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """
    Primary route plus, when it crosses a crowded zone, a detour that avoids
    every crowded/over-crowded zone. congestion_unavoidable=true means no
    such detour exists.
    """
    return RouteOut.from_domain(orchestrator.plan_route(source, destination))


@router.post("/routes/alternatives", response_model=AlternativeOut,
             summary="Detour for an existing route")
async def get_alternative(body: AlternativeRequest, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    alternative = orchestrator.suggest_alternative(body.current_route)
    return AlternativeOut(
        current_route=body.current_route,
        alternative_route_available=alternative is not None,
        alternative_route=list(alternative) if alternative else None,
    )
