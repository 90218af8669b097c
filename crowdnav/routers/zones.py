# crowdnav/routers/zones.py
"""
Zone administration + live zone state.
Admin owns name/boundary/capacity/adjacency; occupancy and density are computed.
"""

import uuid
from fastapi import APIRouter, Depends, Response, status
from crowdnav.schemas.zone import ZoneIn, ZoneOut, DensityOverrideIn, ZoneNoteIn, ZoneNoteOut
from crowdnav.services.domain import DensityCategory
from crowdnav.services.sync_orchestrator import SyncOrchestrator
from crowdnav.state import get_orchestrator

router = APIRouter()


@router.get("/zones", response_model=list[ZoneOut])
async def list_zones(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Current state of every zone (snapshot)."""
    return [ZoneOut.from_domain(z) for z in orchestrator.snapshot().zones]


@router.get("/zones/overcrowded", response_model=list[ZoneOut])
async def list_overcrowded_zones(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Zones at or above capacity — need immediate attention."""
    return [ZoneOut.from_domain(z) for z in orchestrator.snapshot().zones
            if z.density == DensityCategory.OVER_CROWDED]


@router.get("/zones/{zone_id}", response_model=ZoneOut)
async def get_zone(zone_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return ZoneOut.from_domain(orchestrator.get_zone(zone_id))


@router.post("/zones", response_model=ZoneOut, status_code=status.HTTP_201_CREATED)
async def create_zone(body: ZoneIn, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """409 when an explicit id is already taken; use PUT to edit an existing zone."""
    zone_id = body.id or f"zone-{uuid.uuid4().hex[:7]}"
    zone = await orchestrator.create_zone(body.to_domain(zone_id))
    return ZoneOut.from_domain(zone)


@router.put("/zones/{zone_id}", response_model=ZoneOut)
async def update_zone(zone_id: str, body: ZoneIn, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    orchestrator.get_zone(zone_id)      # 404 if missing, PUT never creates
    zone = await orchestrator.upsert_zone(body.to_domain(zone_id))
    return ZoneOut.from_domain(zone)


@router.delete("/zones/{zone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_zone(zone_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    await orchestrator.delete_zone(zone_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/zones/{zone_id}/density", response_model=ZoneOut, summary="Manually pin zone density")
async def override_density(zone_id: str, body: DensityOverrideIn,
                           orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """
    Pin the density shown to users. The override holds only while the
    occupant count stays at its current value; the next change reverts to
    the computed category.
    """
    return ZoneOut.from_domain(orchestrator.set_manual_override(zone_id, body.density))


@router.delete("/zones/{zone_id}/density", response_model=ZoneOut, summary="Clear manual density override")
async def clear_density_override(zone_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return ZoneOut.from_domain(orchestrator.clear_manual_override(zone_id))


@router.get("/zones/{zone_id}/notes", response_model=list[ZoneNoteOut])
async def list_zone_notes(zone_id: str, visible_only: bool = False,
                          orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Admin notes for a zone. The user map asks for visible_only=true."""
    notes = orchestrator.get_zone(zone_id).notes
    return [ZoneNoteOut.from_domain(n) for n in notes if n.visible_to_user or not visible_only]


@router.post("/zones/{zone_id}/notes", response_model=ZoneNoteOut, status_code=status.HTTP_201_CREATED)
async def add_zone_note(zone_id: str, body: ZoneNoteIn, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    note = await orchestrator.add_zone_note(zone_id, body.text, body.visible_to_user)
    return ZoneNoteOut.from_domain(note)


@router.delete("/zones/{zone_id}/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_zone_note(zone_id: str, note_id: str, orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    await orchestrator.delete_zone_note(zone_id, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
