# crowdnav/routers/alerts.py
"""Admin broadcast alerts + automatic over-crowding / SOS alerts."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from crowdnav.database import get_db
from crowdnav.schemas.alert import AlertIn, AlertOut
from crowdnav.services.alert_service import create_alert, list_alerts, resolve_alert
from crowdnav.services.sync_orchestrator import SyncOrchestrator
from crowdnav.state import get_orchestrator
from typing import Optional

router = APIRouter()


@router.get("/alerts", response_model=list[AlertOut], summary="Alerts — filterable by zone and type")
def get_alerts(
    zone_id: Optional[str] = None,
    alert_type: Optional[str] = None,
    is_resolved: Optional[int] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """With zone_id, returns the zone's own alerts plus global ones (what a user there sees)."""
    return list_alerts(db, zone_id=zone_id, alert_type=alert_type,
                       is_resolved=is_resolved, limit=max(1, min(limit, 500)))


@router.post("/alerts", response_model=AlertOut, status_code=status.HTTP_201_CREATED,
             summary="Broadcast an alert to all users or one zone")
async def broadcast_alert(body: AlertIn, db: Session = Depends(get_db),
                          orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    if body.zone_id:
        orchestrator.get_zone(body.zone_id)     # 404 for unknown zones
    return await create_alert(db, "broadcast", body.message, zone_id=body.zone_id)


@router.put("/alerts/{alert_id}/resolve", response_model=AlertOut)
def mark_resolved(alert_id: int, db: Session = Depends(get_db)):
    alert = resolve_alert(db, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return alert
