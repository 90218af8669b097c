# crowdnav/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + advisory service + in-memory sync state.
"""

import requests
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from crowdnav.database import get_db
from crowdnav.config import settings
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Advisory service reachability (when configured)
    - Zone / user counts held by the sync orchestrator
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "advisory": "disabled",
        "zones": 0,
        "users": 0,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    # Advisory is optional; an outage never degrades overall status
    if settings.advisory_enabled:
        try:
            resp = requests.get(f"{settings.ADVISORY_URL.rstrip('/')}/health", timeout=3)
            result["advisory"] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["advisory"] = "unreachable"
        except Exception as e:
            result["advisory"] = f"error: {str(e)}"

    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is not None:
        result["zones"] = len(orchestrator.snapshot().zones)
        result["users"] = len(orchestrator.positions_snapshot())

    return result
