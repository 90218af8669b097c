# crowdnav/services/alert_service.py
"""
Shared alert creation + lookup.
Used by the alert publisher (over-crowding, SOS) and the alerts router (admin broadcasts).
"""

from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from crowdnav.models.alert import Alert
from crowdnav.utils.logger import get_logger

logger = get_logger(__name__)


def add_alert(db: Session, alert_type: str, message: str,
              zone_id: Optional[str] = None, user_id: Optional[str] = None) -> Alert:
    """Create and persist an alert record. Always commits immediately. Blocking; publishers call it off the loop."""
    alert = Alert(alert_type=alert_type, zone_id=zone_id, user_id=user_id, message=message,
                  is_resolved=0, triggered_at=datetime.utcnow())
    db.add(alert)
    db.commit()
    target = f"zone {zone_id}" if zone_id else "all users"
    logger.warning(f"[ALERT][{alert_type.upper()}] → {target}: {message}")
    return alert


async def create_alert(db: Session, alert_type: str, message: str,
                       zone_id: Optional[str] = None, user_id: Optional[str] = None) -> Alert:
    return add_alert(db, alert_type, message, zone_id=zone_id, user_id=user_id)


def has_recent_alert(db: Session, alert_type: str, cooldown_seconds: int,
                     zone_id: Optional[str] = None, user_id: Optional[str] = None) -> bool:
    """True if an unresolved alert of this type was raised within the cooldown window."""
    q = db.query(Alert).filter(
        Alert.alert_type == alert_type, Alert.is_resolved == 0,
        Alert.triggered_at >= datetime.utcnow() - timedelta(seconds=cooldown_seconds),
    )
    if zone_id is not None:
        q = q.filter(Alert.zone_id == zone_id)
    if user_id is not None:
        q = q.filter(Alert.user_id == user_id)
    return q.first() is not None


def list_alerts(db: Session, zone_id: Optional[str] = None, alert_type: Optional[str] = None,
                is_resolved: Optional[int] = None, limit: int = 50) -> List[Alert]:
    """
    Alerts newest first. With zone_id, returns what a user standing in that
    zone should see: alerts targeted at the zone plus global ones.
    """
    q = db.query(Alert)
    if zone_id:
        q = q.filter(or_(Alert.zone_id == zone_id, Alert.zone_id.is_(None)))
    if alert_type:
        q = q.filter(Alert.alert_type == alert_type)
    if is_resolved is not None:
        q = q.filter(Alert.is_resolved == is_resolved)
    return q.order_by(Alert.triggered_at.desc()).limit(limit).all()


def resolve_alert(db: Session, alert_id: int) -> Optional[Alert]:
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        return None
    alert.is_resolved = 1
    alert.resolved_at = datetime.utcnow()
    db.commit()
    return alert
