# crowdnav/schemas/alert.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class AlertIn(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    zone_id: Optional[str] = None       # Omit to alert every user


class AlertOut(BaseModel):
    id: int
    alert_type: str
    zone_id: Optional[str]
    user_id: Optional[str]
    message: str
    is_resolved: int
    triggered_at: datetime
    resolved_at: Optional[datetime]

    class Config:
        from_attributes = True
