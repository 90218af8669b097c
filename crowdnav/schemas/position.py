# crowdnav/schemas/position.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from crowdnav.services.domain import PositionStatus, UserPosition
from crowdnav.schemas.zone import CoordinateIO


class PositionUpdateIn(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=100)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    observed_at: Optional[datetime] = None     # Server time when omitted
    accuracy: Optional[float] = Field(None, ge=0)
    name: Optional[str] = Field(None, max_length=200)
    group_size: Optional[int] = Field(None, ge=1)


class PositionOut(BaseModel):
    user_id: str
    name: str
    coordinate: CoordinateIO
    observed_at: datetime
    assigned_zone_id: str
    group_size: int
    status: PositionStatus
    sos: bool

    @classmethod
    def from_domain(cls, p: UserPosition) -> "PositionOut":
        return cls(
            user_id=p.user_id,
            name=p.name,
            coordinate=CoordinateIO(lat=p.coordinate.latitude, lng=p.coordinate.longitude),
            observed_at=p.observed_at,
            assigned_zone_id=p.assigned_zone_id,
            group_size=p.group_size,
            status=p.status,
            sos=p.sos,
        )


class SosUpdate(BaseModel):
    sos: bool
