# crowdnav/schemas/zone.py
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Optional
from crowdnav.services.domain import Coordinate, DensityCategory, Zone, ZoneNote


class CoordinateIO(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinate:
        return Coordinate(latitude=self.lat, longitude=self.lng)


class ZoneIn(BaseModel):
    """Admin-owned zone fields. Occupancy and density are computed, never accepted."""
    id: Optional[str] = Field(None, max_length=100)   # Generated when omitted
    name: str = Field(..., min_length=3, max_length=200)
    capacity: int = Field(..., ge=1)
    coordinates: List[CoordinateIO] = Field(..., min_length=3)
    adjacent_zone_ids: List[str] = []

    @field_validator("adjacent_zone_ids")
    @classmethod
    def _dedupe(cls, ids: List[str]):
        return sorted(set(i for i in ids if i))

    def to_domain(self, zone_id: str) -> Zone:
        return Zone(
            id=zone_id,
            name=self.name,
            boundary=tuple(c.to_domain() for c in self.coordinates),
            capacity=self.capacity,
            adjacent_zone_ids=tuple(i for i in self.adjacent_zone_ids if i != zone_id),
        )


class ManualOverrideOut(BaseModel):
    density: DensityCategory
    occupant_count_at_override: int


class ZoneNoteIn(BaseModel):
    text: str = Field(..., max_length=500)
    visible_to_user: bool = True

    @field_validator("text")
    @classmethod
    def _not_blank(cls, text: str):
        if not text.strip():
            raise ValueError("note text is empty")
        return text.strip()


class ZoneNoteOut(BaseModel):
    id: str
    text: str
    visible_to_user: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, note: ZoneNote) -> "ZoneNoteOut":
        return cls(id=note.id, text=note.text, visible_to_user=note.visible_to_user,
                   created_at=note.created_at)


class ZoneOut(BaseModel):
    id: str
    name: str
    coordinates: List[CoordinateIO]
    capacity: int
    occupant_count: int
    occupancy_percent: float
    density: DensityCategory
    manual_override: Optional[ManualOverrideOut] = None
    adjacent_zone_ids: List[str]
    notes: List[ZoneNoteOut] = []

    @classmethod
    def from_domain(cls, zone: Zone) -> "ZoneOut":
        return cls(
            id=zone.id,
            name=zone.name,
            coordinates=[CoordinateIO(lat=c.latitude, lng=c.longitude) for c in zone.boundary],
            capacity=zone.capacity,
            occupant_count=zone.occupant_count,
            occupancy_percent=round(zone.occupant_count / zone.capacity * 100, 1) if zone.capacity else 0,
            density=zone.density,
            manual_override=ManualOverrideOut(
                density=zone.manual_override.density,
                occupant_count_at_override=zone.manual_override.occupant_count_at_override,
            ) if zone.manual_override else None,
            adjacent_zone_ids=list(zone.adjacent_zone_ids),
            notes=[ZoneNoteOut.from_domain(n) for n in zone.notes],
        )


class DensityOverrideIn(BaseModel):
    density: DensityCategory
