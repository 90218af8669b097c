# crowdnav/models/zone.py
"""
Zones table.
Admin-owned columns: name, boundary, capacity, adjacent_zone_ids, notes.
Core-owned columns: occupant_count, density, override_* (written by the sync orchestrator).
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from crowdnav.database import Base


class ZoneRecord(Base):
    __tablename__ = "zones"

    id = Column(String(100), primary_key=True)
    name = Column(String(200), nullable=False)
    boundary = Column(JSON, nullable=False)             # [{"lat": .., "lng": ..}, ...]
    capacity = Column(Integer, nullable=False)
    occupant_count = Column(Integer, default=0, nullable=False)
    density = Column(String(20), default="free", nullable=False, index=True)
    override_density = Column(String(20))               # NULL = no manual override
    override_count = Column(Integer)                    # occupant_count when override was set
    adjacent_zone_ids = Column(JSON, default=list, nullable=False)
    notes = Column(JSON, default=list, nullable=False)   # [{"id", "text", "visible_to_user", "created_at"}]
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<ZoneRecord {self.id} {self.occupant_count}/{self.capacity} {self.density}>"
