# crowdnav/models/user_position.py
"""
Last known position per user.
Written only by the sync orchestrator; read by the dashboards.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean
from crowdnav.database import Base


class UserPositionRecord(Base):
    __tablename__ = "user_positions"

    user_id = Column(String(100), primary_key=True)
    name = Column(String(200), default="", nullable=False)
    group_size = Column(Integer, default=1, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    observed_at = Column(DateTime, nullable=False, index=True)
    assigned_zone_id = Column(String(100), nullable=False, index=True)  # zone id | outside | unknown
    status = Column(String(20), default="online", nullable=False)     # online | offline
    sos = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<UserPositionRecord {self.user_id} zone={self.assigned_zone_id} {self.status}>"
