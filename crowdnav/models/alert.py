# crowdnav/models/alert.py
"""
Alerts table — admin broadcasts, automatic over-crowding alerts and SOS calls.
zone_id NULL means the alert targets every user.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from crowdnav.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(50), nullable=False, index=True)   # broadcast | overcrowded | sos
    zone_id = Column(String(100), index=True)
    user_id = Column(String(100))
    message = Column(Text, nullable=False)
    is_resolved = Column(Integer, default=0, nullable=False)
    triggered_at = Column(DateTime, nullable=False, index=True)
    resolved_at = Column(DateTime)

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} zone={self.zone_id} resolved={self.is_resolved}>"
