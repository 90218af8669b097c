# CrowdNav — Database Models
# Import all models here for SQLAlchemy discovery

from crowdnav.models.zone import ZoneRecord                     # noqa
from crowdnav.models.user_position import UserPositionRecord    # noqa
from crowdnav.models.alert import Alert                         # noqa
