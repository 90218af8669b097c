# crowdnav/services/advisory_client.py
"""
HTTP client for the optional advisory service (language-model zone lookup).

The service receives the position, the reported GPS accuracy, the snapping
threshold and every zone boundary, and answers with
{"zoneId": "<id>|unknown", "justification": "..."}.
Answers are advisory only — see zone_locator.resolve_zone().
"""

from typing import Optional, Sequence

import httpx

from crowdnav.config import settings
from crowdnav.services.domain import Coordinate, Zone
from crowdnav.services.zone_locator import AdvisoryAnswer
from crowdnav.utils.logger import get_logger

logger = get_logger(__name__)


class AdvisoryClient:
    def __init__(self, base_url: str, api_key: Optional[str] = None,
                 timeout: float = 2.0, snapping_threshold: float = 15.0,
                 client: Optional[httpx.AsyncClient] = None):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self.snapping_threshold = snapping_threshold

    @classmethod
    def from_settings(cls) -> Optional["AdvisoryClient"]:
        if not settings.advisory_enabled:
            return None
        logger.info(f"Advisory zone lookup enabled → {settings.ADVISORY_URL}")
        return cls(
            base_url=settings.ADVISORY_URL,
            api_key=settings.ADVISORY_API_KEY,
            timeout=settings.ADVISORY_TIMEOUT_SECONDS,
            snapping_threshold=settings.ZONE_SNAPPING_THRESHOLD_METERS,
        )

    async def identify_zone(self, point: Coordinate, zones: Sequence[Zone],
                            accuracy: Optional[float] = None) -> Optional[AdvisoryAnswer]:
        payload = {
            "latitude": point.latitude,
            "longitude": point.longitude,
            "accuracy": accuracy if accuracy is not None else 10,
            "snappingThreshold": self.snapping_threshold,
            "zones": [
                {
                    "id": z.id,
                    "name": z.name,
                    "coordinates": [{"lat": c.latitude, "lng": c.longitude} for c in z.boundary],
                }
                for z in zones
            ],
        }
        resp = await self._client.post("/identify-zone", json=payload)
        resp.raise_for_status()
        body = resp.json()
        zone_id = body.get("zoneId")
        if not zone_id:
            return None
        return AdvisoryAnswer(zone_id=zone_id, justification=body.get("justification", ""))

    async def aclose(self):
        await self._client.aclose()
