# crowdnav/schemas/route.py
from pydantic import BaseModel, Field
from typing import List, Optional
from crowdnav.services.domain import CongestionLevel, Route


class RouteOut(BaseModel):
    route: List[str]
    congestion_level: CongestionLevel
    alternative_route_available: bool
    alternative_route: Optional[List[str]] = None
    congestion_unavoidable: bool = False

    @classmethod
    def from_domain(cls, r: Route) -> "RouteOut":
        return cls(
            route=list(r.path),
            congestion_level=r.congestion_level,
            alternative_route_available=r.alternative_route_available,
            alternative_route=list(r.alternative_path) if r.alternative_path else None,
            congestion_unavoidable=r.congestion_unavoidable,
        )


class AlternativeRequest(BaseModel):
    current_route: List[str] = Field(..., min_length=2)


class AlternativeOut(BaseModel):
    current_route: List[str]
    alternative_route_available: bool
    alternative_route: Optional[List[str]] = None
