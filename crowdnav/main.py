# crowdnav/main.py
"""
FastAPI application entry point.
Wires the sync orchestrator with its stores and publishers, registers
middleware, domain error handlers and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from crowdnav.routers import zones, positions, routes, alerts, health, live
from crowdnav.database import create_tables
from crowdnav.config import settings
from crowdnav.exceptions import (
    CrowdNavError, InvalidCapacity, InvalidEndpoints, InvalidPolygon, NoteNotFound, UserNotFound,
    ZoneAlreadyExists, ZoneNotFound,
)
from crowdnav.services.advisory_client import AdvisoryClient
from crowdnav.services.position_store import SqlPositionStore
from crowdnav.services.publishers import AlertPublisher, SnapshotBroadcaster, StorePublisher
from crowdnav.services.sync_orchestrator import SyncOrchestrator
from crowdnav.services.zone_store import SqlZoneStore
from crowdnav.utils.logger import get_logger
import time
import asyncio

logger = get_logger(__name__)

app = FastAPI(
    title="CrowdNav API",
    description="Zone geolocation, crowd-density classification and least-congested routing.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (user + admin web apps) ─────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Health and docs stay open. Set API_KEY in .env; leave empty to disable.
    """
    OPEN_PATHS = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.OPEN_PATHS or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Domain Error Handlers ────────────────────────────────────────────────────
_ERROR_STATUS = {
    InvalidPolygon: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidCapacity: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidEndpoints: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ZoneNotFound: status.HTTP_404_NOT_FOUND,
    UserNotFound: status.HTTP_404_NOT_FOUND,
    NoteNotFound: status.HTTP_404_NOT_FOUND,
    ZoneAlreadyExists: status.HTTP_409_CONFLICT,
}


@app.exception_handler(CrowdNavError)
async def domain_exception_handler(request: Request, exc: CrowdNavError):
    code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc), "error": type(exc).__name__})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(zones.router,     prefix="/api/v1", tags=["🗺️  Zones"])
app.include_router(positions.router, prefix="/api/v1", tags=["📍 Positions"])
app.include_router(routes.router,    prefix="/api/v1", tags=["🧭 Routes"])
app.include_router(alerts.router,    prefix="/api/v1", tags=["🔔 Alerts"])
app.include_router(health.router,    prefix="/api/v1", tags=["💚 Health"])
app.include_router(live.router,      prefix="/api/v1", tags=["📡 Live"])


def build_orchestrator(broadcaster: SnapshotBroadcaster) -> SyncOrchestrator:
    zone_store = SqlZoneStore()
    position_store = SqlPositionStore()
    return SyncOrchestrator(
        zone_store,
        position_store,
        publishers=[
            StorePublisher(zone_store, position_store),
            AlertPublisher(settings.OVERCROWDED_ALERT_COOLDOWN_SECONDS),
            broadcaster,
        ],
        advisor=AdvisoryClient.from_settings(),
        advisory_timeout=settings.ADVISORY_TIMEOUT_SECONDS,
        stale_after_seconds=settings.POSITION_STALE_SECONDS,
    )


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 CrowdNav backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    app.state.broadcaster = SnapshotBroadcaster(settings.SNAPSHOT_QUEUE_SIZE)
    app.state.orchestrator = build_orchestrator(app.state.broadcaster)
    app.state.orchestrator.load()
    app.state.sync_task = asyncio.create_task(
        app.state.orchestrator.run(settings.SYNC_INTERVAL_SECONDS), name="zone-sync"
    )
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 CrowdNav backend shutting down...")
    orchestrator = getattr(app.state, "orchestrator", None)
    if orchestrator is None:
        return
    orchestrator.stop()
    await app.state.sync_task
    await orchestrator.drain()
    if orchestrator.advisor is not None:
        await orchestrator.advisor.aclose()
