# crowdnav/state.py
"""
Process-wide runtime objects, built at startup by main.py and stored on app.state.
Routers reach them through the FastAPI dependencies below.
"""

from fastapi import Request, WebSocket

from crowdnav.services.publishers import SnapshotBroadcaster
from crowdnav.services.sync_orchestrator import SyncOrchestrator


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """FastAPI dependency — the single SyncOrchestrator instance."""
    return request.app.state.orchestrator


def get_broadcaster(websocket: WebSocket) -> SnapshotBroadcaster:
    return websocket.app.state.broadcaster
