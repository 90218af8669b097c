# crowdnav/routers/live.py
"""
Live zone/position feed over websocket.
On connect the client receives the full zone snapshot, then every change
the orchestrator publishes.
"""

import json
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from crowdnav.schemas.position import PositionOut
from crowdnav.schemas.zone import ZoneOut
from crowdnav.state import get_broadcaster
from crowdnav.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _encode(kind: str, payload) -> str:
    if kind == "zone":
        data = ZoneOut.from_domain(payload).model_dump(mode="json")
    elif kind == "position":
        data = PositionOut.from_domain(payload).model_dump(mode="json")
    else:
        data = {"id": payload}
    return json.dumps({"type": kind, "data": data})


@router.websocket("/ws/zones")
async def zone_feed(websocket: WebSocket):
    broadcaster = get_broadcaster(websocket)
    orchestrator = websocket.app.state.orchestrator
    await websocket.accept()
    queue = broadcaster.subscribe()
    try:
        await websocket.send_text(json.dumps({
            "type": "snapshot",
            "data": [ZoneOut.from_domain(z).model_dump(mode="json") for z in orchestrator.snapshot().zones],
        }))
        while True:
            kind, payload = await queue.get()
            await websocket.send_text(_encode(kind, payload))
    except WebSocketDisconnect:
        logger.debug("Live feed client disconnected")
    finally:
        broadcaster.unsubscribe(queue)
