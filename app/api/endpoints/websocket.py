"""
WebSocket endpoint for live readings, alerts and device status
"""

import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket(settings.WEBSOCKET_PATH)
async def websocket_endpoint(websocket: WebSocket):
    """
    Clients tag themselves with `subscribe`, `subscribeFarm` and `auth`
    messages and then receive matching broadcasts
    """
    manager = websocket.app.state.connections
    connection = await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await manager.handle_message(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection)
