from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from ..auth.security import user_from_token
from ..db import SessionLocal
from ..logging import structlog


log = structlog.get_logger(__name__)

router = APIRouter(tags=["live"])


@router.websocket("/ws")
async def ws_updates(websocket: WebSocket, token: Optional[str] = None):
    if token:
        db = SessionLocal()
        try:
            user_from_token(token, db)
        except HTTPException:
            await websocket.close(code=4401)
            return
        finally:
            db.close()
    hub = websocket.app.state.hub
    await websocket.accept()
    await hub.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
