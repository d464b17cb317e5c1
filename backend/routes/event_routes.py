import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from backend.auth.dependencies import user_from_token
from backend.database import get_db

router = APIRouter(tags=['events'])

logger = logging.getLogger(__name__)


@router.websocket('/ws')
async def events_socket(websocket: WebSocket, token: str = Query(default=''), db: Session = Depends(get_db)):
    """Push channel. Messages are invalidation hints; clients re-fetch on receipt."""
    try:
        user_id = user_from_token(token, db).id
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        # the socket can stay open for hours; give the connection back now
        db.close()

    push_hub = websocket.app.state.push_hub
    await push_hub.connect(user_id, websocket)
    try:
        while True:
            # inbound messages are ignored; reading keeps the disconnect observable
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        push_hub.disconnect(user_id, websocket)
