import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class PushHub:
    """Open WebSocket connections grouped by user id.

    Delivery is best effort: no replay, no ordering. A socket that fails
    to accept a message is dropped and the client re-fetches on reconnect.
    """

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = defaultdict(set)

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        self._connections[user_id].add(websocket)
        try:
            await websocket.accept()
        except Exception:
            self.disconnect(user_id, websocket)
            raise
        logger.info('Push client connected for user %s', user_id)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self._connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._connections[user_id]
        logger.info('Push client disconnected for user %s', user_id)

    def connection_count(self, user_id: int | None = None) -> int:
        if user_id is not None:
            return len(self._connections.get(user_id, ()))
        return sum(len(sockets) for sockets in self._connections.values())

    async def send_to_user(self, user_id: int, event: str, data: dict | None = None) -> None:
        await asyncio.gather(*(
            self._send(user_id, websocket, event, data)
            for websocket in list(self._connections.get(user_id, ()))
        ))

    async def broadcast(self, event: str, data: dict | None = None) -> None:
        targets = [
            (user_id, websocket)
            for user_id, sockets in list(self._connections.items())
            for websocket in list(sockets)
        ]
        await asyncio.gather(*(self._send(user_id, websocket, event, data) for user_id, websocket in targets))

    async def _send(self, user_id: int, websocket: WebSocket, event: str, data: dict | None) -> None:
        try:
            await websocket.send_json({'event': event, 'data': data or {}})
        except Exception:
            logger.warning('Dropping push socket for user %s after failed send', user_id, exc_info=True)
            self.disconnect(user_id, websocket)
