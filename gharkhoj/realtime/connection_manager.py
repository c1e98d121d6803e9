import logging
from uuid import UUID

from fastapi import WebSocket, status

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: dict[UUID, list[WebSocket]] = {}

    async def connect(self, user_id: UUID, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

    async def disconnect(self, user_id: UUID, websocket: WebSocket):
        connections = self.active_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(user_id, None)

    async def disconnect_user(self, user_id: UUID):
        for ws in list(self.active_connections.pop(user_id, [])):
            try:
                await ws.close(code=status.WS_1008_POLICY_VIOLATION)
            except Exception:
                logger.debug(f"Socket for user {user_id} already closed")


manager = ConnectionManager()
