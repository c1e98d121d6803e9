import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.get_current_user import get_current_user_ws
from core.get_db import get_session_factory

from .badge import UnreadBadge
from .connection_manager import manager
from .inbox_session import InboxSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _authenticate(websocket: WebSocket, session_factory):
    async with session_factory() as db:
        context = await get_current_user_ws(websocket, db)
    return context.user if context else None


@router.websocket("/ws/inbox")
async def inbox_endpoint(
    websocket: WebSocket,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    user = await _authenticate(websocket, session_factory)
    if user is None:
        return

    await manager.connect(user.id, websocket)
    session = InboxSession(websocket, user, session_factory)
    try:
        await session.start()
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await session.error("Invalid JSON")
                continue
            await session.handle(data)
    except WebSocketDisconnect:
        logger.debug(f"Inbox socket closed for {user.id}")
    finally:
        await session.stop()
        await manager.disconnect(user.id, websocket)


@router.websocket("/ws/unread")
async def unread_endpoint(
    websocket: WebSocket,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    user = await _authenticate(websocket, session_factory)
    if user is None:
        return

    await manager.connect(user.id, websocket)
    badge = UnreadBadge(user, session_factory, websocket.send_json)
    try:
        await badge.start()
        while True:
            # Clients only listen; anything they send is ignored.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Unread socket closed for {user.id}")
    finally:
        badge.stop()
        await manager.disconnect(user.id, websocket)
