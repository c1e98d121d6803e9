from fastapi import Depends, Request, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from models.models import User

from .get_db import get_db_async
from .session_context import SessionContext
from .validators import extract_token


async def get_session_context(
    request: Request,
    db: AsyncSession = Depends(get_db_async),
) -> SessionContext:
    context = await SessionContext(db).resolve(extract_token(request))
    request.state.user = context.user
    return context


async def get_current_session(
    context: SessionContext = Depends(get_session_context),
) -> SessionContext:
    context.require_user()
    return context


async def get_current_user(
    context: SessionContext = Depends(get_current_session),
) -> User:
    return context.user


async def get_current_user_ws(
    websocket: WebSocket,
    db: AsyncSession,
) -> SessionContext | None:
    context = await SessionContext(db).resolve(extract_token(websocket))
    if not context.is_authenticated:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    return context
