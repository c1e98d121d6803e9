import uuid
from typing import List

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import (
    ArchiveIn,
    ConversationOut,
    ConversationStartIn,
    ConversationSummaryOut,
    MessageCreate,
    MessageOut,
    UnreadCountOut,
)
from services.conversation_service import ConversationService
from services.message_service import MessageService

router = APIRouter(tags=["Messaging"])


@cbv(router)
class ConversationRoutes:
    @router.post(
        "/conversations", response_model=ConversationOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def start(
        self,
        data: ConversationStartIn,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ConversationService(db).start(
            data.property_id, current_user, tenant_id=data.tenant_id
        )

    @router.get(
        "/conversations",
        response_model=List[ConversationSummaryOut],
        dependencies=[rate_limit],
    )
    @safe_handler
    async def directory(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
        include_archived: bool = False,
    ):
        return await ConversationService(db).directory(
            current_user, include_archived=include_archived
        )

    @router.patch(
        "/conversations/{conversation_id}/archive",
        response_model=ConversationOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def archive(
        self,
        conversation_id: uuid.UUID,
        data: ArchiveIn,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ConversationService(db).archive(
            conversation_id, current_user, data.archived
        )

    @router.get(
        "/conversations/{conversation_id}/messages",
        response_model=List[MessageOut],
        dependencies=[rate_limit],
    )
    @safe_handler
    async def history(
        self,
        conversation_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await MessageService(db).history(conversation_id, current_user)

    @router.post(
        "/conversations/{conversation_id}/messages",
        response_model=MessageOut,
        status_code=201,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def send(
        self,
        conversation_id: uuid.UUID,
        data: MessageCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await MessageService(db).send(
            conversation_id, current_user, data.content
        )

    @router.get(
        "/messages/unread-count",
        response_model=UnreadCountOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def unread_count(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await MessageService(db).unread_count(current_user)

    @router.patch("/messages/{message_id}/read", dependencies=[rate_limit])
    @safe_handler
    async def mark_read(
        self,
        message_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await MessageService(db).mark_read(message_id, current_user)
