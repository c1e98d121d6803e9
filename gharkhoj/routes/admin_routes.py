import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import (
    AdminUserOut,
    AnalyticsOut,
    PropertyOut,
    RoleUpdateIn,
    StatusUpdate,
)
from services.admin_service import AdminService
from services.moderation_service import ModerationService

router = APIRouter(tags=["Admin"])


@cbv(router)
class AdminRoutes:
    @router.get(
        "/properties/pending",
        response_model=List[PropertyOut],
        dependencies=[rate_limit],
    )
    @safe_handler
    async def pending(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ModerationService(db).pending_queue(current_user)

    @router.patch(
        "/properties/{property_id}/status",
        response_model=PropertyOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def set_status(
        self,
        property_id: uuid.UUID,
        data: StatusUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ModerationService(db).set_status(
            property_id, data.status, current_user
        )

    @router.get("/users", response_model=List[AdminUserOut], dependencies=[rate_limit])
    @safe_handler
    async def users(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
        role: Optional[str] = None,
        search: Optional[str] = None,
    ):
        return await AdminService(db).list_users(current_user, role=role, search=search)

    @router.patch("/users/{user_id}/role", dependencies=[rate_limit])
    @safe_handler
    async def set_role(
        self,
        user_id: uuid.UUID,
        data: RoleUpdateIn,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await AdminService(db).set_role(user_id, data.role, current_user)

    @router.get("/analytics", response_model=AnalyticsOut, dependencies=[rate_limit])
    @safe_handler
    async def analytics(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await AdminService(db).analytics(current_user)
