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
from schemas.schema import FavoriteOut, FavoriteToggleOut
from services.favorite_service import FavoriteService

router = APIRouter(tags=["Favorites"])


@cbv(router)
class FavoriteRoutes:
    @router.get("/", response_model=List[FavoriteOut], dependencies=[rate_limit])
    @safe_handler
    async def list_favorites(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await FavoriteService(db).list_mine(current_user)

    @router.post(
        "/{property_id}/toggle",
        response_model=FavoriteToggleOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def toggle(
        self,
        property_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await FavoriteService(db).toggle(property_id, current_user)

    @router.get(
        "/{property_id}/status",
        response_model=FavoriteToggleOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def status(
        self,
        property_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await FavoriteService(db).status(property_id, current_user)

    @router.delete("/{favorite_id}", dependencies=[rate_limit])
    @safe_handler
    async def remove(
        self,
        favorite_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await FavoriteService(db).remove(favorite_id, current_user)
