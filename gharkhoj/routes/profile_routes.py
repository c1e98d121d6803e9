import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import (
    ImageUploadRequest,
    ProfileOut,
    ProfileStatsOut,
    ProfileUpdate,
    PublicProfileOut,
    UploadedImageIn,
)
from services.profile_service import ProfileService

router = APIRouter(tags=["Profiles"])


@cbv(router)
class ProfileRoutes:
    @router.get("/profile", response_model=ProfileOut, dependencies=[rate_limit])
    @safe_handler
    async def get_profile(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ProfileService(db).get_own(current_user)

    @router.patch("/profile", response_model=ProfileOut, dependencies=[rate_limit])
    @safe_handler
    async def update_profile(
        self,
        data: ProfileUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ProfileService(db).update_own(current_user, data)

    @router.post("/profile/avatar/upload-params", dependencies=[rate_limit])
    @safe_handler
    async def avatar_upload_params(
        self,
        data: ImageUploadRequest,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ProfileService(db).avatar_upload_params(
            current_user, file_size=data.file_size, file_name=data.file_name
        )

    @router.put("/profile/avatar", response_model=ProfileOut, dependencies=[rate_limit])
    @safe_handler
    async def set_avatar(
        self,
        data: UploadedImageIn,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ProfileService(db).set_avatar(current_user, data)

    @router.get(
        "/profile/stats", response_model=ProfileStatsOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def stats(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await ProfileService(db).stats(current_user)

    @router.get(
        "/users/{user_id}", response_model=PublicProfileOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def public_profile(
        self,
        user_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ProfileService(db).public_profile(user_id)
