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
from schemas.schema import ImageUploadRequest, PropertyOut, UploadedImageIn
from services.property_image_service import PropertyImageService

router = APIRouter(tags=["Property Images"])


@cbv(router)
class PropertyImageRoutes:
    @router.post("/{property_id}/images/upload-params", dependencies=[rate_limit])
    @safe_handler
    async def upload_params(
        self,
        property_id: uuid.UUID,
        data: ImageUploadRequest,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyImageService(db).upload_params(
            property_id, current_user, data
        )

    @router.post(
        "/{property_id}/images",
        response_model=PropertyOut,
        status_code=201,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def attach(
        self,
        property_id: uuid.UUID,
        images: List[UploadedImageIn],
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyImageService(db).attach_images(
            property_id, current_user, images
        )

    @router.delete("/images/{image_id}", dependencies=[rate_limit])
    @safe_handler
    async def delete_image(
        self,
        image_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyImageService(db).delete_image(image_id, current_user)
