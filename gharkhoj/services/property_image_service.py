import logging
import uuid

from fastapi import HTTPException

from core.breaker import breaker
from core.cloudinary_setup import CloudinaryClient
from core.mapper import ORMMapper
from core.settings import settings
from repos.property_image_repo import PropertyImageRepo
from repos.property_repo import PropertyRepo
from schemas.schema import PropertyOut

from .property_service import invalidate_property_cache

logger = logging.getLogger(__name__)

MAX_IMAGES = settings.MAX_PROPERTY_IMAGES


class PropertyImageService:
    def __init__(self, db):
        self.repo: PropertyImageRepo = PropertyImageRepo(db)
        self.properties: PropertyRepo = PropertyRepo(db)
        self.cloudinary: CloudinaryClient = CloudinaryClient()
        self.mapper: ORMMapper = ORMMapper()

    async def _owned_property(self, property_id: uuid.UUID, current_user):
        prop = await self.properties.get_by_id(property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        if prop.landlord_id != current_user.id:
            raise HTTPException(
                status_code=403,
                detail="You cannot manage images of a property you don't own",
            )
        return prop

    async def upload_params(self, property_id: uuid.UUID, current_user, data):
        async def handler():
            await self._owned_property(property_id, current_user)
            existing = await self.repo.count_for_property(property_id)
            if existing + data.count > MAX_IMAGES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Maximum of {MAX_IMAGES} images allowed per property.",
                )
            folder = f"{settings.PROPERTY_IMAGE_FOLDER}/{property_id}"
            if data.count == 1:
                params = await self.cloudinary.get_image_signed_upload_params(
                    folder=folder,
                    file_size=data.file_size,
                    file_name=data.file_name,
                )
                return {"uploads": [params]}
            return {
                "uploads": await self.cloudinary.get_signed_multiple_upload_params(
                    count=data.count, folder=folder
                )
            }

        return await breaker.call(handler)

    async def attach_images(self, property_id: uuid.UUID, current_user, images):
        async def handler():
            if not images:
                raise HTTPException(status_code=400, detail="No images provided")
            await self._owned_property(property_id, current_user)

            existing = await self.repo.count_for_property(property_id)
            if existing + len(images) > MAX_IMAGES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Maximum of {MAX_IMAGES} images allowed per property.",
                )

            start = await self.repo.next_display_order(property_id)
            await self.repo.add_many(
                property_id,
                [(img.secure_url, img.public_id) for img in images],
                start_order=start,
            )
            await invalidate_property_cache(property_id)
            prop = await self.properties.get_with_images(property_id)
            return self.mapper.one(prop, PropertyOut)

        return await breaker.call(handler)

    async def delete_image(self, image_id: uuid.UUID, current_user):
        async def handler():
            image = await self.repo.get_by_id(image_id)
            if not image:
                raise HTTPException(status_code=404, detail="Image not found")
            property_id = image.property_id
            await self._owned_property(property_id, current_user)

            public_id = image.public_id
            await self.repo.delete(image)
            await invalidate_property_cache(property_id)

            if public_id:
                try:
                    await self.cloudinary.delete_image(public_id)
                except HTTPException:
                    logger.exception(f"Image row {image_id} removed, file {public_id} remains")

            return {"message": "Image deleted", "id": str(image_id)}

        return await breaker.call(handler)
