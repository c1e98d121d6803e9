import asyncio
import logging
import time

import cloudinary
import cloudinary.api
import cloudinary.uploader
from cloudinary.utils import api_sign_request
from fastapi import HTTPException

from core.settings import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_FORMATS = ["jpg", "jpeg", "png", "webp"]


class CloudinaryClient:
    def __init__(self):
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_SECRET_KEY,
            secure=True,
        )

    @property
    def configured(self) -> bool:
        config = cloudinary.config()
        return bool(config.cloud_name and config.api_key and config.api_secret)

    async def connect(self) -> bool:
        if not self.configured:
            logger.info("Cloudinary not configured; uploads are disabled.")
            return False
        loop = asyncio.get_running_loop()
        info = await loop.run_in_executor(None, cloudinary.api.ping)
        return info.get("status") == "ok"

    def _sign(self, folder: str, max_file_size: int) -> dict:
        if not self.configured:
            raise HTTPException(503, "Image uploads are not configured")

        timestamp = int(time.time())
        eager = "f_auto,q_auto"
        signature = api_sign_request(
            {"timestamp": timestamp, "folder": folder, "eager": eager},
            cloudinary.config().api_secret,
        )
        return {
            "signature": signature,
            "timestamp": timestamp,
            "api_key": cloudinary.config().api_key,
            "cloud_name": cloudinary.config().cloud_name,
            "folder": folder,
            "eager": eager,
            "resource_type": "image",
            "allowed_formats": ALLOWED_IMAGE_FORMATS,
            "max_file_size": max_file_size,
        }

    async def get_image_signed_upload_params(
        self,
        folder: str,
        file_size: int | None = None,
        file_name: str | None = None,
        max_file_size: int = settings.MAX_IMAGE_BYTES,
    ) -> dict:
        if file_size is not None and file_size > max_file_size:
            raise HTTPException(
                status_code=400,
                detail=f"File '{file_name or 'unknown'}' exceeds maximum allowed size.",
            )
        return self._sign(folder, max_file_size)

    async def get_signed_multiple_upload_params(
        self,
        count: int,
        folder: str,
        max_file_size: int = settings.MAX_IMAGE_BYTES,
    ) -> list[dict]:
        return [self._sign(folder, max_file_size) for _ in range(count)]

    async def delete_image(self, public_id: str) -> dict:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                lambda: cloudinary.uploader.destroy(
                    public_id, resource_type="image", invalidate=True
                ),
            )
        except Exception as e:
            raise HTTPException(500, f"Failed to delete image: {e}")

    async def delete_images(self, public_ids: list[str]) -> dict:
        if not public_ids:
            return {"deleted": {}, "partial": False}

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: cloudinary.api.delete_resources(
                    public_ids, resource_type="image", invalidate=True
                ),
            )
        except Exception as e:
            raise HTTPException(
                status_code=500,
                detail=f"Failed to delete images: {str(e)}",
            )
        return {"deleted": result.get("deleted"), "partial": result.get("partial")}


cloudinary_client = CloudinaryClient()
