import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from models.models import PropertyImage


class PropertyImageRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, image_id: uuid.UUID) -> Optional[PropertyImage]:
        result = await self.db.execute(
            select(PropertyImage).where(PropertyImage.id == image_id)
        )
        return result.scalar_one_or_none()

    async def count_for_property(self, property_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(PropertyImage.id)).where(
                PropertyImage.property_id == property_id
            )
        )
        return result.scalar_one()

    async def next_display_order(self, property_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.max(PropertyImage.display_order)).where(
                PropertyImage.property_id == property_id
            )
        )
        highest = result.scalar_one_or_none()
        return 0 if highest is None else highest + 1

    async def add_many(
        self,
        property_id: uuid.UUID,
        uploads: list[tuple[str, Optional[str]]],
        start_order: int,
    ) -> list[PropertyImage]:
        images = [
            PropertyImage(
                property_id=property_id,
                image_url=url,
                public_id=public_id,
                display_order=start_order + offset,
            )
            for offset, (url, public_id) in enumerate(uploads)
        ]
        self.db.add_all(images)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return images

    async def delete(self, image: PropertyImage) -> None:
        try:
            await self.db.delete(image)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
