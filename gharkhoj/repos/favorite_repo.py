import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.models import Favorite, Property


class FavoriteRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, favorite_id: uuid.UUID) -> Optional[Favorite]:
        result = await self.db.execute(
            select(Favorite).where(Favorite.id == favorite_id)
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Optional[Favorite]:
        result = await self.db.execute(
            select(Favorite).where(
                Favorite.user_id == user_id,
                Favorite.property_id == property_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, user_id: uuid.UUID, property_id: uuid.UUID) -> Favorite:
        favorite = Favorite(user_id=user_id, property_id=property_id)
        self.db.add(favorite)
        try:
            await self.db.commit()
            await self.db.refresh(favorite)
            return favorite
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get(user_id, property_id)
            if existing is None:
                raise
            return existing

    async def remove(self, favorite: Favorite) -> None:
        try:
            await self.db.delete(favorite)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_user(self, user_id: uuid.UUID) -> list[Favorite]:
        result = await self.db.execute(
            select(Favorite)
            .options(selectinload(Favorite.property).selectinload(Property.images))
            .where(Favorite.user_id == user_id)
            .order_by(Favorite.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Favorite.id)).where(Favorite.user_id == user_id)
        )
        return result.scalar_one()
