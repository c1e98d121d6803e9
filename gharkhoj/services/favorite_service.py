import uuid

from fastapi import HTTPException

from core.breaker import breaker
from core.mapper import ORMMapper
from repos.favorite_repo import FavoriteRepo
from repos.property_repo import PropertyRepo
from schemas.schema import FavoriteOut, FavoriteToggleOut


class FavoriteService:
    def __init__(self, db):
        self.repo: FavoriteRepo = FavoriteRepo(db)
        self.properties: PropertyRepo = PropertyRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def toggle(self, property_id: uuid.UUID, current_user) -> FavoriteToggleOut:
        async def handler():
            if not await self.properties.get_by_id(property_id):
                raise HTTPException(status_code=404, detail="Property not found")

            existing = await self.repo.get(current_user.id, property_id)
            if existing:
                await self.repo.remove(existing)
                return FavoriteToggleOut(favorited=False)

            favorite = await self.repo.add(current_user.id, property_id)
            return FavoriteToggleOut(favorited=True, favorite_id=favorite.id)

        return await breaker.call(handler)

    async def status(self, property_id: uuid.UUID, current_user) -> FavoriteToggleOut:
        async def handler():
            existing = await self.repo.get(current_user.id, property_id)
            return FavoriteToggleOut(
                favorited=existing is not None,
                favorite_id=existing.id if existing else None,
            )

        return await breaker.call(handler)

    async def list_mine(self, current_user) -> list[FavoriteOut]:
        async def handler():
            favorites = await self.repo.list_for_user(current_user.id)
            return self.mapper.many(favorites, FavoriteOut)

        return await breaker.call(handler)

    async def remove(self, favorite_id: uuid.UUID, current_user):
        async def handler():
            favorite = await self.repo.get_by_id(favorite_id)
            if not favorite:
                raise HTTPException(status_code=404, detail="Favorite not found")
            if favorite.user_id != current_user.id:
                raise HTTPException(status_code=403, detail="Access Denied.")
            await self.repo.remove(favorite)
            return {"message": "Removed from favorites"}

        return await breaker.call(handler)
