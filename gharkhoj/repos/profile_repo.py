import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from models.models import Profile


class ProfileRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_user(self, user_id: uuid.UUID) -> Optional[Profile]:
        result = await self.db.execute(
            select(Profile).where(Profile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def profiles_for(
        self, user_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Profile]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await self.db.execute(select(Profile).where(Profile.user_id.in_(ids)))
        return {profile.user_id: profile for profile in result.scalars().all()}

    async def list_profiles(self) -> list[Profile]:
        stmt = select(Profile).order_by(Profile.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(Profile.id)))
        return result.scalar_one()

    async def update(self, profile: Profile, **values) -> Profile:
        for key, value in values.items():
            setattr(profile, key, value)
        self.db.add(profile)
        try:
            await self.db.commit()
            await self.db.refresh(profile)
            return profile
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def create(self, user_id: uuid.UUID, full_name: str | None = None) -> Profile:
        profile = Profile(user_id=user_id, full_name=full_name)
        self.db.add(profile)
        try:
            await self.db.commit()
            await self.db.refresh(profile)
            return profile
        except SQLAlchemyError:
            await self.db.rollback()
            raise
