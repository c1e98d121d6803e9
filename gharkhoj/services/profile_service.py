import logging
import uuid
from typing import Optional

from fastapi import HTTPException

from core.breaker import breaker
from core.cloudinary_setup import CloudinaryClient
from core.mapper import ORMMapper
from core.settings import settings
from repos.conversation_repo import ConversationRepo
from repos.favorite_repo import FavoriteRepo
from repos.inquiry_repo import InquiryRepo
from repos.profile_repo import ProfileRepo
from repos.property_repo import PropertyRepo
from repos.role_repo import RoleRepo
from schemas.schema import (
    ProfileOut,
    ProfileStatsOut,
    PropertyCardOut,
    PublicProfileOut,
)

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db):
        self.repo: ProfileRepo = ProfileRepo(db)
        self.roles: RoleRepo = RoleRepo(db)
        self.properties: PropertyRepo = PropertyRepo(db)
        self.conversations: ConversationRepo = ConversationRepo(db)
        self.favorites: FavoriteRepo = FavoriteRepo(db)
        self.inquiries: InquiryRepo = InquiryRepo(db)
        self.cloudinary: CloudinaryClient = CloudinaryClient()
        self.mapper: ORMMapper = ORMMapper()

    async def _own_profile(self, current_user):
        profile = await self.repo.get_by_user(current_user.id)
        if profile is None:
            profile = await self.repo.create(current_user.id)
        return profile

    async def get_own(self, current_user) -> ProfileOut:
        async def handler():
            return self.mapper.one(await self._own_profile(current_user), ProfileOut)

        return await breaker.call(handler)

    async def update_own(self, current_user, data) -> ProfileOut:
        async def handler():
            values = data.model_dump(exclude_unset=True)
            if not values:
                raise HTTPException(
                    status_code=400, detail="No fields provided for update."
                )
            profile = await self._own_profile(current_user)
            profile = await self.repo.update(profile, **values)
            return self.mapper.one(profile, ProfileOut)

        return await breaker.call(handler)

    async def avatar_upload_params(
        self,
        current_user,
        file_size: Optional[int] = None,
        file_name: Optional[str] = None,
    ) -> dict:
        async def handler():
            return await self.cloudinary.get_image_signed_upload_params(
                folder=f"{settings.AVATAR_FOLDER}/{current_user.id}",
                file_size=file_size,
                file_name=file_name,
                max_file_size=settings.MAX_AVATAR_BYTES,
            )

        return await breaker.call(handler)

    async def set_avatar(self, current_user, data) -> ProfileOut:
        async def handler():
            profile = await self._own_profile(current_user)
            previous = profile.avatar_public_id
            profile = await self.repo.update(
                profile, avatar_url=data.secure_url, avatar_public_id=data.public_id
            )
            if previous and previous != data.public_id:
                try:
                    await self.cloudinary.delete_image(previous)
                except HTTPException:
                    logger.exception(f"Old avatar {previous} could not be removed")
            return self.mapper.one(profile, ProfileOut)

        return await breaker.call(handler)

    async def stats(self, current_user) -> ProfileStatsOut:
        async def handler():
            user_id = current_user.id
            return ProfileStatsOut(
                properties=await self.properties.count_for_landlord(user_id),
                conversations=await self.conversations.count_for_user(user_id),
                favorites=await self.favorites.count_for_user(user_id),
                inquiries=await self.inquiries.count_for_tenant(user_id),
            )

        return await breaker.call(handler)

    async def public_profile(self, user_id: uuid.UUID) -> PublicProfileOut:
        async def handler():
            profile = await self.repo.get_by_user(user_id)
            if not profile:
                raise HTTPException(status_code=404, detail="User not found")
            listings = await self.properties.list_for_landlord(
                user_id, approved_only=True
            )
            return PublicProfileOut(
                user_id=profile.user_id,
                full_name=profile.full_name,
                avatar_url=profile.avatar_url,
                member_since=profile.created_at,
                role=await self.roles.get_role(user_id),
                properties=self.mapper.many(listings, PropertyCardOut),
                conversation_count=await self.conversations.count_for_user(user_id),
            )

        return await breaker.call(handler)
