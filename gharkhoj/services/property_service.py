import logging
import uuid

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from core.breaker import breaker
from core.cache import cache
from core.check_permission import CheckRolePermission
from core.cloudinary_setup import CloudinaryClient
from core.mapper import ORMMapper
from core.session_context import SessionContext
from core.settings import settings
from models.enums import ChangeType, PropertyStatus
from realtime.change_feed import change_feed
from repos.inquiry_repo import InquiryRepo
from repos.profile_repo import ProfileRepo
from repos.property_repo import PropertyRepo
from schemas.schema import (
    DashboardPropertyOut,
    DashboardTotals,
    LandlordDashboardOut,
    PropertyOut,
    SiteStatsOut,
)

logger = logging.getLogger(__name__)

SITE_STATS_KEY = "site:stats"


def property_cache_key(property_id) -> str:
    return f"property:{property_id}"


async def invalidate_property_cache(property_id):
    await cache.delete_cache_keys_async(property_cache_key(property_id), SITE_STATS_KEY)


class PropertyService:
    def __init__(self, db):
        self.repo: PropertyRepo = PropertyRepo(db)
        self.inquiries: InquiryRepo = InquiryRepo(db)
        self.profiles: ProfileRepo = ProfileRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission(db)
        self.cloudinary: CloudinaryClient = CloudinaryClient()
        self.mapper: ORMMapper = ORMMapper()

    async def check_owner(self, property_id: uuid.UUID, user_id: uuid.UUID):
        prop = await self.repo.get_with_images(property_id)
        if not prop:
            raise HTTPException(404, "Property not found")
        if prop.landlord_id != user_id:
            raise HTTPException(403, "You are not allowed to manage this property")
        return prop

    async def create_property(self, data, current_user):
        async def handler():
            await self.permission.check_landlord(current_user)
            prop = await self.repo.create(
                current_user.id, **data.model_dump(exclude_none=True)
            )
            await cache.delete(SITE_STATS_KEY)
            logger.info(f"Property {prop.id} submitted by {current_user.id}")
            return JSONResponse(
                {
                    "message": "Property submitted. It will be visible after admin verification.",
                    "property": self.mapper.one(prop, PropertyOut).model_dump(
                        mode="json"
                    ),
                },
                status_code=201,
            )

        return await breaker.call(handler)

    async def update_property(self, property_id: uuid.UUID, current_user, data):
        async def handler():
            prop = await self.check_owner(property_id, current_user.id)
            update_data = data.model_dump(exclude_unset=True)
            if not update_data:
                raise HTTPException(
                    status_code=400,
                    detail="No fields provided for update.",
                )
            for required in ("title", "city", "price"):
                if required in update_data and update_data[required] is None:
                    raise HTTPException(400, f"{required} cannot be empty")

            prop = await self.repo.update(prop, **update_data)
            await invalidate_property_cache(property_id)
            return self.mapper.one(prop, PropertyOut)

        return await breaker.call(handler)

    async def set_vacancy(self, property_id: uuid.UUID, current_user, is_vacant: bool):
        async def handler():
            prop = await self.check_owner(property_id, current_user.id)
            prop = await self.repo.update(prop, is_vacant=is_vacant)
            await invalidate_property_cache(property_id)
            return self.mapper.one(prop, PropertyOut)

        return await breaker.call(handler)

    async def delete_property(self, property_id: uuid.UUID, current_user):
        async def handler():
            prop = await self.check_owner(property_id, current_user.id)
            landlord_id = prop.landlord_id
            public_ids = [img.public_id for img in prop.images if img.public_id]

            removed = await self.repo.delete_cascade(property_id)
            await invalidate_property_cache(property_id)

            for conversation_id, tenant_id in removed.items():
                await change_feed.publish(
                    "messages",
                    ChangeType.DELETE,
                    old={"conversation_id": str(conversation_id)},
                    audience=(tenant_id, landlord_id),
                )

            if public_ids:
                try:
                    await self.cloudinary.delete_images(public_ids)
                except HTTPException:
                    logger.exception(
                        f"Property {property_id} deleted but {len(public_ids)} image files remain"
                    )

            return JSONResponse({"message": "Delete successful"})

        return await breaker.call(handler)

    async def get_property(self, property_id: uuid.UUID, context: SessionContext):
        async def handler():
            cache_key = property_cache_key(property_id)
            cached = await cache.get_json(cache_key)
            if cached:
                return self.mapper.one(cached, PropertyOut)

            prop = await self.repo.get_with_images(property_id)
            if not prop:
                raise HTTPException(404, "Property not found")

            out = self.mapper.one(prop, PropertyOut)
            if prop.status == PropertyStatus.APPROVED:
                await cache.set_json(
                    cache_key,
                    out.model_dump(mode="json"),
                    ttl=settings.CACHE_TTL_SECONDS,
                )
                return out

            user = context.user
            if user is None:
                raise HTTPException(404, "Property not found")
            if user.id != prop.landlord_id and not await self.permission.is_admin(user):
                raise HTTPException(404, "Property not found")
            return out

        return await breaker.call(handler)

    async def landlord_dashboard(self, current_user) -> LandlordDashboardOut:
        async def handler():
            await self.permission.check_landlord(current_user)
            props = await self.repo.list_for_landlord(current_user.id)
            counts = await self.inquiries.counts_for_properties(p.id for p in props)

            rows = []
            for prop in props:
                row = self.mapper.one(prop, DashboardPropertyOut)
                row.inquiry_count = counts.get(prop.id, 0)
                rows.append(row)

            totals = DashboardTotals(
                total=len(props),
                approved=sum(p.status == PropertyStatus.APPROVED for p in props),
                pending=sum(p.status == PropertyStatus.PENDING for p in props),
                rejected=sum(p.status == PropertyStatus.REJECTED for p in props),
                vacant=sum(bool(p.is_vacant) for p in props),
                inquiries=sum(counts.values()),
            )
            return LandlordDashboardOut(properties=rows, totals=totals)

        return await breaker.call(handler)

    async def site_stats(self) -> SiteStatsOut:
        async def handler():
            cached = await cache.get_json(SITE_STATS_KEY)
            if cached:
                return SiteStatsOut(**cached)
            stats = SiteStatsOut(
                properties=await self.repo.count_approved(),
                users=await self.profiles.count(),
            )
            await cache.set_json(
                SITE_STATS_KEY, stats.model_dump(), ttl=settings.CACHE_TTL_SECONDS
            )
            return stats

        return await breaker.call(handler)
