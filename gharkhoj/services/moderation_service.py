import logging
import uuid

from fastapi import HTTPException

from core.breaker import breaker
from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import PropertyStatus
from repos.property_repo import PropertyRepo
from schemas.schema import PropertyOut

from .property_service import invalidate_property_cache

logger = logging.getLogger(__name__)


class ModerationService:
    def __init__(self, db):
        self.repo: PropertyRepo = PropertyRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission(db)
        self.mapper: ORMMapper = ORMMapper()

    async def pending_queue(self, current_user) -> list[PropertyOut]:
        async def handler():
            await self.permission.check_admin(current_user)
            props = await self.repo.pending_queue()
            return self.mapper.many(props, PropertyOut)

        return await breaker.call(handler)

    async def set_status(
        self, property_id: uuid.UUID, status: PropertyStatus, current_user
    ) -> PropertyOut:
        async def handler():
            await self.permission.check_admin(current_user)
            prop = await self.repo.set_status(property_id, status)
            if not prop:
                raise HTTPException(status_code=404, detail="Property not found")
            await invalidate_property_cache(property_id)
            logger.info(f"Property {property_id} {status.value} by {current_user.id}")
            return self.mapper.one(prop, PropertyOut)

        return await breaker.call(handler)
