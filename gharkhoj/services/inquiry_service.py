import logging
import uuid

from fastapi import HTTPException

from core.breaker import breaker
from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import InquiryStatus, PropertyStatus
from repos.inquiry_repo import InquiryRepo
from repos.property_repo import PropertyRepo
from schemas.schema import InquiryOut

logger = logging.getLogger(__name__)


class InquiryService:
    def __init__(self, db):
        self.repo: InquiryRepo = InquiryRepo(db)
        self.properties: PropertyRepo = PropertyRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission(db)
        self.mapper: ORMMapper = ORMMapper()

    async def create(self, data, current_user) -> InquiryOut:
        async def handler():
            prop = await self.properties.get_by_id(data.property_id)
            if not prop or prop.status != PropertyStatus.APPROVED:
                raise HTTPException(status_code=404, detail="Property not found")
            if prop.landlord_id == current_user.id:
                raise HTTPException(
                    status_code=400, detail="You cannot inquire about your own listing"
                )

            inquiry = await self.repo.create(
                property_id=prop.id,
                tenant_id=current_user.id,
                message=data.message,
                preferred_move_in=data.preferred_move_in,
            )
            logger.info(f"Inquiry {inquiry.id} on property {prop.id}")
            return self.mapper.one(inquiry, InquiryOut)

        return await breaker.call(handler)

    async def list_mine(self, current_user) -> list[InquiryOut]:
        async def handler():
            inquiries = await self.repo.list_for_tenant(current_user.id)
            return self.mapper.many(inquiries, InquiryOut)

        return await breaker.call(handler)

    async def delete(self, inquiry_id: uuid.UUID, current_user):
        async def handler():
            inquiry = await self.repo.get_by_id(inquiry_id)
            if not inquiry:
                raise HTTPException(status_code=404, detail="Inquiry not found")
            if inquiry.tenant_id != current_user.id:
                raise HTTPException(status_code=403, detail="Access Denied.")
            await self.repo.delete(inquiry)
            return {"message": "Inquiry deleted"}

        return await breaker.call(handler)

    async def list_received(self, current_user) -> list[InquiryOut]:
        async def handler():
            await self.permission.check_landlord(current_user)
            inquiries = await self.repo.list_for_landlord(current_user.id)
            return self.mapper.many(inquiries, InquiryOut)

        return await breaker.call(handler)

    async def close(self, inquiry_id: uuid.UUID, current_user) -> InquiryOut:
        async def handler():
            inquiry = await self.repo.get_by_id(inquiry_id)
            if not inquiry:
                raise HTTPException(status_code=404, detail="Inquiry not found")
            if inquiry.property.landlord_id != current_user.id:
                raise HTTPException(status_code=403, detail="Access Denied.")
            inquiry = await self.repo.set_status(inquiry, InquiryStatus.CLOSED)
            return self.mapper.one(inquiry, InquiryOut)

        return await breaker.call(handler)
