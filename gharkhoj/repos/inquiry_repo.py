import uuid
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import InquiryStatus
from models.models import Inquiry, Property


class InquiryRepo:
    def __init__(self, db):
        self.db = db

    def _with_property(self):
        return select(Inquiry).options(
            selectinload(Inquiry.property).selectinload(Property.images)
        )

    async def get_by_id(self, inquiry_id: uuid.UUID) -> Optional[Inquiry]:
        result = await self.db.execute(
            self._with_property().where(Inquiry.id == inquiry_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        property_id: uuid.UUID,
        tenant_id: uuid.UUID,
        message: Optional[str],
        preferred_move_in: Optional[date],
    ) -> Inquiry:
        inquiry = Inquiry(
            property_id=property_id,
            tenant_id=tenant_id,
            message=message,
            preferred_move_in=preferred_move_in,
            status=InquiryStatus.OPEN,
        )
        self.db.add(inquiry)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_by_id(inquiry.id)

    async def set_status(self, inquiry: Inquiry, status: InquiryStatus) -> Inquiry:
        inquiry.status = status
        self.db.add(inquiry)
        try:
            await self.db.commit()
            return inquiry
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def delete(self, inquiry: Inquiry) -> None:
        try:
            await self.db.delete(inquiry)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_tenant(self, tenant_id: uuid.UUID) -> list[Inquiry]:
        result = await self.db.execute(
            self._with_property()
            .where(Inquiry.tenant_id == tenant_id)
            .order_by(Inquiry.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_landlord(self, landlord_id: uuid.UUID) -> list[Inquiry]:
        result = await self.db.execute(
            self._with_property()
            .join(Property, Property.id == Inquiry.property_id)
            .where(Property.landlord_id == landlord_id)
            .order_by(Inquiry.created_at.desc())
        )
        return list(result.scalars().all())

    async def counts_for_properties(
        self, property_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, int]:
        ids = list(set(property_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Inquiry.property_id, func.count(Inquiry.id))
            .where(Inquiry.property_id.in_(ids))
            .group_by(Inquiry.property_id)
        )
        return {property_id: count for property_id, count in result.all()}

    async def count_for_tenant(self, tenant_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Inquiry.id)).where(Inquiry.tenant_id == tenant_id)
        )
        return result.scalar_one()
