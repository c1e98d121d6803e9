import uuid
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import PropertyStatus, RoomType, SortOrder
from models.models import (
    Conversation,
    Favorite,
    Inquiry,
    Message,
    Property,
    PropertyImage,
)
from models.utils import utcnow


class PropertyRepo:
    def __init__(self, db):
        self.db = db

    def _with_images(self):
        return select(Property).options(selectinload(Property.images))

    async def get_by_id(self, property_id: uuid.UUID) -> Optional[Property]:
        result = await self.db.execute(
            select(Property).where(Property.id == property_id)
        )
        return result.scalar_one_or_none()

    async def get_with_images(self, property_id: uuid.UUID) -> Optional[Property]:
        result = await self.db.execute(
            self._with_images()
            .where(Property.id == property_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, landlord_id: uuid.UUID, **fields) -> Property:
        prop = Property(
            landlord_id=landlord_id,
            status=PropertyStatus.PENDING,
            **fields,
        )
        self.db.add(prop)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_with_images(prop.id)

    async def update(self, prop: Property, **values) -> Property:
        for key, value in values.items():
            setattr(prop, key, value)
        prop.updated_at = utcnow()
        self.db.add(prop)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_with_images(prop.id)

    async def set_status(
        self, property_id: uuid.UUID, status: PropertyStatus
    ) -> Optional[Property]:
        try:
            result = await self.db.execute(
                update(Property)
                .where(Property.id == property_id)
                .values(status=status, updated_at=utcnow())
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        if result.rowcount == 0:
            return None
        return await self.get_with_images(property_id)

    async def delete_cascade(
        self, property_id: uuid.UUID
    ) -> dict[uuid.UUID, uuid.UUID]:
        """Remove a property and every row hanging off it in one transaction.

        Returns the removed conversations as ``{conversation_id: tenant_id}``.
        """
        result = await self.db.execute(
            select(Conversation.id, Conversation.tenant_id).where(
                Conversation.property_id == property_id
            )
        )
        convos = {convo_id: tenant_id for convo_id, tenant_id in result.all()}
        convo_ids = list(convos)
        try:
            if convo_ids:
                await self.db.execute(
                    delete(Message).where(Message.conversation_id.in_(convo_ids))
                )
                await self.db.execute(
                    delete(Conversation).where(Conversation.id.in_(convo_ids))
                )
            await self.db.execute(
                delete(Favorite).where(Favorite.property_id == property_id)
            )
            await self.db.execute(
                delete(Inquiry).where(Inquiry.property_id == property_id)
            )
            await self.db.execute(
                delete(PropertyImage).where(PropertyImage.property_id == property_id)
            )
            await self.db.execute(delete(Property).where(Property.id == property_id))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return convos

    async def search(
        self,
        *,
        city: Optional[str] = None,
        room_type: Optional[RoomType] = None,
        sort: SortOrder = SortOrder.NEWEST,
    ) -> list[Property]:
        stmt = self._with_images().where(
            Property.status == PropertyStatus.APPROVED,
            Property.is_vacant.is_(True),
        )
        if city:
            stmt = stmt.where(Property.city.icontains(city.strip(), autoescape=True))
        if room_type is not None:
            stmt = stmt.where(Property.room_type == room_type)

        if sort == SortOrder.PRICE_ASC:
            stmt = stmt.order_by(Property.price.asc(), Property.created_at.desc())
        elif sort == SortOrder.PRICE_DESC:
            stmt = stmt.order_by(Property.price.desc(), Property.created_at.desc())
        else:
            stmt = stmt.order_by(Property.created_at.desc())

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_for_landlord(
        self, landlord_id: uuid.UUID, *, approved_only: bool = False
    ) -> list[Property]:
        stmt = self._with_images().where(Property.landlord_id == landlord_id)
        if approved_only:
            stmt = stmt.where(Property.status == PropertyStatus.APPROVED)
        result = await self.db.execute(stmt.order_by(Property.created_at.desc()))
        return list(result.scalars().all())

    async def pending_queue(self) -> list[Property]:
        result = await self.db.execute(
            self._with_images()
            .where(Property.status == PropertyStatus.PENDING)
            .order_by(Property.created_at.asc())
        )
        return list(result.scalars().all())

    async def recent(self, limit: int) -> list[Property]:
        result = await self.db.execute(
            self._with_images().order_by(Property.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        result = await self.db.execute(
            select(Property.status, func.count(Property.id)).group_by(Property.status)
        )
        counts = {status.value: 0 for status in PropertyStatus}
        for status, count in result.all():
            counts[status.value] = count
        return counts

    async def count_approved(self) -> int:
        result = await self.db.execute(
            select(func.count(Property.id)).where(
                Property.status == PropertyStatus.APPROVED
            )
        )
        return result.scalar_one()

    async def count_for_landlord(self, landlord_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Property.id)).where(Property.landlord_id == landlord_id)
        )
        return result.scalar_one()
