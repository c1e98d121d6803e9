import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.models import Conversation, Property


class ConversationRepo:
    def __init__(self, db):
        self.db = db

    def _participant(self, user_id: uuid.UUID):
        return or_(Conversation.tenant_id == user_id, Conversation.landlord_id == user_id)

    async def get_by_id(self, conversation_id: uuid.UUID) -> Optional[Conversation]:
        result = await self.db.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def get_by_property_and_tenant(
        self, property_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> Optional[Conversation]:
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.property_id == property_id,
                Conversation.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self, tenant_id: uuid.UUID, prop: Property
    ) -> tuple[Conversation, bool]:
        existing = await self.get_by_property_and_tenant(prop.id, tenant_id)
        if existing:
            return existing, False

        convo = Conversation(
            property_id=prop.id,
            tenant_id=tenant_id,
            landlord_id=prop.landlord_id,
        )
        self.db.add(convo)
        try:
            await self.db.commit()
            await self.db.refresh(convo)
            return convo, True
        except IntegrityError:
            # Lost a race against a concurrent create; the unique
            # (property_id, tenant_id) row now exists.
            await self.db.rollback()
            winner = await self.get_by_property_and_tenant(prop.id, tenant_id)
            if winner is None:
                raise
            return winner, False

    async def list_for_user(
        self, user_id: uuid.UUID, *, include_archived: bool = False
    ) -> list[Conversation]:
        stmt = (
            select(Conversation)
            .options(selectinload(Conversation.property).selectinload(Property.images))
            .where(self._participant(user_id))
            .order_by(Conversation.updated_at.desc())
        )
        if not include_archived:
            stmt = stmt.where(
                or_(
                    (Conversation.tenant_id == user_id)
                    & Conversation.archived_by_tenant.is_(False),
                    (Conversation.landlord_id == user_id)
                    & Conversation.archived_by_landlord.is_(False),
                )
            )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def ids_for_user(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        result = await self.db.execute(
            select(Conversation.id).where(self._participant(user_id))
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Conversation.id)).where(self._participant(user_id))
        )
        return result.scalar_one()

    async def set_archived(
        self, convo: Conversation, user_id: uuid.UUID, archived: bool
    ) -> Conversation:
        if user_id == convo.tenant_id:
            convo.archived_by_tenant = archived
        else:
            convo.archived_by_landlord = archived
        self.db.add(convo)
        try:
            await self.db.commit()
            await self.db.refresh(convo)
            return convo
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def touch(self, conversation_id: uuid.UUID, when: datetime) -> None:
        await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(updated_at=when)
        )
