import uuid
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from models.models import Message
from models.utils import utcnow

from .conversation_repo import ConversationRepo


class MessageRepo:
    def __init__(self, db):
        self.db = db
        self.convos = ConversationRepo(db)

    async def get_by_id(self, message_id: uuid.UUID) -> Optional[Message]:
        result = await self.db.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
    ) -> Message:
        now = utcnow()
        msg = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            is_read=False,
            created_at=now,
        )
        self.db.add(msg)
        try:
            await self.db.flush()
            await self.convos.touch(conversation_id, now)
            await self.db.commit()
            await self.db.refresh(msg)
            return msg
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_for_conversation(self, conversation_id: uuid.UUID) -> list[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def mark_conversation_as_read(
        self, conversation_id: uuid.UUID, reader_id: uuid.UUID
    ) -> list[uuid.UUID]:
        """Flip every unread message the reader did not author. Returns the ids."""
        result = await self.db.execute(
            select(Message.id).where(
                Message.conversation_id == conversation_id,
                Message.sender_id != reader_id,
                Message.is_read.is_(False),
            )
        )
        ids = list(result.scalars().all())
        if not ids:
            return []
        try:
            await self.db.execute(
                update(Message)
                .where(
                    Message.id.in_(ids),
                    Message.sender_id != reader_id,
                )
                .values(is_read=True)
                .execution_options(synchronize_session="fetch")
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return ids

    async def mark_one_read(self, message_id: uuid.UUID, reader_id: uuid.UUID) -> bool:
        try:
            result = await self.db.execute(
                update(Message)
                .where(
                    Message.id == message_id,
                    Message.sender_id != reader_id,
                    Message.is_read.is_(False),
                )
                .values(is_read=True)
                .execution_options(synchronize_session="fetch")
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return result.rowcount > 0

    async def last_messages_for(
        self, conversation_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, dict]:
        ids = list(set(conversation_ids))
        if not ids:
            return {}
        ranked = (
            select(
                Message.conversation_id,
                Message.content,
                Message.sender_id,
                Message.created_at,
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=Message.created_at.desc(),
                )
                .label("row_rank"),
            )
            .where(Message.conversation_id.in_(ids))
            .subquery()
        )
        result = await self.db.execute(select(ranked).where(ranked.c.row_rank == 1))
        return {
            row.conversation_id: {
                "content": row.content,
                "sender_id": row.sender_id,
                "created_at": row.created_at,
            }
            for row in result.all()
        }

    async def unread_counts_for(
        self, conversation_ids: Iterable[uuid.UUID], user_id: uuid.UUID
    ) -> dict[uuid.UUID, int]:
        ids = list(set(conversation_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(ids),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .group_by(Message.conversation_id)
        )
        return {conversation_id: count for conversation_id, count in result.all()}

    async def unread_total(self, user_id: uuid.UUID) -> int:
        conversation_ids = await self.convos.ids_for_user(user_id)
        if not conversation_ids:
            return 0
        result = await self.db.execute(
            select(func.count(Message.id)).where(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
        )
        return result.scalar_one()

