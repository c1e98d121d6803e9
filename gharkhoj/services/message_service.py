import logging
import uuid

from fastapi import HTTPException

from core.breaker import breaker
from core.mapper import ORMMapper
from models.enums import ChangeType
from models.models import Conversation
from realtime.change_feed import change_feed
from repos.message_repo import MessageRepo
from schemas.schema import MessageOut, UnreadCountOut

from .conversation_service import ConversationService

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


def participants(convo: Conversation) -> tuple[uuid.UUID, uuid.UUID]:
    return (convo.tenant_id, convo.landlord_id)


class MessageService:
    def __init__(self, db):
        self.repo: MessageRepo = MessageRepo(db)
        self.conversations: ConversationService = ConversationService(db)
        self.mapper: ORMMapper = ORMMapper()

    async def _publish_read(self, convo: Conversation, message_ids):
        for message_id in message_ids:
            await change_feed.publish(
                "messages",
                ChangeType.UPDATE,
                new={
                    "id": str(message_id),
                    "conversation_id": str(convo.id),
                    "is_read": True,
                },
                audience=participants(convo),
            )

    async def history(self, conversation_id: uuid.UUID, current_user) -> list[MessageOut]:
        """Messages oldest first; everything the viewer did not send is marked read."""

        async def handler():
            convo = await self.conversations.get_for_participant(
                conversation_id, current_user.id
            )
            flipped = await self.repo.mark_conversation_as_read(convo.id, current_user.id)
            messages = await self.repo.list_for_conversation(convo.id)
            await self._publish_read(convo, flipped)
            return self.mapper.many(messages, MessageOut)

        return await breaker.call(handler)

    async def send(self, conversation_id: uuid.UUID, current_user, content: str) -> MessageOut:
        async def handler():
            text = (content or "").strip()
            if not text:
                raise HTTPException(status_code=400, detail="Message cannot be empty")
            if len(text) > MAX_MESSAGE_LENGTH:
                raise HTTPException(status_code=400, detail="Message is too long")

            convo = await self.conversations.get_for_participant(
                conversation_id, current_user.id
            )
            msg = await self.repo.create(
                conversation_id=convo.id,
                sender_id=current_user.id,
                content=text,
            )
            await change_feed.publish(
                "messages",
                ChangeType.INSERT,
                new=msg.as_dict(),
                audience=participants(convo),
            )
            return self.mapper.one(msg, MessageOut)

        return await breaker.call(handler)

    async def mark_read(self, message_id: uuid.UUID, current_user):
        async def handler():
            msg = await self.repo.get_by_id(message_id)
            if not msg:
                raise HTTPException(status_code=404, detail="Message not found")
            convo = await self.conversations.get_for_participant(
                msg.conversation_id, current_user.id
            )
            if msg.sender_id == current_user.id:
                raise HTTPException(
                    status_code=403, detail="Only the recipient can mark a message read"
                )

            updated = await self.repo.mark_one_read(msg.id, current_user.id)
            if updated:
                await self._publish_read(convo, [msg.id])
            return {"id": str(msg.id), "is_read": True, "updated": updated}

        return await breaker.call(handler)

    async def unread_count(self, current_user) -> UnreadCountOut:
        async def handler():
            return UnreadCountOut(count=await self.repo.unread_total(current_user.id))

        return await breaker.call(handler)
