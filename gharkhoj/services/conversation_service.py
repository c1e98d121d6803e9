import logging
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from core.breaker import breaker
from core.mapper import ORMMapper
from models.enums import PropertyStatus
from models.models import Conversation
from models.utils import thumbnail_url
from repos.conversation_repo import ConversationRepo
from repos.message_repo import MessageRepo
from repos.profile_repo import ProfileRepo
from repos.property_repo import PropertyRepo
from schemas.schema import ConversationOut, ConversationSummaryOut

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
UNNAMED_USER = "User"


class ConversationService:
    def __init__(self, db):
        self.db = db
        self.repo: ConversationRepo = ConversationRepo(db)
        self.messages: MessageRepo = MessageRepo(db)
        self.profiles: ProfileRepo = ProfileRepo(db)
        self.properties: PropertyRepo = PropertyRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def get_for_participant(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID
    ) -> Conversation:
        convo = await self.repo.get_by_id(conversation_id)
        if not convo or not convo.is_participant(user_id):
            raise HTTPException(status_code=404, detail="Conversation not found")
        return convo

    async def start(
        self,
        property_id: uuid.UUID,
        current_user,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> ConversationOut:
        """Find the conversation for (property, tenant), creating it for tenants.

        The owning landlord can only look up an existing thread with a given
        tenant; a landlord never originates a conversation.
        """

        async def handler():
            prop = await self.properties.get_by_id(property_id)
            if not prop:
                raise HTTPException(status_code=404, detail="Property not found")

            if prop.landlord_id == current_user.id:
                if tenant_id is None:
                    raise HTTPException(
                        status_code=400,
                        detail="tenant_id is required to open a thread on your own listing",
                    )
                convo = await self.repo.get_by_property_and_tenant(prop.id, tenant_id)
                if not convo:
                    raise HTTPException(status_code=404, detail="Conversation not found")
                return self.mapper.one(convo, ConversationOut)

            if prop.status != PropertyStatus.APPROVED:
                convo = await self.repo.get_by_property_and_tenant(
                    prop.id, current_user.id
                )
                if not convo:
                    raise HTTPException(status_code=404, detail="Property not found")
                return self.mapper.one(convo, ConversationOut)

            convo, created = await self.repo.get_or_create(current_user.id, prop)
            if created:
                logger.info(f"Conversation {convo.id} opened on property {prop.id}")
            return self.mapper.one(convo, ConversationOut)

        return await breaker.call(handler)

    async def _lookup(self, label: str, coro):
        try:
            return await coro
        except SQLAlchemyError:
            logger.warning(
                f"Directory {label} lookup failed; showing placeholders", exc_info=True
            )
            return {}

    async def directory(
        self, current_user, include_archived: bool = False
    ) -> list[ConversationSummaryOut]:
        async def handler():
            user_id = current_user.id
            convos = await self.repo.list_for_user(
                user_id, include_archived=include_archived
            )
            if not convos:
                return []

            ids = [c.id for c in convos]
            last_messages = await self._lookup(
                "last message", self.messages.last_messages_for(ids)
            )
            unread = await self._lookup(
                "unread count", self.messages.unread_counts_for(ids, user_id)
            )
            profiles = await self._lookup(
                "profile",
                self.profiles.profiles_for(c.counterpart_of(user_id) for c in convos),
            )
            return [
                self.summarize(convo, user_id, last_messages, unread, profiles)
                for convo in convos
            ]

        return await breaker.call(handler)

    def summarize(
        self,
        convo: Conversation,
        user_id: uuid.UUID,
        last_messages: dict,
        unread: dict,
        profiles: dict,
    ) -> ConversationSummaryOut:
        other_id = convo.counterpart_of(user_id)
        profile = profiles.get(other_id)
        if profile is None:
            other_name = UNKNOWN_NAME
        else:
            other_name = profile.full_name or UNNAMED_USER

        prop = convo.__dict__.get("property")
        last = last_messages.get(convo.id) or {}
        return ConversationSummaryOut(
            id=convo.id,
            property_id=convo.property_id,
            tenant_id=convo.tenant_id,
            landlord_id=convo.landlord_id,
            other_user_id=other_id,
            other_name=other_name,
            property_title=prop.title if prop else None,
            property_city=prop.city if prop else None,
            property_thumbnail=(
                thumbnail_url(prop.__dict__.get("images")) if prop else None
            ),
            last_message=last.get("content"),
            last_message_at=last.get("created_at"),
            unread_count=unread.get(convo.id, 0),
            archived=convo.is_archived_for(user_id),
            updated_at=convo.updated_at,
        )

    async def archive(
        self, conversation_id: uuid.UUID, current_user, archived: bool
    ) -> ConversationOut:
        async def handler():
            convo = await self.get_for_participant(conversation_id, current_user.id)
            convo = await self.repo.set_archived(convo, current_user.id, archived)
            return self.mapper.one(convo, ConversationOut)

        return await breaker.call(handler)
