import uuid
from datetime import datetime
from typing import Optional

from schemas.schema import ConversationSummaryOut
from services.conversation_service import ConversationService


class ConversationDirectory:
    """The user's conversation list, kept current from message inserts."""

    def __init__(self, viewer, session_factory):
        self.viewer = viewer
        self.session_factory = session_factory
        self.items: list[ConversationSummaryOut] = []
        self.active_conversation_id: Optional[uuid.UUID] = None
        self.include_archived = False

    async def load(self, include_archived: Optional[bool] = None):
        if include_archived is not None:
            self.include_archived = include_archived
        async with self.session_factory() as db:
            self.items = await ConversationService(db).directory(
                self.viewer, include_archived=self.include_archived
            )
        return self.items

    def get(self, conversation_id) -> Optional[ConversationSummaryOut]:
        key = str(conversation_id)
        for item in self.items:
            if str(item.id) == key:
                return item
        return None

    def apply_insert(self, message: dict) -> Optional[ConversationSummaryOut]:
        """Fold a new message into the matching summary without refetching.

        Messages for conversations not in the list are ignored.
        """
        item = self.get(message.get("conversation_id"))
        if item is None:
            return None

        created_at = message.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        item.last_message = message.get("content")
        item.last_message_at = created_at
        item.updated_at = created_at or item.updated_at

        from_viewer = message.get("sender_id") == str(self.viewer.id)
        is_active = self.active_conversation_id is not None and str(
            self.active_conversation_id
        ) == str(item.id)
        if not from_viewer and not is_active:
            item.unread_count += 1

        self.items.sort(key=lambda s: s.updated_at or datetime.min, reverse=True)
        return item

    def activate(self, conversation_id) -> Optional[ConversationSummaryOut]:
        self.active_conversation_id = conversation_id
        item = self.get(conversation_id) if conversation_id is not None else None
        if item is not None:
            item.unread_count = 0
        return item

    def snapshot(self) -> list[dict]:
        return [item.model_dump(mode="json") for item in self.items]
