import logging
import uuid
from typing import Optional

from fastapi import HTTPException, WebSocket

from models.enums import ChangeType, ThreadState

from .badge import UnreadBadge
from .change_feed import ChangeEvent, ChangeFeed, Subscription, change_feed
from .directory import ConversationDirectory
from .thread import ThreadView

logger = logging.getLogger(__name__)


class InboxSession:
    """Server side of one ``/ws/inbox`` socket.

    Client actions: ``open``, ``close``, ``send``, ``refresh``.
    """

    def __init__(
        self,
        websocket: WebSocket,
        viewer,
        session_factory,
        feed: ChangeFeed = change_feed,
    ):
        self.websocket = websocket
        self.viewer = viewer
        self.feed = feed
        self.directory = ConversationDirectory(viewer, session_factory)
        self.thread = ThreadView(viewer, session_factory, self.emit, feed=feed)
        self.badge = UnreadBadge(viewer, session_factory, self.emit, feed=feed)
        self._inserts: Optional[Subscription] = None

    async def emit(self, payload: dict):
        await self.websocket.send_json(payload)

    async def start(self):
        await self.directory.load()
        await self.emit(
            {"type": "directory.snapshot", "conversations": self.directory.snapshot()}
        )
        self._inserts = self.feed.subscribe_user(
            self.viewer.id, self._on_insert, table="messages", event=ChangeType.INSERT
        )
        await self.badge.start()

    async def stop(self):
        if self._inserts is not None:
            self._inserts.unsubscribe()
            self._inserts = None
        self.badge.stop()
        await self.thread.close()

    async def _on_insert(self, change: ChangeEvent):
        item = self.directory.apply_insert(change.new or {})
        if item is not None:
            await self.emit(
                {"type": "conversation.updated", "conversation": item.model_dump(mode="json")}
            )

    async def error(self, detail: str, action: Optional[str] = None):
        await self.emit({"type": "error", "action": action, "detail": detail})

    async def handle(self, data) -> None:
        if not isinstance(data, dict):
            await self.error("Expected a JSON object")
            return
        action = data.get("action")
        try:
            if action == "open":
                await self.open(data.get("conversation_id"))
            elif action == "close":
                await self.thread.close()
                self.directory.activate(None)
            elif action == "send":
                await self.send(data.get("content"))
            elif action == "refresh":
                await self.refresh(data.get("include_archived"))
            else:
                await self.error(f"Unknown action '{action}'", action)
        except HTTPException as e:
            await self.error(e.detail, action)

    async def open(self, raw_id):
        try:
            conversation_id = uuid.UUID(str(raw_id))
        except ValueError:
            await self.error("Invalid conversation id", "open")
            return
        item = self.directory.activate(conversation_id)
        if item is not None:
            await self.emit(
                {"type": "conversation.updated", "conversation": item.model_dump(mode="json")}
            )
        try:
            await self.thread.open(conversation_id)
        except HTTPException:
            self.directory.activate(None)
            raise

    async def send(self, content):
        if self.thread.conversation_id is None:
            await self.error("No conversation is open", "send")
            return
        if not isinstance(content, str) or not content.strip():
            await self.error("Message cannot be empty", "send")
            return
        if self.thread.state != ThreadState.READY:
            await self.error("Conversation is still loading", "send")
            return
        if self.thread.sending:
            await self.error("A message is already being sent", "send")
            return
        await self.thread.send(content)

    async def refresh(self, include_archived=None):
        await self.directory.load(
            include_archived=bool(include_archived) if include_archived is not None else None
        )
        self.directory.activate(self.thread.conversation_id)
        await self.emit(
            {"type": "directory.snapshot", "conversations": self.directory.snapshot()}
        )
        await self.badge.recount()
