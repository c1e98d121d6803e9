import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Optional

from fastapi import HTTPException

from models.enums import ChangeType, ThreadState
from services.conversation_service import ConversationService
from services.message_service import MessageService

from .background import PendingTasks
from .change_feed import ChangeEvent, ChangeFeed, Subscription, change_feed

logger = logging.getLogger(__name__)

Emit = Callable[[dict], Awaitable[None]]


def _sort_key(message: dict):
    created = message.get("created_at")
    if isinstance(created, str):
        created = datetime.fromisoformat(created)
    return created or datetime.min


def merge_messages(current: Iterable[dict], incoming: Iterable[dict]) -> list[dict]:
    """Union by id, then a stable sort on ``created_at``.

    A message seen twice keeps its place in arrival order and takes the
    newer copy's fields, so a read flip never duplicates a bubble.
    """
    merged: dict[str, dict] = {}
    for message in list(current) + list(incoming):
        key = str(message["id"])
        if key in merged:
            merged[key] = {**merged[key], **message}
        else:
            merged[key] = dict(message)
    return sorted(merged.values(), key=_sort_key)


class ThreadView:
    """The one conversation a user has open.

    ``idle -> loading -> ready``. Each ``open`` bumps the generation; any
    continuation that finishes under an older generation is dropped.
    """

    def __init__(
        self,
        viewer,
        session_factory,
        emit: Emit,
        feed: ChangeFeed = change_feed,
    ):
        self.viewer = viewer
        self.session_factory = session_factory
        self.emit = emit
        self.feed = feed
        self.state = ThreadState.IDLE
        self.conversation_id: Optional[uuid.UUID] = None
        self.messages: list[dict] = []
        self.generation = 0
        self.sending = False
        self._subscription: Optional[Subscription] = None
        self.pending = PendingTasks("thread")

    @property
    def viewer_id(self) -> uuid.UUID:
        return self.viewer.id

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def _teardown(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def open(self, conversation_id: uuid.UUID) -> Optional[list[dict]]:
        self._teardown()
        self.pending.cancel()
        self.generation += 1
        generation = self.generation
        self.conversation_id = conversation_id
        self.messages = []
        self.sending = False
        self.state = ThreadState.LOADING

        try:
            async with self.session_factory() as db:
                await ConversationService(db).get_for_participant(
                    conversation_id, self.viewer_id
                )
                if not self.is_current(generation):
                    logger.debug(f"Open of {conversation_id} superseded before subscribing")
                    return None
                # Subscribe before fetching so nothing sent during the load is missed.
                self._subscription = self.feed.subscribe(
                    "messages",
                    self._on_insert,
                    event=ChangeType.INSERT,
                    filter=("conversation_id", conversation_id),
                )
                history = await MessageService(db).history(conversation_id, self.viewer)
        except Exception:
            if not self.is_current(generation):
                logger.debug(f"Ignoring failed load of superseded thread {conversation_id}")
                return None
            self._teardown()
            self.pending.cancel()
            self.conversation_id = None
            self.messages = []
            self.state = ThreadState.IDLE
            raise

        if not self.is_current(generation):
            logger.debug(f"Discarding stale history for {conversation_id}")
            return None

        self.messages = merge_messages(
            self.messages, (m.model_dump(mode="json") for m in history)
        )
        self.state = ThreadState.READY
        await self.emit(
            {
                "type": "thread.ready",
                "conversation_id": str(conversation_id),
                "messages": self.messages,
            }
        )
        return self.messages

    async def close(self):
        self._teardown()
        self.pending.cancel()
        self.generation += 1
        self.conversation_id = None
        self.messages = []
        self.sending = False
        self.state = ThreadState.IDLE

    async def _on_insert(self, change: ChangeEvent):
        message = change.new or {}
        if self.conversation_id is None or message.get("conversation_id") != str(
            self.conversation_id
        ):
            return
        self.messages = merge_messages(self.messages, [message])
        if self.state == ThreadState.READY:
            await self.emit(
                {
                    "type": "message.new",
                    "conversation_id": message["conversation_id"],
                    "message": message,
                }
            )
        if message.get("sender_id") != str(self.viewer_id):
            self.pending.spawn(
                self._mark_read(uuid.UUID(message["id"]), self.generation)
            )

    async def _mark_read(self, message_id: uuid.UUID, generation: int):
        if not self.is_current(generation):
            return
        async with self.session_factory() as db:
            await MessageService(db).mark_read(message_id, self.viewer)

    async def send(self, content: Any) -> bool:
        """Submit a draft. Returns False when the draft was not accepted.

        The bubble is not added here; it arrives through the change feed.
        """
        text = content.strip() if isinstance(content, str) else ""
        if not text or self.state != ThreadState.READY or self.sending:
            return False

        conversation_id = self.conversation_id
        self.sending = True
        try:
            async with self.session_factory() as db:
                await MessageService(db).send(conversation_id, self.viewer, text)
            return True
        except HTTPException as e:
            await self._send_failed(conversation_id, content, e.detail)
            return False
        except Exception:
            logger.exception(f"Sending to {conversation_id} failed")
            await self._send_failed(conversation_id, content, "Failed to send message")
            return False
        finally:
            self.sending = False

    async def _send_failed(self, conversation_id, draft, error):
        await self.emit(
            {
                "type": "send.failed",
                "conversation_id": str(conversation_id),
                "draft": draft,
                "error": error,
            }
        )
