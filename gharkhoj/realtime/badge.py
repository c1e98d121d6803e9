import logging
from typing import Awaitable, Callable, Optional

from services.message_service import MessageService

from .background import PendingTasks
from .change_feed import ChangeEvent, ChangeFeed, Subscription, change_feed

logger = logging.getLogger(__name__)


class UnreadBadge:
    """Total unread count for one user.

    Every message change on the user's topic triggers a full recount; a
    recount that finishes after a newer one started is discarded.
    """

    def __init__(
        self,
        viewer,
        session_factory,
        emit: Callable[[dict], Awaitable[None]],
        feed: ChangeFeed = change_feed,
    ):
        self.viewer = viewer
        self.session_factory = session_factory
        self.emit = emit
        self.feed = feed
        self.count: Optional[int] = None
        self._sequence = 0
        self._subscription: Optional[Subscription] = None
        self.pending = PendingTasks("unread badge")

    async def start(self) -> Optional[int]:
        if self._subscription is None:
            self._subscription = self.feed.subscribe_user(
                self.viewer.id, self._on_change, table="messages"
            )
        return await self.recount()

    def stop(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.pending.cancel()

    def _on_change(self, change: ChangeEvent):
        self.pending.spawn(self.recount())

    async def recount(self) -> Optional[int]:
        self._sequence += 1
        sequence = self._sequence
        async with self.session_factory() as db:
            result = await MessageService(db).unread_count(self.viewer)
        if sequence != self._sequence:
            return None
        self.count = result.count
        await self.emit({"type": "unread.count", "count": self.count})
        return self.count
