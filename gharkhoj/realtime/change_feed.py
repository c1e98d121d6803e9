import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from models.enums import ChangeType

logger = logging.getLogger(__name__)

Listener = Callable[["ChangeEvent"], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: ChangeType
    new: Optional[dict] = None
    old: Optional[dict] = None
    audience: frozenset = field(default_factory=frozenset)

    @property
    def record(self) -> dict:
        return self.new if self.new is not None else (self.old or {})

    def as_payload(self) -> dict:
        return {
            "table": self.table,
            "type": self.type.value,
            "new": self.new,
            "old": self.old,
        }


class Subscription:
    def __init__(
        self,
        feed: "ChangeFeed",
        callback: Listener,
        *,
        table: Optional[str] = None,
        event: Optional[ChangeType] = None,
        filter: Optional[tuple[str, Any]] = None,
        user_id: Optional[uuid.UUID] = None,
    ):
        self.id = uuid.uuid4()
        self.feed = feed
        self.callback = callback
        self.table = table
        self.event = event
        self.filter = filter
        self.user_id = user_id
        self.active = True

    def matches(self, change: ChangeEvent) -> bool:
        if not self.active:
            return False
        if self.table is not None and change.table != self.table:
            return False
        if self.event is not None and change.type != self.event:
            return False
        if self.user_id is not None and self.user_id not in change.audience:
            return False
        if self.filter is not None:
            column, value = self.filter
            if str(change.record.get(column)) != str(value):
                return False
        return True

    def unsubscribe(self):
        if self.active:
            self.active = False
            self.feed._remove(self)


class ChangeFeed:
    """In-process change notifications for committed writes.

    Table subscriptions take an optional event type and a single
    column-equals-value filter. User subscriptions only see events whose
    audience includes that user.
    """

    def __init__(self):
        self._subscriptions: dict[uuid.UUID, Subscription] = {}

    def subscribe(
        self,
        table: str,
        callback: Listener,
        *,
        event: Optional[ChangeType] = None,
        filter: Optional[tuple[str, Any]] = None,
    ) -> Subscription:
        sub = Subscription(self, callback, table=table, event=event, filter=filter)
        self._subscriptions[sub.id] = sub
        return sub

    def subscribe_user(
        self,
        user_id: uuid.UUID,
        callback: Listener,
        *,
        table: Optional[str] = None,
        event: Optional[ChangeType] = None,
    ) -> Subscription:
        sub = Subscription(self, callback, table=table, event=event, user_id=user_id)
        self._subscriptions[sub.id] = sub
        return sub

    def _remove(self, sub: Subscription):
        self._subscriptions.pop(sub.id, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(
        self,
        table: str,
        change_type: ChangeType,
        *,
        new: Optional[dict] = None,
        old: Optional[dict] = None,
        audience: Iterable[uuid.UUID] = (),
    ) -> ChangeEvent:
        change = ChangeEvent(
            table=table,
            type=change_type,
            new=new,
            old=old,
            audience=frozenset(audience),
        )
        for sub in list(self._subscriptions.values()):
            if not sub.matches(change):
                continue
            try:
                result = sub.callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Change listener failed for {table} {change_type.value}"
                )
        return change


change_feed = ChangeFeed()
