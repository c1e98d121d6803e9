import uuid

from models.enums import ChangeType
from realtime.change_feed import ChangeFeed


class TestSubscriptions:
    async def test_table_event_and_filter(self):
        feed = ChangeFeed()
        convo = uuid.uuid4()
        seen = []
        feed.subscribe(
            "messages",
            seen.append,
            event=ChangeType.INSERT,
            filter=("conversation_id", convo),
        )

        await feed.publish("messages", ChangeType.INSERT, new={"conversation_id": str(convo)})
        await feed.publish("messages", ChangeType.UPDATE, new={"conversation_id": str(convo)})
        await feed.publish(
            "messages", ChangeType.INSERT, new={"conversation_id": str(uuid.uuid4())}
        )
        await feed.publish("favorites", ChangeType.INSERT, new={"conversation_id": str(convo)})

        assert len(seen) == 1

    async def test_filter_reads_old_row_on_delete(self):
        feed = ChangeFeed()
        convo = uuid.uuid4()
        seen = []
        feed.subscribe("messages", seen.append, filter=("conversation_id", convo))
        await feed.publish(
            "messages", ChangeType.DELETE, old={"conversation_id": str(convo)}
        )
        assert [c.type for c in seen] == [ChangeType.DELETE]

    async def test_user_topic_needs_audience_membership(self):
        feed = ChangeFeed()
        alice, bob, carol = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        alice_seen, carol_seen = [], []
        feed.subscribe_user(alice, alice_seen.append, table="messages")
        feed.subscribe_user(carol, carol_seen.append, table="messages")

        await feed.publish("messages", ChangeType.INSERT, new={}, audience=(alice, bob))

        assert len(alice_seen) == 1
        assert carol_seen == []

    async def test_unsubscribe_stops_delivery(self):
        feed = ChangeFeed()
        seen = []
        sub = feed.subscribe("messages", seen.append)
        sub.unsubscribe()
        sub.unsubscribe()
        await feed.publish("messages", ChangeType.INSERT, new={})
        assert seen == []
        assert feed.subscriber_count == 0


class TestDelivery:
    async def test_failing_listener_does_not_block_others(self):
        feed = ChangeFeed()
        seen = []

        def broken(change):
            raise RuntimeError("listener bug")

        feed.subscribe("messages", broken)
        feed.subscribe("messages", seen.append)

        change = await feed.publish("messages", ChangeType.INSERT, new={"id": "1"})
        assert seen == [change]

    async def test_async_listeners_are_awaited(self):
        feed = ChangeFeed()
        seen = []

        async def listener(change):
            seen.append(change.record["id"])

        feed.subscribe("messages", listener)
        await feed.publish("messages", ChangeType.INSERT, new={"id": "42"})
        assert seen == ["42"]

    async def test_payload_shape(self):
        feed = ChangeFeed()
        change = await feed.publish("messages", ChangeType.UPDATE, new={"is_read": True})
        assert change.as_payload() == {
            "table": "messages",
            "type": "UPDATE",
            "new": {"is_read": True},
            "old": None,
        }
