import asyncio
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from models.enums import AppRole, ThreadState
from realtime.badge import UnreadBadge
from realtime.change_feed import change_feed
from realtime.directory import ConversationDirectory
from realtime.inbox_session import InboxSession
from realtime.thread import ThreadView
from repos.conversation_repo import ConversationRepo
from repos.message_repo import MessageRepo
from schemas.schema import ConversationSummaryOut
from services.message_service import MessageService


class Recorder:
    def __init__(self):
        self.events: list[dict] = []

    async def __call__(self, payload: dict):
        self.events.append(payload)

    async def send_json(self, payload: dict):
        self.events.append(payload)

    def of(self, kind: str) -> list[dict]:
        return [e for e in self.events if e["type"] == kind]


@pytest.fixture
async def chat(db, make_user, make_property):
    landlord = await make_user(role=AppRole.LANDLORD, full_name="Landlord")
    tenant = await make_user(full_name="Tenant")
    prop = await make_property(landlord)
    convo, _ = await ConversationRepo(db).get_or_create(tenant.id, prop)
    return SimpleNamespace(landlord=landlord, tenant=tenant, prop=prop, convo=convo)


async def _send(session_factory, convo_id, user, text):
    async with session_factory() as db:
        return await MessageService(db).send(convo_id, user, text)


async def _is_read(session_factory, message_id) -> bool:
    async with session_factory() as db:
        return (await MessageRepo(db).get_by_id(message_id)).is_read


class TestThreadView:
    async def test_open_loads_history_and_marks_it_read(
        self, db, session_factory, chat
    ):
        await MessageRepo(db).create(
            conversation_id=chat.convo.id, sender_id=chat.tenant.id, content="hi"
        )
        emit = Recorder()
        view = ThreadView(chat.landlord, session_factory, emit)

        messages = await view.open(chat.convo.id)

        assert view.state == ThreadState.READY
        assert [m["content"] for m in messages] == ["hi"]
        assert messages[0]["is_read"] is True
        [ready] = emit.of("thread.ready")
        assert ready["conversation_id"] == str(chat.convo.id)
        await view.close()

    async def test_live_message_is_appended_and_marked_read(self, session_factory, chat):
        emit = Recorder()
        view = ThreadView(chat.landlord, session_factory, emit)
        await view.open(chat.convo.id)

        sent = await _send(session_factory, chat.convo.id, chat.tenant, "are you there?")
        await view.pending.wait()

        [event] = emit.of("message.new")
        assert event["message"]["id"] == str(sent.id)
        assert [m["id"] for m in view.messages] == [str(sent.id)]
        assert await _is_read(session_factory, sent.id) is True
        await view.close()

    async def test_own_message_arrives_through_the_feed_unread(
        self, session_factory, chat
    ):
        emit = Recorder()
        view = ThreadView(chat.tenant, session_factory, emit)
        await view.open(chat.convo.id)

        assert await view.send("  hello  ") is True
        assert len(view.pending) == 0
        [event] = emit.of("message.new")
        assert event["message"]["content"] == "hello"
        assert view.messages[0]["is_read"] is False
        assert view.sending is False
        await view.close()

    async def test_messages_for_other_threads_are_ignored(
        self, db, session_factory, chat, make_property
    ):
        other_prop = await make_property(chat.landlord, title="Other")
        other, _ = await ConversationRepo(db).get_or_create(chat.tenant.id, other_prop)
        emit = Recorder()
        view = ThreadView(chat.landlord, session_factory, emit)
        await view.open(chat.convo.id)

        await _send(session_factory, other.id, chat.tenant, "elsewhere")
        await view.pending.wait()

        assert emit.of("message.new") == []
        assert view.messages == []
        await view.close()

    async def test_stale_load_is_discarded(
        self, db, session_factory, chat, make_property, monkeypatch
    ):
        other_prop = await make_property(chat.landlord, title="Other")
        other, _ = await ConversationRepo(db).get_or_create(chat.tenant.id, other_prop)
        await MessageRepo(db).create(
            conversation_id=other.id, sender_id=chat.landlord.id, content="second thread"
        )

        gate = asyncio.Event()
        original = MessageService.history

        async def slow_history(self, conversation_id, current_user):
            if conversation_id == chat.convo.id:
                await gate.wait()
            return await original(self, conversation_id, current_user)

        monkeypatch.setattr(MessageService, "history", slow_history)
        emit = Recorder()
        view = ThreadView(chat.tenant, session_factory, emit)

        first = asyncio.create_task(view.open(chat.convo.id))
        await asyncio.sleep(0)
        await view.open(other.id)
        gate.set()

        assert await first is None
        assert view.conversation_id == other.id
        assert view.state == ThreadState.READY
        assert [m["content"] for m in view.messages] == ["second thread"]
        assert [e["conversation_id"] for e in emit.of("thread.ready")] == [str(other.id)]
        await view.close()

    async def test_failed_load_returns_to_idle(self, session_factory, chat, make_user):
        outsider = await make_user()
        view = ThreadView(outsider, session_factory, Recorder())

        with pytest.raises(HTTPException) as exc:
            await view.open(chat.convo.id)

        assert exc.value.status_code == 404
        assert view.state == ThreadState.IDLE
        assert view.conversation_id is None
        assert change_feed.subscriber_count == 0

    async def test_outsider_is_refused_before_subscribing(
        self, session_factory, chat, make_user, monkeypatch
    ):
        outsider = await make_user()
        loaded = []
        original = MessageService.history

        async def tracking_history(self, conversation_id, current_user):
            loaded.append(conversation_id)
            return await original(self, conversation_id, current_user)

        monkeypatch.setattr(MessageService, "history", tracking_history)
        view = ThreadView(outsider, session_factory, Recorder())

        with pytest.raises(HTTPException) as exc:
            await view.open(chat.convo.id)

        assert exc.value.status_code == 404
        assert loaded == []
        assert view.messages == []
        assert change_feed.subscriber_count == 0

    async def test_failed_load_drops_messages_seen_while_loading(
        self, session_factory, chat, monkeypatch
    ):
        async def failing_history(self, conversation_id, current_user):
            await _send(session_factory, conversation_id, chat.tenant, "private text")
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(MessageService, "history", failing_history)
        emit = Recorder()
        view = ThreadView(chat.landlord, session_factory, emit)

        with pytest.raises(RuntimeError):
            await view.open(chat.convo.id)

        assert view.state == ThreadState.IDLE
        assert view.messages == []
        assert len(view.pending) == 0
        assert emit.of("message.new") == []
        assert change_feed.subscriber_count == 0

    async def test_send_guards(self, session_factory, chat):
        view = ThreadView(chat.tenant, session_factory, Recorder())
        assert await view.send("not open yet") is False

        await view.open(chat.convo.id)
        assert await view.send("   ") is False
        assert await view.send(None) is False
        view.sending = True
        assert await view.send("twice") is False
        await view.close()

    async def test_rejected_send_returns_the_draft(
        self, session_factory, chat, monkeypatch
    ):
        async def reject(self, conversation_id, current_user, content):
            raise HTTPException(status_code=400, detail="Message is too long")

        emit = Recorder()
        view = ThreadView(chat.tenant, session_factory, emit)
        await view.open(chat.convo.id)
        monkeypatch.setattr(MessageService, "send", reject)

        assert await view.send("draft text") is False
        [failed] = emit.of("send.failed")
        assert failed["draft"] == "draft text"
        assert failed["error"] == "Message is too long"
        assert view.sending is False
        await view.close()

    async def test_close_tears_down(self, session_factory, chat):
        view = ThreadView(chat.tenant, session_factory, Recorder())
        await view.open(chat.convo.id)
        generation = view.generation
        await view.close()

        assert view.state == ThreadState.IDLE
        assert view.generation == generation + 1
        assert change_feed.subscriber_count == 0


def _summary(conversation_id, updated_at, unread=0):
    return ConversationSummaryOut(
        id=conversation_id,
        property_id=uuid.uuid4(),
        tenant_id=uuid.uuid4(),
        landlord_id=uuid.uuid4(),
        other_user_id=uuid.uuid4(),
        other_name="Someone",
        unread_count=unread,
        updated_at=updated_at,
    )


class TestConversationDirectory:
    def _directory(self):
        viewer = SimpleNamespace(id=uuid.uuid4())
        directory = ConversationDirectory(viewer, session_factory=None)
        now = datetime(2026, 6, 1, 12, 0)
        self.a, self.b = uuid.uuid4(), uuid.uuid4()
        directory.items = [
            _summary(self.b, now),
            _summary(self.a, now - timedelta(hours=1)),
        ]
        return viewer, directory

    def _message(self, conversation_id, sender_id, at="2026-06-01T13:00:00"):
        return {
            "id": str(uuid.uuid4()),
            "conversation_id": str(conversation_id),
            "sender_id": str(sender_id),
            "content": "ping",
            "created_at": at,
        }

    def test_incoming_message_bumps_and_counts(self):
        viewer, directory = self._directory()
        item = directory.apply_insert(self._message(self.a, uuid.uuid4()))

        assert item.unread_count == 1
        assert item.last_message == "ping"
        assert item.last_message_at == datetime(2026, 6, 1, 13, 0)
        assert [s.id for s in directory.items] == [self.a, self.b]

    def test_own_message_does_not_count(self):
        viewer, directory = self._directory()
        item = directory.apply_insert(self._message(self.a, viewer.id))
        assert item.unread_count == 0
        assert directory.items[0].id == self.a

    def test_active_conversation_does_not_count(self):
        viewer, directory = self._directory()
        directory.activate(self.a)
        item = directory.apply_insert(self._message(self.a, uuid.uuid4()))
        assert item.unread_count == 0

    def test_unknown_conversation_is_ignored(self):
        viewer, directory = self._directory()
        assert directory.apply_insert(self._message(uuid.uuid4(), uuid.uuid4())) is None
        assert [s.id for s in directory.items] == [self.b, self.a]

    def test_activate_clears_unread(self):
        viewer, directory = self._directory()
        directory.items[1].unread_count = 3
        item = directory.activate(self.a)
        assert item.unread_count == 0
        assert directory.activate(None) is None
        assert directory.active_conversation_id is None


class TestUnreadBadge:
    async def test_recounts_on_every_message_change(self, session_factory, chat):
        emit = Recorder()
        badge = UnreadBadge(chat.landlord, session_factory, emit)
        assert await badge.start() == 0

        await _send(session_factory, chat.convo.id, chat.tenant, "one")
        await badge.pending.wait()
        await _send(session_factory, chat.convo.id, chat.tenant, "two")
        await badge.pending.wait()

        assert [e["count"] for e in emit.of("unread.count")] == [0, 1, 2]
        badge.stop()
        assert change_feed.subscriber_count == 0

    async def test_stale_recount_is_dropped(self, session_factory, chat, monkeypatch):
        gate = asyncio.Event()
        original = MessageService.unread_count
        calls = {"n": 0}

        async def slow_count(self, current_user):
            calls["n"] += 1
            if calls["n"] == 1:
                await gate.wait()
            return await original(self, current_user)

        monkeypatch.setattr(MessageService, "unread_count", slow_count)
        emit = Recorder()
        badge = UnreadBadge(chat.landlord, session_factory, emit)

        first = asyncio.create_task(badge.recount())
        await asyncio.sleep(0)
        assert await badge.recount() == 0
        gate.set()

        assert await first is None
        assert len(emit.of("unread.count")) == 1


class TestInboxSession:
    async def _drain(self, session):
        await session.thread.pending.wait()
        await session.badge.pending.wait()

    async def test_start_sends_snapshot_and_count(self, db, session_factory, chat):
        await MessageRepo(db).create(
            conversation_id=chat.convo.id, sender_id=chat.tenant.id, content="hello"
        )
        socket = Recorder()
        session = InboxSession(socket, chat.landlord, session_factory)
        await session.start()

        [snapshot] = socket.of("directory.snapshot")
        [summary] = snapshot["conversations"]
        assert summary["id"] == str(chat.convo.id)
        assert summary["unread_count"] == 1
        assert socket.of("unread.count")[-1]["count"] == 1
        await session.stop()
        assert change_feed.subscriber_count == 0

    async def test_incoming_message_updates_inactive_conversation(
        self, session_factory, chat
    ):
        socket = Recorder()
        session = InboxSession(socket, chat.landlord, session_factory)
        await session.start()

        await _send(session_factory, chat.convo.id, chat.tenant, "new inquiry")
        await self._drain(session)

        [update] = socket.of("conversation.updated")
        assert update["conversation"]["unread_count"] == 1
        assert update["conversation"]["last_message"] == "new inquiry"
        assert socket.of("unread.count")[-1]["count"] == 1
        await session.stop()

    async def test_open_then_send(self, session_factory, chat):
        socket = Recorder()
        session = InboxSession(socket, chat.tenant, session_factory)
        await session.start()

        await session.handle({"action": "open", "conversation_id": str(chat.convo.id)})
        assert session.directory.active_conversation_id == chat.convo.id
        [ready] = socket.of("thread.ready")
        assert ready["messages"] == []

        await session.handle({"action": "send", "content": "Is parking included?"})
        await self._drain(session)

        [new] = socket.of("message.new")
        assert new["message"]["content"] == "Is parking included?"
        assert socket.of("conversation.updated")[-1]["conversation"]["unread_count"] == 0

        await session.handle({"action": "close"})
        assert session.thread.state == ThreadState.IDLE
        assert session.directory.active_conversation_id is None
        await session.stop()

    async def test_reading_in_the_open_thread_clears_the_badge(
        self, session_factory, chat
    ):
        socket = Recorder()
        session = InboxSession(socket, chat.landlord, session_factory)
        await session.start()
        await session.handle({"action": "open", "conversation_id": str(chat.convo.id)})

        sent = await _send(session_factory, chat.convo.id, chat.tenant, "still free?")
        await self._drain(session)

        assert await _is_read(session_factory, sent.id) is True
        await session.badge.recount()
        assert socket.of("unread.count")[-1]["count"] == 0
        await session.stop()

    async def test_errors_are_reported_to_the_client(
        self, session_factory, chat, make_user
    ):
        socket = Recorder()
        session = InboxSession(socket, chat.tenant, session_factory)
        await session.start()

        await session.handle("not a dict")
        await session.handle({"action": "dance"})
        await session.handle({"action": "open", "conversation_id": "nope"})
        await session.handle({"action": "send", "content": "hi"})
        await session.handle({"action": "open", "conversation_id": str(uuid.uuid4())})

        details = [e["detail"] for e in socket.of("error")]
        assert details == [
            "Expected a JSON object",
            "Unknown action 'dance'",
            "Invalid conversation id",
            "No conversation is open",
            "Conversation not found",
        ]
        assert session.directory.active_conversation_id is None
        await session.stop()

    async def test_send_while_loading_is_reported(self, session_factory, chat):
        socket = Recorder()
        session = InboxSession(socket, chat.tenant, session_factory)
        session.thread.conversation_id = chat.convo.id
        session.thread.state = ThreadState.LOADING

        await session.handle({"action": "send", "content": "too early"})

        [error] = socket.of("error")
        assert error["action"] == "send"
        assert error["detail"] == "Conversation is still loading"
        assert socket.of("send.failed") == []
        await session.stop()

    async def test_refresh_can_include_archived(self, db, session_factory, chat):
        await ConversationRepo(db).set_archived(chat.convo, chat.tenant.id, True)
        socket = Recorder()
        session = InboxSession(socket, chat.tenant, session_factory)
        await session.start()
        assert socket.of("directory.snapshot")[-1]["conversations"] == []

        await session.handle({"action": "refresh", "include_archived": True})
        [summary] = socket.of("directory.snapshot")[-1]["conversations"]
        assert summary["archived"] is True
        await session.stop()
