from types import SimpleNamespace

import pytest

from models.enums import AppRole, ChangeType
from realtime.change_feed import change_feed
from repos.conversation_repo import ConversationRepo
from repos.message_repo import MessageRepo


@pytest.fixture
async def thread(db, make_user, make_property):
    landlord = await make_user(role=AppRole.LANDLORD, full_name="Landlord")
    tenant = await make_user(full_name="Tenant")
    prop = await make_property(landlord)
    convo, _ = await ConversationRepo(db).get_or_create(tenant.id, prop)
    return SimpleNamespace(landlord=landlord, tenant=tenant, prop=prop, convo=convo)


class TestSendMessage:
    async def test_send_trims_and_publishes(self, client, thread, headers_for):
        events = []
        change_feed.subscribe("messages", events.append, event=ChangeType.INSERT)

        resp = await client.post(
            f"/v1/conversations/{thread.convo.id}/messages",
            json={"content": "  Namaste  "},
            headers=headers_for(thread.tenant),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["content"] == "Namaste"
        assert body["is_read"] is False
        assert body["sender_id"] == str(thread.tenant.id)

        [event] = events
        assert event.new["id"] == body["id"]
        assert event.new["conversation_id"] == str(thread.convo.id)
        assert event.audience == frozenset({thread.tenant.id, thread.landlord.id})

    async def test_blank_message_rejected(self, client, thread, headers_for):
        resp = await client.post(
            f"/v1/conversations/{thread.convo.id}/messages",
            json={"content": "   "},
            headers=headers_for(thread.tenant),
        )
        assert resp.status_code == 422

    async def test_outsider_cannot_post(self, client, thread, make_user, headers_for):
        outsider = await make_user()
        resp = await client.post(
            f"/v1/conversations/{thread.convo.id}/messages",
            json={"content": "let me in"},
            headers=headers_for(outsider),
        )
        assert resp.status_code == 404


class TestHistory:
    async def test_opening_marks_only_incoming_as_read(
        self, client, db, thread, headers_for
    ):
        messages = MessageRepo(db)
        from_tenant = await messages.create(
            conversation_id=thread.convo.id, sender_id=thread.tenant.id, content="one"
        )
        from_landlord = await messages.create(
            conversation_id=thread.convo.id, sender_id=thread.landlord.id, content="two"
        )
        updates = []
        change_feed.subscribe("messages", updates.append, event=ChangeType.UPDATE)

        resp = await client.get(
            f"/v1/conversations/{thread.convo.id}/messages",
            headers=headers_for(thread.landlord),
        )
        assert resp.status_code == 200
        assert [m["content"] for m in resp.json()] == ["one", "two"]

        read = {m["id"]: m["is_read"] for m in resp.json()}
        assert read[str(from_tenant.id)] is True
        assert read[str(from_landlord.id)] is False
        assert [u.new["id"] for u in updates] == [str(from_tenant.id)]

    async def test_outsider_gets_not_found(self, client, thread, make_user, headers_for):
        outsider = await make_user()
        resp = await client.get(
            f"/v1/conversations/{thread.convo.id}/messages",
            headers=headers_for(outsider),
        )
        assert resp.status_code == 404


class TestUnread:
    async def test_total_counts_incoming_unread_only(
        self, client, db, thread, make_property, headers_for
    ):
        messages = MessageRepo(db)
        for text in ("a", "b", "c"):
            await messages.create(
                conversation_id=thread.convo.id, sender_id=thread.tenant.id, content=text
            )
        await messages.create(
            conversation_id=thread.convo.id, sender_id=thread.landlord.id, content="d"
        )
        other_prop = await make_property(thread.landlord, title="Second")
        other, _ = await ConversationRepo(db).get_or_create(thread.tenant.id, other_prop)
        await messages.create(
            conversation_id=other.id, sender_id=thread.tenant.id, content="e"
        )

        resp = await client.get(
            "/v1/messages/unread-count", headers=headers_for(thread.landlord)
        )
        assert resp.json() == {"count": 4}
        resp = await client.get(
            "/v1/messages/unread-count", headers=headers_for(thread.tenant)
        )
        assert resp.json() == {"count": 1}

    async def test_recipient_marks_one_message_read(
        self, client, db, thread, headers_for
    ):
        msg = await MessageRepo(db).create(
            conversation_id=thread.convo.id, sender_id=thread.tenant.id, content="hey"
        )
        resp = await client.patch(
            f"/v1/messages/{msg.id}/read", headers=headers_for(thread.landlord)
        )
        assert resp.status_code == 200
        assert resp.json()["updated"] is True

        again = await client.patch(
            f"/v1/messages/{msg.id}/read", headers=headers_for(thread.landlord)
        )
        assert again.json()["updated"] is False

    async def test_sender_cannot_mark_own_message(
        self, client, db, thread, headers_for
    ):
        msg = await MessageRepo(db).create(
            conversation_id=thread.convo.id, sender_id=thread.tenant.id, content="hey"
        )
        resp = await client.patch(
            f"/v1/messages/{msg.id}/read", headers=headers_for(thread.tenant)
        )
        assert resp.status_code == 403
