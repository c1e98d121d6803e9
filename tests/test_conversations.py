from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from models.enums import AppRole, PropertyStatus
from models.models import Conversation
from repos.conversation_repo import ConversationRepo
from repos.message_repo import MessageRepo
from repos.profile_repo import ProfileRepo


class TestStartConversation:
    async def test_find_or_create_is_idempotent(
        self, client, db, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord)
        body = {"property_id": str(prop.id)}

        first = await client.post("/v1/conversations", json=body, headers=headers_for(tenant))
        second = await client.post("/v1/conversations", json=body, headers=headers_for(tenant))
        assert first.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["landlord_id"] == str(landlord.id)

        count = await db.execute(
            select(func.count(Conversation.id)).where(Conversation.property_id == prop.id)
        )
        assert count.scalar_one() == 1

    async def test_losing_concurrent_create_returns_the_winner(
        self, session_factory, make_user, make_property
    ):
        """Both sessions saw no thread; the unique pair decides who created it."""
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord)

        async with session_factory() as winner_db, session_factory() as loser_db:
            loser = ConversationRepo(loser_db)
            lookup = loser.get_by_property_and_tenant
            lookups = []

            async def stale_then_fresh(property_id, tenant_id):
                lookups.append(property_id)
                if len(lookups) == 1:
                    return None
                return await lookup(property_id, tenant_id)

            loser.get_by_property_and_tenant = stale_then_fresh

            winner, winner_created = await ConversationRepo(winner_db).get_or_create(
                tenant.id, prop
            )
            found, loser_created = await loser.get_or_create(tenant.id, prop)

        assert winner_created is True
        assert loser_created is False
        assert found.id == winner.id
        assert len(lookups) == 2

    async def test_landlord_never_originates(
        self, client, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord)

        resp = await client.post(
            "/v1/conversations",
            json={"property_id": str(prop.id)},
            headers=headers_for(landlord),
        )
        assert resp.status_code == 400

        resp = await client.post(
            "/v1/conversations",
            json={"property_id": str(prop.id), "tenant_id": str(tenant.id)},
            headers=headers_for(landlord),
        )
        assert resp.status_code == 404

    async def test_landlord_finds_existing_thread(
        self, client, db, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord)
        convo, _ = await ConversationRepo(db).get_or_create(tenant.id, prop)

        resp = await client.post(
            "/v1/conversations",
            json={"property_id": str(prop.id), "tenant_id": str(tenant.id)},
            headers=headers_for(landlord),
        )
        assert resp.status_code == 200
        assert resp.json()["id"] == str(convo.id)

    async def test_unapproved_listing_cannot_start_a_thread(
        self, client, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord, status=PropertyStatus.PENDING)
        resp = await client.post(
            "/v1/conversations",
            json={"property_id": str(prop.id)},
            headers=headers_for(tenant),
        )
        assert resp.status_code == 404


class TestDirectory:
    async def test_enriched_summaries(
        self, client, db, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD, full_name="Ram Thapa")
        tenant = await make_user(full_name="Gita KC")
        prop = await make_property(
            landlord, title="Studio", images=[("https://img.example.com/s.jpg", "s")]
        )
        convo, _ = await ConversationRepo(db).get_or_create(tenant.id, prop)
        messages = MessageRepo(db)
        await messages.create(conversation_id=convo.id, sender_id=tenant.id, content="Hi")
        await messages.create(
            conversation_id=convo.id, sender_id=tenant.id, content="Is it free?"
        )

        resp = await client.get("/v1/conversations", headers=headers_for(landlord))
        assert resp.status_code == 200
        [summary] = resp.json()
        assert summary["other_name"] == "Gita KC"
        assert summary["other_user_id"] == str(tenant.id)
        assert summary["property_title"] == "Studio"
        assert summary["property_thumbnail"] == "https://img.example.com/s.jpg"
        assert summary["last_message"] == "Is it free?"
        assert summary["unread_count"] == 2

        resp = await client.get("/v1/conversations", headers=headers_for(tenant))
        [summary] = resp.json()
        assert summary["other_name"] == "Ram Thapa"
        assert summary["unread_count"] == 0

    async def test_placeholder_names(
        self, client, db, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        nameless = await make_user()
        ghost = await make_user()
        prop = await make_property(landlord)
        profiles = ProfileRepo(db)
        await profiles.update(await profiles.get_by_user(nameless.id), full_name=None)
        await db.delete(await profiles.get_by_user(ghost.id))
        await db.commit()

        repo = ConversationRepo(db)
        await repo.get_or_create(nameless.id, prop)
        await repo.get_or_create(ghost.id, prop)

        resp = await client.get("/v1/conversations", headers=headers_for(landlord))
        names = {s["other_user_id"]: s["other_name"] for s in resp.json()}
        assert names[str(nameless.id)] == "User"
        assert names[str(ghost.id)] == "Unknown"

    async def test_failed_lookup_degrades_to_placeholders(
        self, client, db, make_user, make_property, headers_for, monkeypatch
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord)
        convo, _ = await ConversationRepo(db).get_or_create(tenant.id, prop)
        await MessageRepo(db).create(
            conversation_id=convo.id, sender_id=tenant.id, content="Hello"
        )

        async def broken(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("unread lookup down"))

        monkeypatch.setattr(MessageRepo, "unread_counts_for", broken)

        resp = await client.get("/v1/conversations", headers=headers_for(landlord))
        assert resp.status_code == 200
        [summary] = resp.json()
        assert summary["unread_count"] == 0
        assert summary["last_message"] == "Hello"

    async def test_most_recent_activity_first(
        self, client, db, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        older = await make_property(landlord, title="Older")
        newer = await make_property(landlord, title="Newer")
        repo = ConversationRepo(db)
        first, _ = await repo.get_or_create(tenant.id, older)
        await repo.get_or_create(tenant.id, newer)
        await MessageRepo(db).create(
            conversation_id=first.id, sender_id=tenant.id, content="bump"
        )

        resp = await client.get("/v1/conversations", headers=headers_for(tenant))
        assert [s["property_title"] for s in resp.json()] == ["Older", "Newer"]

    async def test_archived_threads_hidden_by_default(
        self, client, db, make_user, make_property, headers_for
    ):
        landlord = await make_user(role=AppRole.LANDLORD)
        tenant = await make_user()
        prop = await make_property(landlord)
        convo, _ = await ConversationRepo(db).get_or_create(tenant.id, prop)

        resp = await client.patch(
            f"/v1/conversations/{convo.id}/archive",
            json={"archived": True},
            headers=headers_for(tenant),
        )
        assert resp.status_code == 200
        assert resp.json()["archived_by_tenant"] is True

        assert (await client.get("/v1/conversations", headers=headers_for(tenant))).json() == []
        archived = await client.get(
            "/v1/conversations",
            params={"include_archived": True},
            headers=headers_for(tenant),
        )
        assert [s["id"] for s in archived.json()] == [str(convo.id)]

        # Archiving is per participant.
        landlord_view = await client.get("/v1/conversations", headers=headers_for(landlord))
        assert len(landlord_view.json()) == 1
