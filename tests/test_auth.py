from models.enums import AppRole
from repos.role_repo import RoleRepo


class TestSignUp:
    async def test_creates_account_with_profile_and_role(self, client):
        resp = await client.post(
            "/v1/auth/signup",
            json={
                "email": "  Asha@Example.com ",
                "password": "secret123",
                "full_name": "Asha Rai",
                "role": "landlord",
            },
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "landlord"

        signin = await client.post(
            "/v1/auth/signin",
            json={"email": "asha@example.com", "password": "secret123"},
        )
        assert signin.status_code == 200
        token = signin.json()["access_token"]

        me = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        body = me.json()
        assert body["user"]["email"] == "asha@example.com"
        assert body["role"] == "landlord"
        assert body["profile"]["full_name"] == "Asha Rai"

    async def test_duplicate_email_rejected(self, client, make_user):
        await make_user(email="taken@example.com")
        resp = await client.post(
            "/v1/auth/signup",
            json={
                "email": "taken@example.com",
                "password": "secret123",
                "full_name": "Someone",
            },
        )
        assert resp.status_code == 400

    async def test_short_password_rejected(self, client):
        resp = await client.post(
            "/v1/auth/signup",
            json={"email": "a@example.com", "password": "123", "full_name": "A"},
        )
        assert resp.status_code == 422

    async def test_admin_cannot_self_register(self, client):
        resp = await client.post(
            "/v1/auth/signup",
            json={
                "email": "boss@example.com",
                "password": "secret123",
                "full_name": "Boss",
                "role": "admin",
            },
        )
        assert resp.status_code == 422


class TestSession:
    async def test_wrong_password_is_unauthorized(self, client, make_user):
        await make_user(email="me@example.com")
        resp = await client.post(
            "/v1/auth/signin",
            json={"email": "me@example.com", "password": "nope-nope"},
        )
        assert resp.status_code == 401

    async def test_me_requires_a_token(self, client):
        resp = await client.get("/v1/auth/me")
        assert resp.status_code == 401

    async def test_signout_revokes_the_token(self, client, make_user, headers_for):
        user = await make_user()
        headers = headers_for(user)

        assert (await client.get("/v1/auth/me", headers=headers)).status_code == 200
        resp = await client.post("/v1/auth/signout", headers=headers)
        assert resp.status_code == 200
        assert (await client.get("/v1/auth/me", headers=headers)).status_code == 401

    async def test_refresh_issues_a_new_access_token(self, client, make_user):
        await make_user(email="r@example.com")
        signin = await client.post(
            "/v1/auth/signin",
            json={"email": "r@example.com", "password": "secret123"},
        )
        refresh_token = signin.json()["refresh_token"]

        resp = await client.post(
            "/v1/auth/refresh", json={"refresh_token": refresh_token}
        )
        assert resp.status_code == 200
        new_token = resp.json()["access_token"]
        me = await client.get(
            "/v1/auth/me", headers={"Authorization": f"Bearer {new_token}"}
        )
        assert me.status_code == 200

    async def test_access_token_cannot_refresh(self, client, make_user, headers_for):
        user = await make_user()
        token = headers_for(user)["Authorization"].split(" ", 1)[1]
        resp = await client.post("/v1/auth/refresh", json={"refresh_token": token})
        assert resp.status_code == 401

    async def test_role_is_read_fresh_on_every_request(
        self, client, db, make_user, headers_for
    ):
        user = await make_user(role=AppRole.TENANT)
        headers = headers_for(user)
        assert (await client.get("/v1/auth/me", headers=headers)).json()["role"] == "tenant"

        await RoleRepo(db).set_role(user.id, AppRole.LANDLORD)
        assert (
            await client.get("/v1/auth/me", headers=headers)
        ).json()["role"] == "landlord"
