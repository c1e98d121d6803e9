import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPSTASH_REDIS_REST_URL"] = ""
os.environ["UPSTASH_REDIS_REST_TOKEN"] = ""
os.environ["RATE_LIMIT_REDIS_URL"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app import app
from core.cloudinary_setup import CloudinaryClient
from core.get_db import Base, get_db_async, get_session_factory
from core.throttling import throttle
from core.validators import ACCESS, create_token
from models.enums import AppRole, PropertyStatus
from realtime.change_feed import change_feed
from repos.auth_repo import AuthRepo
from repos.property_image_repo import PropertyImageRepo
from repos.property_repo import PropertyRepo


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_db():
        async with session_factory() as session:
            yield session

    async def no_throttle():
        return None

    app.dependency_overrides[get_db_async] = override_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[throttle] = no_throttle
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_change_feed():
    yield
    change_feed._subscriptions.clear()


class FakeImageStore:
    def __init__(self):
        self.deleted: list[str] = []

    async def delete_images(self, _client, public_ids):
        self.deleted.extend(public_ids)
        return {"deleted": {pid: "deleted" for pid in public_ids}, "partial": False}

    async def delete_image(self, _client, public_id):
        self.deleted.append(public_id)
        return {"result": "ok"}

    def sign(self, _client, folder, max_file_size):
        return {"signature": "sig", "folder": folder, "max_file_size": max_file_size}


@pytest.fixture
def image_store(monkeypatch):
    store = FakeImageStore()
    monkeypatch.setattr(
        CloudinaryClient,
        "delete_images",
        lambda self, public_ids: store.delete_images(self, public_ids),
    )
    monkeypatch.setattr(
        CloudinaryClient,
        "delete_image",
        lambda self, public_id: store.delete_image(self, public_id),
    )
    monkeypatch.setattr(
        CloudinaryClient,
        "_sign",
        lambda self, folder, max_file_size: store.sign(self, folder, max_file_size),
    )
    return store


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id, ACCESS)}"}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role: AppRole = AppRole.TENANT, full_name="Test User", email=None):
        counter["n"] += 1
        return await AuthRepo(db).create_account(
            email=email or f"user{counter['n']}@example.com",
            password="secret123",
            full_name=full_name,
            role=role,
        )

    return _make


@pytest.fixture
def make_property(db):
    async def _make(
        landlord,
        status: PropertyStatus = PropertyStatus.APPROVED,
        images=(),
        **fields,
    ):
        values = {"title": "Sunny room", "city": "Kathmandu", "price": 12000.0}
        values.update(fields)
        repo = PropertyRepo(db)
        prop = await repo.create(landlord.id, **values)
        if status != PropertyStatus.PENDING:
            prop = await repo.set_status(prop.id, status)
        if images:
            await PropertyImageRepo(db).add_many(prop.id, list(images), start_order=0)
            prop = await repo.get_with_images(prop.id)
        return prop

    return _make


@pytest.fixture
def headers_for():
    return auth_headers
