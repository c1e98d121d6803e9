from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from .settings import settings

DATABASE_URL = settings.DATABASE_URL

engine_options = {"echo": False}
if not DATABASE_URL.startswith("sqlite"):
    engine_options["pool_pre_ping"] = True

async_engine: AsyncEngine = create_async_engine(DATABASE_URL, **engine_options)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def get_db_async():
    session = AsyncSessionLocal()
    try:
        yield session
    finally:
        await session.close()


Base = declarative_base()


def get_session_factory() -> async_sessionmaker:
    """Sockets outlive a request, so they open a short session per operation."""
    return AsyncSessionLocal
