import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.throttling import rate_limiter_manager
from services.auth_service import AuthService

from .cache import cache
from .cloudinary_setup import cloudinary_client
from .get_db import AsyncSessionLocal, Base, async_engine
from .settings import settings

logger = logging.getLogger("startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")

    if settings.CREATE_TABLES_ON_STARTUP:
        try:
            async with async_engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables ensured.")
        except Exception:
            logger.exception("Failed to create database tables")

    try:
        if await cloudinary_client.connect():
            logger.info("Cloudinary connected.")
    except Exception:
        logger.exception("Cannot connect to Cloudinary")

    try:
        async with AsyncSessionLocal() as db:
            await AuthService(db).purge_blacklist()
            logger.info("Blacklisted tokens cleanup completed.")
    except Exception:
        logger.exception("Failed to clean up blacklisted tokens")

    try:
        await cache.connect()
    except Exception:
        logger.exception("Upstash Redis connection failed")

    try:
        await rate_limiter_manager.connect()
    except Exception:
        logger.exception("Rate limiter connection failed")

    logger.info("Application startup complete.")

    yield

    try:
        await rate_limiter_manager.close()
    except Exception:
        logger.exception("Failed to close rate limiter")
    await async_engine.dispose()
