import logging

from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from redis.asyncio import from_url

from .settings import settings

logger = logging.getLogger(__name__)


class RateLimitManager:
    def __init__(self):
        self.redis = None

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    async def connect(self):
        if not settings.RATE_LIMIT_REDIS_URL:
            logger.info("Rate limiter not configured; requests are not throttled.")
            return
        self.redis = from_url(
            settings.RATE_LIMIT_REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        await FastAPILimiter.init(self.redis, identifier=self.user_or_ip)
        logger.info("Rate limiter initialized.")

    async def close(self):
        if self.redis is not None:
            await FastAPILimiter.close()
            self.redis = None

    @staticmethod
    async def limit_exceeded_handler(request: Request, exc):
        return JSONResponse(
            status_code=429,
            content={"detail": "Limit exceeded. Please try again later."},
        )

    async def user_or_ip(self, request: Request) -> str:
        user = getattr(request.state, "user", None)
        user_id = getattr(user, "id", None)
        if user_id is not None:
            return f"user:{user_id}"

        auth = request.headers.get("Authorization")
        if auth:
            return f"token:{auth[-16:]}"

        if request.client and request.client.host:
            return f"ip:{request.client.host}"

        return "anonymous"


rate_limiter_manager = RateLimitManager()
limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES,
    seconds=settings.RATE_LIMIT_SECONDS,
    identifier=rate_limiter_manager.user_or_ip,
)


async def throttle(request: Request, response: Response):
    if not rate_limiter_manager.enabled:
        return
    await limiter(request, response)


rate_limit = Depends(throttle)
