import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                f"Unhandled server error on {request.method} {request.url.path}: {e}"
            )
            return JSONResponse(
                {"detail": get_friendly_message(e)},
                status_code=500,
            )
