import logging

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from core.catch_error_middleware import ErrorHandlerMiddleware
from core.exception_handler import ValidationErrorHandler
from core.lifespan import lifespan
from core.settings import settings
from core.throttling import rate_limiter_manager
from realtime.chat_routes import router as realtime_router
from routes.admin_routes import router as admin_router
from routes.auth_routes import router as auth_router
from routes.conversation_routes import router as conversation_router
from routes.favorite_routes import router as favorite_router
from routes.inquiry_routes import router as inquiry_router
from routes.profile_routes import router as profile_router
from routes.property_image_routes import router as property_image_router
from routes.property_routes import router as property_router
from routes.search_routes import router as search_router

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    lifespan=lifespan,
    title=settings.PROJECT_NAME,
    exception_handlers={429: rate_limiter_manager.limit_exceeded_handler},
    version="1.0.0",
)

app.include_router(auth_router, prefix="/v1/auth")
app.include_router(profile_router, prefix="/v1")
app.include_router(property_image_router, prefix="/v1/properties")
app.include_router(property_router, prefix="/v1/properties")
app.include_router(search_router, prefix="/v1")
app.include_router(favorite_router, prefix="/v1/favorites")
app.include_router(inquiry_router, prefix="/v1/inquiries")
app.include_router(conversation_router, prefix="/v1")
app.include_router(admin_router, prefix="/v1/admin")
app.include_router(realtime_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["System"])
async def health_check():
    return {"status": "ok"}


app.add_exception_handler(
    RequestValidationError,
    ValidationErrorHandler(),
)

app.add_middleware(ErrorHandlerMiddleware)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8001)
