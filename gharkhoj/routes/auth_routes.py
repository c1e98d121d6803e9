from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user, get_session_context
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.session_context import SessionContext
from core.throttling import rate_limit
from models.models import User
from schemas.schema import PasswordUpdateIn, RefreshIn, SignInIn, SignUpIn
from services.auth_service import AuthService

router = APIRouter(tags=["User Authentication"])


@cbv(router)
class UserRoutes:
    @router.post("/signup", dependencies=[rate_limit])
    @safe_handler
    async def sign_up(
        self,
        data: SignUpIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).sign_up(data)

    @router.post("/signin", dependencies=[rate_limit])
    @safe_handler
    async def sign_in(
        self,
        data: SignInIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).sign_in(data)

    @router.post("/signout", dependencies=[rate_limit])
    @safe_handler
    async def sign_out(
        self,
        request: Request,
        db: AsyncSession = Depends(get_db_async),
        context: SessionContext = Depends(get_session_context),
    ):
        return await AuthService(db).sign_out(request, context)

    @router.post("/refresh", dependencies=[rate_limit])
    @safe_handler
    async def refresh(
        self,
        request: Request,
        data: Optional[RefreshIn] = None,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AuthService(db).refresh(
            request, refresh_token=data.refresh_token if data else None
        )

    @router.patch("/password", dependencies=[rate_limit])
    @safe_handler
    async def update_password(
        self,
        data: PasswordUpdateIn,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await AuthService(db).update_password(current_user, data)

    @router.get("/me", dependencies=[rate_limit])
    @safe_handler
    async def me(
        self,
        db: AsyncSession = Depends(get_db_async),
        context: SessionContext = Depends(get_session_context),
    ):
        return await AuthService(db).me(context)
