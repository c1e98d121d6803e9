import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from core.breaker import breaker
from core.mapper import ORMMapper
from core.session_context import SessionContext
from core.settings import settings
from core.validators import ACCESS, REFRESH, create_token, decode_token, extract_token
from models.utils import utcnow
from realtime.connection_manager import manager
from repos.auth_repo import AuthRepo
from repos.profile_repo import ProfileRepo
from repos.role_repo import RoleRepo
from schemas.schema import MeOut, ProfileOut, UserOut

logger = logging.getLogger(__name__)

ACCESS_EXPIRE_MINUTES = settings.ACCESS_EXPIRE_MINUTES
REFRESH_EXPIRE_DAYS = settings.REFRESH_EXPIRE_DAYS
SECURE_COOKIES = settings.SECURE_COOKIES


def _set_auth_cookies(response: JSONResponse, access_token: str, refresh_token=None):
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=SECURE_COOKIES,
        samesite="lax",
        max_age=ACCESS_EXPIRE_MINUTES * 60,
    )
    if refresh_token:
        response.set_cookie(
            key="refresh_token",
            value=refresh_token,
            httponly=True,
            secure=SECURE_COOKIES,
            samesite="lax",
            max_age=REFRESH_EXPIRE_DAYS * 86400,
        )


class AuthService:
    def __init__(self, db):
        self.repo: AuthRepo = AuthRepo(db)
        self.roles: RoleRepo = RoleRepo(db)
        self.profiles: ProfileRepo = ProfileRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def sign_up(self, data):
        async def handler():
            if await self.repo.get_by_email(data.email):
                raise HTTPException(status_code=400, detail="Email already registered")

            user = await self.repo.create_account(
                email=data.email,
                password=data.password,
                full_name=data.full_name,
                role=data.role,
            )
            logger.info(f"New {data.role.value} account {user.id}")
            return JSONResponse(
                {
                    "message": "Account created successfully! You can now sign in.",
                    "id": str(user.id),
                    "role": data.role.value,
                },
                status_code=201,
            )

        return await breaker.call(handler)

    async def sign_in(self, data):
        async def handler():
            user = await self.repo.get_by_email(data.email)
            if not user or not user.check_password(raw_password=data.password):
                raise HTTPException(status_code=401, detail="Invalid credentials")

            await self.repo.touch_sign_in(user)
            role = await self.roles.get_role(user.id)
            access_token = create_token(user.id, ACCESS)
            refresh_token = create_token(user.id, REFRESH)

            response = JSONResponse(
                {
                    "message": "Login successful",
                    "id": str(user.id),
                    "email": user.email,
                    "role": role.value if role else None,
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                },
                status_code=200,
            )
            _set_auth_cookies(response, access_token, refresh_token)
            return response

        return await breaker.call(handler)

    async def sign_out(self, request: Request, context: SessionContext):
        async def handler():
            access_token = extract_token(request)
            refresh_token = request.cookies.get("refresh_token")
            if access_token:
                await self.repo.blacklist_token(access_token)
            if refresh_token:
                await self.repo.blacklist_token(refresh_token)

            if context.user_id:
                await manager.disconnect_user(context.user_id)

            response = JSONResponse({"message": "Logged out successfully"})
            for cookie in ("access_token", "refresh_token"):
                response.delete_cookie(
                    key=cookie,
                    path="/",
                    secure=SECURE_COOKIES,
                    httponly=True,
                    samesite="lax",
                )
            return response

        return await breaker.call(handler)

    async def refresh(self, request: Request, refresh_token: Optional[str] = None):
        async def handler():
            token = refresh_token or request.cookies.get("refresh_token")
            if not token:
                raise HTTPException(status_code=401, detail="No refresh token")
            if await self.repo.is_token_blacklisted(token):
                raise HTTPException(status_code=401, detail="Refresh token revoked")
            try:
                user_id = decode_token(token, expected_type=REFRESH)
            except ValueError as e:
                raise HTTPException(status_code=401, detail=str(e))

            if not await self.repo.by_id(user_id):
                raise HTTPException(status_code=401, detail="User not found")

            new_access_token = create_token(user_id, ACCESS)
            response = JSONResponse({"access_token": new_access_token})
            _set_auth_cookies(response, new_access_token)
            return response

        return await breaker.call(handler)

    async def update_password(self, current_user, data):
        async def handler():
            current_user.set_password(data.password)
            await self.repo.save(current_user)
            return {"message": "Password updated successfully"}

        return await breaker.call(handler)

    async def me(self, context: SessionContext) -> MeOut:
        async def handler():
            user = context.require_user()
            role = await context.refresh_role()
            profile = await self.profiles.get_by_user(user.id)
            return MeOut(
                user=self.mapper.one(user, UserOut),
                role=role,
                profile=self.mapper.one_or_none(profile, ProfileOut),
            )

        return await breaker.call(handler)

    async def purge_blacklist(self):
        cutoff = utcnow() - timedelta(days=settings.BLACKLIST_RETENTION_DAYS)
        await self.repo.delete_expired_blacklisted_tokens(cutoff)
