import logging
from typing import Optional

from fastapi import HTTPException

from models.enums import AppRole, SessionState
from models.models import User
from repos.auth_repo import AuthRepo
from repos.role_repo import RoleRepo

from .validators import decode_token

logger = logging.getLogger(__name__)


class SessionContext:
    """Identity of the caller for one request or one socket.

    Lifecycle is uninitialized -> resolving -> ready. Once ready the context
    holds either a user with the role read from ``user_roles`` or nobody.
    """

    def __init__(self, db):
        self.db = db
        self.auth = AuthRepo(db)
        self.roles = RoleRepo(db)
        self.state = SessionState.UNINITIALIZED
        self.token: Optional[str] = None
        self.user: Optional[User] = None
        self.role: Optional[AppRole] = None
        self.error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    @property
    def is_authenticated(self) -> bool:
        return self.is_ready and self.user is not None

    @property
    def user_id(self):
        return self.user.id if self.user else None

    async def resolve(self, token: Optional[str]) -> "SessionContext":
        self.state = SessionState.RESOLVING
        self.token = token
        self.user = None
        self.role = None
        self.error = None
        try:
            if not token:
                return self
            if await self.auth.is_token_blacklisted(token):
                self.error = "Token revoked"
                return self
            try:
                user_id = decode_token(token)
            except ValueError as e:
                self.error = str(e)
                return self
            self.user = await self.auth.by_id(user_id)
            if self.user is None:
                self.error = "Not authenticated"
                return self
            self.role = await self.roles.get_role(self.user.id)
            return self
        finally:
            self.state = SessionState.READY

    async def refresh_role(self) -> Optional[AppRole]:
        if self.user is None:
            return None
        self.role = await self.roles.get_role(self.user.id)
        return self.role

    def require_user(self) -> User:
        if not self.is_authenticated:
            raise HTTPException(status_code=401, detail=self.error or "Not authenticated")
        return self.user
