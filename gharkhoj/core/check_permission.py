import uuid

from fastapi import HTTPException

from models.enums import AppRole
from repos.role_repo import RoleRepo


class CheckRolePermission:
    """Role checks that always read ``user_roles``, never a cached role."""

    def __init__(self, db):
        self.roles = RoleRepo(db)

    async def require_role(self, user_id: uuid.UUID, *allowed: AppRole) -> AppRole:
        role = await self.roles.get_role(user_id)
        if role not in allowed:
            raise HTTPException(status_code=403, detail="Access Denied.")
        return role

    async def check_admin(self, current_user) -> AppRole:
        return await self.require_role(current_user.id, AppRole.ADMIN)

    async def check_landlord(self, current_user) -> AppRole:
        return await self.require_role(current_user.id, AppRole.LANDLORD)

    async def is_admin(self, current_user) -> bool:
        return await self.roles.get_role(current_user.id) == AppRole.ADMIN
