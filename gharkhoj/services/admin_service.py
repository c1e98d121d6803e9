import logging
import uuid
from typing import Optional

from fastapi import HTTPException

from core.breaker import breaker
from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from core.settings import settings
from models.enums import AppRole
from models.utils import contains_ci
from repos.auth_repo import AuthRepo
from repos.profile_repo import ProfileRepo
from repos.property_repo import PropertyRepo
from repos.role_repo import RoleRepo
from schemas.schema import AdminUserOut, AnalyticsOut, PropertyCardOut

logger = logging.getLogger(__name__)

ALL_ROLES = "all"
UNKNOWN_ROLE = "unknown"


class AdminService:
    def __init__(self, db):
        self.profiles: ProfileRepo = ProfileRepo(db)
        self.roles: RoleRepo = RoleRepo(db)
        self.users: AuthRepo = AuthRepo(db)
        self.properties: PropertyRepo = PropertyRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission(db)
        self.mapper: ORMMapper = ORMMapper()

    async def list_users(
        self,
        current_user,
        role: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[AdminUserOut]:
        async def handler():
            await self.permission.check_admin(current_user)
            profiles = await self.profiles.list_profiles()
            roles = await self.roles.all_roles()

            rows = [
                AdminUserOut(
                    user_id=p.user_id,
                    full_name=p.full_name,
                    phone=p.phone,
                    avatar_url=p.avatar_url,
                    role=roles[p.user_id].value if p.user_id in roles else UNKNOWN_ROLE,
                    created_at=p.created_at,
                )
                for p in profiles
            ]
            if role and role != ALL_ROLES:
                rows = [r for r in rows if r.role == role]
            term = (search or "").strip()
            if term:
                rows = [
                    r
                    for r in rows
                    if contains_ci(r.full_name, term) or contains_ci(str(r.user_id), term)
                ]
            return rows

        return await breaker.call(handler)

    async def set_role(self, user_id: uuid.UUID, role: AppRole, current_user):
        async def handler():
            await self.permission.check_admin(current_user)
            if not await self.users.by_id(user_id):
                raise HTTPException(status_code=404, detail="User not found")
            row = await self.roles.set_role(user_id, role)
            logger.info(f"Role of {user_id} set to {role.value} by {current_user.id}")
            return {"user_id": str(row.user_id), "role": row.role.value}

        return await breaker.call(handler)

    async def analytics(self, current_user) -> AnalyticsOut:
        async def handler():
            await self.permission.check_admin(current_user)
            by_status = await self.properties.count_by_status()
            by_role = await self.roles.count_by_role()
            recent = await self.properties.recent(settings.RECENT_LISTINGS_LIMIT)
            return AnalyticsOut(
                total_properties=sum(by_status.values()),
                properties_by_status=by_status,
                total_users=await self.profiles.count(),
                users_by_role=by_role,
                recent_properties=self.mapper.many(recent, PropertyCardOut),
            )

        return await breaker.call(handler)
