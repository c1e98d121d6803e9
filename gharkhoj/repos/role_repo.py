import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from models.enums import AppRole
from models.models import UserRole


class RoleRepo:
    def __init__(self, db):
        self.db = db

    async def get_role(self, user_id: uuid.UUID) -> Optional[AppRole]:
        result = await self.db.execute(
            select(UserRole.role).where(UserRole.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def all_roles(self) -> dict[uuid.UUID, AppRole]:
        result = await self.db.execute(select(UserRole.user_id, UserRole.role))
        return {user_id: role for user_id, role in result.all()}

    async def set_role(self, user_id: uuid.UUID, role: AppRole) -> UserRole:
        result = await self.db.execute(
            select(UserRole).where(UserRole.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = UserRole(user_id=user_id, role=role)
            self.db.add(row)
        else:
            row.role = role
        try:
            await self.db.commit()
            await self.db.refresh(row)
            return row
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def count_by_role(self) -> dict[str, int]:
        result = await self.db.execute(
            select(UserRole.role, func.count(UserRole.id)).group_by(UserRole.role)
        )
        counts = {role.value: 0 for role in AppRole}
        for role, count in result.all():
            counts[role.value] = count
        return counts
