import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.enums import AppRole
from models.models import BlacklistedToken, Profile, User, UserRole
from models.utils import utcnow


class AuthRepo:
    def __init__(self, db):
        self.db = db

    async def by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def create_account(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        role: AppRole,
    ) -> User:
        user = User(email=email)
        user.normalize()
        user.set_password(password)
        self.db.add(user)
        try:
            await self.db.flush()
            self.db.add(Profile(user_id=user.id, full_name=full_name))
            self.db.add(UserRole(user_id=user.id, role=role))
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def save(self, user: User) -> User:
        self.db.add(user)
        try:
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def touch_sign_in(self, user: User) -> User:
        user.last_sign_in_at = utcnow()
        return await self.save(user)

    async def blacklist_token(self, token: str):
        if await self.is_token_blacklisted(token):
            return
        self.db.add(BlacklistedToken(token=token))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def is_token_blacklisted(self, token: str) -> bool:
        result = await self.db.execute(
            select(BlacklistedToken.id).where(BlacklistedToken.token == token)
        )
        return result.scalar_one_or_none() is not None

    async def delete_expired_blacklisted_tokens(self, cutoff: datetime):
        try:
            await self.db.execute(
                delete(BlacklistedToken).where(BlacklistedToken.blacklisted_on < cutoff)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
