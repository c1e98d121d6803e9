import uuid
from typing import List

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import InquiryCreate, InquiryOut
from services.inquiry_service import InquiryService

router = APIRouter(tags=["Inquiries"])


@cbv(router)
class InquiryRoutes:
    @router.post(
        "/", response_model=InquiryOut, status_code=201, dependencies=[rate_limit]
    )
    @safe_handler
    async def create(
        self,
        data: InquiryCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await InquiryService(db).create(data, current_user)

    @router.get("/mine", response_model=List[InquiryOut], dependencies=[rate_limit])
    @safe_handler
    async def mine(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await InquiryService(db).list_mine(current_user)

    @router.get(
        "/received", response_model=List[InquiryOut], dependencies=[rate_limit]
    )
    @safe_handler
    async def received(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await InquiryService(db).list_received(current_user)

    @router.patch(
        "/{inquiry_id}/close", response_model=InquiryOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def close(
        self,
        inquiry_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await InquiryService(db).close(inquiry_id, current_user)

    @router.delete("/{inquiry_id}", dependencies=[rate_limit])
    @safe_handler
    async def delete(
        self,
        inquiry_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await InquiryService(db).delete(inquiry_id, current_user)
