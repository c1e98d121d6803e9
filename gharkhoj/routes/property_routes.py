import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user, get_session_context
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.session_context import SessionContext
from core.throttling import rate_limit
from models.models import User
from schemas.schema import (
    LandlordDashboardOut,
    PropertyCreate,
    PropertyOut,
    PropertyUpdate,
    SiteStatsOut,
    VacancyUpdate,
)
from services.property_service import PropertyService

router = APIRouter(tags=["Property Management"])


@cbv(router=router)
class PropertyRoutes:
    @router.post("/", status_code=201, dependencies=[rate_limit])
    @safe_handler
    async def create(
        self,
        data: PropertyCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyService(db).create_property(
            data=data, current_user=current_user
        )

    @router.get(
        "/mine", response_model=LandlordDashboardOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def dashboard(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyService(db).landlord_dashboard(current_user)

    @router.get("/stats", response_model=SiteStatsOut, dependencies=[rate_limit])
    @safe_handler
    async def site_stats(self, db: AsyncSession = Depends(get_db_async)):
        return await PropertyService(db).site_stats()

    @router.get(
        "/{property_id}", response_model=PropertyOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def get_property(
        self,
        property_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        context: SessionContext = Depends(get_session_context),
    ):
        return await PropertyService(db).get_property(property_id, context)

    @router.patch(
        "/{property_id}", response_model=PropertyOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def update(
        self,
        property_id: uuid.UUID,
        data: PropertyUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyService(db).update_property(
            property_id=property_id, current_user=current_user, data=data
        )

    @router.patch(
        "/{property_id}/vacancy", response_model=PropertyOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def set_vacancy(
        self,
        property_id: uuid.UUID,
        data: VacancyUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyService(db).set_vacancy(
            property_id, current_user, data.is_vacant
        )

    @router.delete("/{property_id}", dependencies=[rate_limit])
    @safe_handler
    async def delete_property(
        self,
        property_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: User = Depends(get_current_user),
    ):
        return await PropertyService(db).delete_property(
            property_id=property_id, current_user=current_user
        )
