from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.enums import SortOrder
from schemas.schema import SearchResultOut
from services.search_service import SearchService

router = APIRouter(tags=["Search"])


@cbv(router)
class SearchRoutes:
    @router.get("/search", response_model=SearchResultOut, dependencies=[rate_limit])
    @safe_handler
    async def search(
        self,
        db: AsyncSession = Depends(get_db_async),
        city: Optional[str] = None,
        room_type: Optional[str] = None,
        q: Optional[str] = None,
        sort: SortOrder = SortOrder.NEWEST,
        page: Optional[int] = Query(None, ge=1),
        per_page: Optional[int] = Query(None, ge=1, le=100),
    ):
        return await SearchService(db).search(
            city=city,
            room_type=room_type,
            q=q,
            sort=sort,
            page=page,
            per_page=per_page,
        )
