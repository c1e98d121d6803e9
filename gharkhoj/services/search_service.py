from typing import Optional

from fastapi import HTTPException

from core.breaker import breaker
from core.mapper import ORMMapper
from core.paginate import PaginatePage
from models.enums import RoomType, SortOrder
from models.utils import contains_ci
from repos.property_repo import PropertyRepo
from schemas.schema import PropertyCardOut, SearchResultOut

ALL_ROOM_TYPES = "all"


def parse_room_type(value: Optional[str]) -> Optional[RoomType]:
    if value is None or value == "" or value == ALL_ROOM_TYPES:
        return None
    try:
        return RoomType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown room type '{value}'")


def matches_text(prop, q: str) -> bool:
    return (
        contains_ci(prop.title, q)
        or contains_ci(prop.city, q)
        or contains_ci(prop.area, q)
    )


class SearchService:
    def __init__(self, db):
        self.repo: PropertyRepo = PropertyRepo(db)
        self.paginate: PaginatePage = PaginatePage()
        self.mapper: ORMMapper = ORMMapper()

    async def search(
        self,
        *,
        city: Optional[str] = None,
        room_type: Optional[str] = None,
        q: Optional[str] = None,
        sort: SortOrder = SortOrder.NEWEST,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> SearchResultOut:
        async def handler():
            props = await self.repo.search(
                city=city.strip() if city and city.strip() else None,
                room_type=parse_room_type(room_type),
                sort=sort,
            )
            text = (q or "").strip()
            if text:
                props = [p for p in props if matches_text(p, text)]

            items = self.paginate.paginate(props, page, per_page)
            return SearchResultOut(
                items=self.mapper.many(items, PropertyCardOut),
                **self.paginate.meta(len(props), page, per_page),
            )

        return await breaker.call(handler)
