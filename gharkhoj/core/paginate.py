from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


class PaginatePage:
    def paginate(
        self, items: Sequence[T], page: Optional[int], per_page: Optional[int]
    ) -> list[T]:
        # No page requested means the full list, which is what listing pages expect.
        if page is None:
            return list(items)
        per_page = per_page or 20
        start = (page - 1) * per_page
        return list(items[start : start + per_page])

    def meta(self, total: int, page: Optional[int], per_page: Optional[int]) -> dict:
        if page is None:
            return {"total": total, "page": None, "per_page": None}
        return {"total": total, "page": page, "per_page": per_page or 20}
