from typing import Iterable, Optional, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class ORMMapper:
    @staticmethod
    def one(item, schema: Type[T]) -> T:
        return schema.model_validate(item)

    @staticmethod
    def one_or_none(item, schema: Type[T]) -> Optional[T]:
        return schema.model_validate(item) if item is not None else None

    @staticmethod
    def many(items: Iterable, schema: Type[T]) -> list[T]:
        return [schema.model_validate(item) for item in items]
