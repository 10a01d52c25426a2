from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Backend payloads are camelCase, attributes stay snake_case"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int = 1
    limit: int = 20
    total: int = 0
    pages: int = 0


class PaginatedResponse(CamelModel, Generic[T]):
    data: List[T]
    pagination: Pagination

    @property
    def total(self) -> int:
        return max(self.pagination.total, len(self.data))
