# storefront/schemas/response_schemas.py
import math
from pydantic import BaseModel, ConfigDict, Field
from typing import Generic, TypeVar, Optional, List

T = TypeVar("T")

class ResponseMessage(BaseModel, Generic[T]):
    message: str
    data: Optional[T] = None


class MessageResponse(BaseModel):
    message: str


class PaginatedList(BaseModel, Generic[T]):
    """One list contract for every paginated endpoint."""
    items: List[T]
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")
    total_items: int = Field(alias="totalItems")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def build(cls, items: list, page: int, limit: int, total_items: int) -> "PaginatedList":
        total_pages = math.ceil(total_items / limit) if limit else 0
        return cls(
            items=items,
            page=page,
            limit=limit,
            total_pages=total_pages,
            total_items=total_items,
        )
