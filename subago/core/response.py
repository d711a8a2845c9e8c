"""JSON response envelopes shared by every v1 router."""


import math
from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from subago.core.pagination import PageMeta

T = TypeVar("T")

_ENVELOPE_CONFIG = {
    "populate_by_name": True,
    "alias_generator": to_camel,
}


class DataResponse(BaseModel, Generic[T]):
    """`{ data: {...} }`"""

    data: T

    model_config = _ENVELOPE_CONFIG


class ListResponse(BaseModel, Generic[T]):
    """Paginated: `{ data: [...], meta: {total, page, limit, pages} }`"""

    data: list[T]
    meta: PageMeta

    model_config = _ENVELOPE_CONFIG


class CollectionResponse(BaseModel, Generic[T]):
    """Unpaginated: `{ data: [...] }` (bid history, participants...)."""

    data: list[T]

    model_config = _ENVELOPE_CONFIG


class MessageResponse(BaseModel):
    message: str


def paginated(items: list, total: int, page: int, limit: int) -> dict:
    """Build the ListResponse body."""
    return {
        "data": items,
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 1,
        },
    }
