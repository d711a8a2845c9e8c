"""Pagination helpers for list endpoints."""


from fastapi import Query
from pydantic import BaseModel


class PaginationParams:
    """FastAPI dependency for `?page=1&limit=20&sort=created_at&order=desc`.

    Services accept it directly, so non-HTTP callers build one with
    ``PaginationParams.of(page=2)``.
    """

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Página (desde 1)"),
        limit: int = Query(default=20, ge=1, le=200, description="Elementos por página"),
        sort: str = Query(default="created_at", description="Campo de orden"),
        order: str = Query(default="desc", pattern="^(asc|desc)$", description="asc | desc"),
    ):
        self.page = page
        self.limit = limit
        self.sort = sort
        self.order = order

    @classmethod
    def of(cls, page: int = 1, limit: int = 20, sort: str = "created_at", order: str = "desc") -> "PaginationParams":
        return cls(page=page, limit=limit, sort=sort, order=order)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    model_config = {"populate_by_name": True}
