"""Generic async repository with soft-delete, pagination, and tenant isolation."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from subago.db.base import Base
from subago.utils.time import utc_now

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic CRUD repository.

    When constructed with a ``tenant_id`` every query on a tenant-scoped model
    is filtered by it. ``tenant_id=None`` is reserved for cross-tenant lookups
    (login by e-mail, tenant registry, scheduler sweeps).

    Soft-deletes: rows with `deleted_at IS NOT NULL` are excluded from all
    standard reads. Hard-delete is intentionally never exposed.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession, tenant_id: str | None = None):
        self._session = session
        self._tenant_id = tenant_id

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def _scoped(self) -> bool:
        return self._tenant_id is not None and hasattr(self.model, "tenant_id")

    def _base_query(self):
        """Return a SELECT filtered by tenant and excluding soft-deleted rows."""
        q = select(self.model)
        if self._scoped:
            q = q.where(self.model.tenant_id == self._tenant_id)
        if hasattr(self.model, "deleted_at"):
            q = q.where(self.model.deleted_at.is_(None))
        return q

    async def _fetch(self, q, *options: Any):
        """Flush pending changes, then execute `q`.

        Eager-load options also refresh rows already in the identity map.
        """
        await self._session.flush()
        if options:
            q = q.options(*options).execution_options(populate_existing=True)
        return await self._session.execute(q)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: str, *options: Any) -> ModelT | None:
        result = await self._fetch(self._base_query().where(self.model.id == entity_id), *options)
        return result.scalars().first()

    async def find_one(self, **filters: Any) -> ModelT | None:
        q = self._base_query()
        for col_name, value in filters.items():
            q = q.where(getattr(self.model, col_name) == value)
        result = await self._fetch(q.limit(1))
        return result.scalars().first()

    async def list(
        self,
        *,
        offset: int = 0,
        limit: int = 20,
        order_by: str = "created_at",
        order: str = "desc",
        filters: dict[str, Any] | None = None,
        options: tuple = (),
    ) -> tuple[list[ModelT], int]:
        """Return (items, total_count) with pagination and optional column filters."""
        q = self._base_query()

        # Apply simple equality filters
        if filters:
            for col_name, value in filters.items():
                if value is not None and hasattr(self.model, col_name):
                    q = q.where(getattr(self.model, col_name) == value)

        # Count
        count_q = select(func.count()).select_from(q.subquery())
        total = (await self._fetch(count_q)).scalar_one()

        # Order + paginate
        col = getattr(self.model, order_by, None)
        if col is not None:
            q = q.order_by(col.desc() if order == "desc" else col.asc())
        q = q.offset(offset).limit(limit)

        items = (await self._fetch(q, *options)).scalars().all()
        return list(items), total

    async def count(self, **filters: Any) -> int:
        q = self._base_query()
        for col_name, value in filters.items():
            q = q.where(getattr(self.model, col_name) == value)
        return (await self._fetch(select(func.count()).select_from(q.subquery()))).scalar_one()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, **kwargs: Any) -> ModelT:
        if self._scoped:
            kwargs.setdefault("tenant_id", self._tenant_id)
        instance = self.model(**kwargs)
        self._session.add(instance)
        await self._session.flush()  # populate id
        await self._session.refresh(instance)
        return instance

    async def update(self, entity_id: str, **kwargs: Any) -> ModelT | None:
        kwargs.pop("id", None)
        kwargs.pop("tenant_id", None)
        if "updated_at" not in kwargs and hasattr(self.model, "updated_at"):
            kwargs["updated_at"] = utc_now()

        stmt = update(self.model).where(self.model.id == entity_id).values(**kwargs)
        if self._scoped:
            stmt = stmt.where(self.model.tenant_id == self._tenant_id)
        await self._session.execute(stmt.execution_options(synchronize_session="fetch"))
        await self._session.flush()
        return await self.get_by_id(entity_id)

    async def soft_delete(self, entity_id: str) -> bool:
        now = utc_now()
        stmt = (
            update(self.model)
            .where(self.model.id == entity_id)
            .where(self.model.deleted_at.is_(None))
            .values(deleted_at=now, is_deleted=True, updated_at=now)
        )
        if self._scoped:
            stmt = stmt.where(self.model.tenant_id == self._tenant_id)
        result = await self._session.execute(stmt.execution_options(synchronize_session="fetch"))
        await self._session.flush()
        return result.rowcount > 0
