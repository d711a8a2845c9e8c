"""User and refresh-token repositories."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from subago.domain.user import RefreshToken, User
from subago.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def get_by_email(self, email: str) -> User | None:
        return await self.find_one(email=email.lower())

    async def get_by_rut(self, rut: str) -> User | None:
        return await self.find_one(rut=rut)

    async def get_with_company_and_tenant(self, user_id: str) -> User | None:
        return await self.get_by_id(user_id, selectinload(User.company), selectinload(User.tenant))

    async def get_by_email_with_company_and_tenant(self, email: str) -> User | None:
        result = await self._fetch(
            self._base_query().where(User.email == email.lower()),
            selectinload(User.company),
            selectinload(User.tenant),
        )
        return result.scalars().first()

    async def is_deleted_email(self, email: str) -> bool:
        """True when `email` belongs to a soft-deleted account."""
        result = await self._fetch(
            select(User.id).where(User.email == email.lower()).where(User.deleted_at.is_not(None)).limit(1)
        )
        return result.first() is not None


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    model = RefreshToken

    async def get_by_hash(self, token_hash: str) -> RefreshToken | None:
        return await self.find_one(token_hash=token_hash)

    async def revoke(self, token_id: str, at: datetime) -> bool:
        """Revoke a live token. False when another request revoked it first."""
        result = await self._session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id)
            .where(RefreshToken.revoked_at.is_(None))
            .values(revoked_at=at)
            .execution_options(synchronize_session="fetch")
        )
        await self._session.flush()
        return result.rowcount == 1
