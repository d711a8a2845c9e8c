"""Sign-in, refresh-token rotation and logout.

Refresh tokens are stored as an HMAC digest only. Every refresh revokes the
presented token and links it to its replacement, so a replayed token is
always rejected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.config import settings
from subago.core.exceptions import (
    CredentialsParseError,
    InvalidCredentialsError,
    MemberNotActiveError,
    MemberNotFoundError,
    UnauthorizedError,
)
from subago.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_refresh_token,
    verify_password,
)
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.repositories.user import RefreshTokenRepository, UserRepository
from subago.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)

SESSION_EXPIRED = "Al parecer caducó tu sesión"


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User


def is_tenant_blocked(user: User) -> bool:
    """ADMINs are never locked out by their tenant."""
    return user.role != UserRole.ADMIN and user.tenant is not None and bool(user.tenant.is_blocked)


class AuthService:
    def __init__(self, session: AsyncSession):
        self._users = UserRepository(session)
        self._tokens = RefreshTokenRepository(session)

    async def login(self, email: str, password: str) -> IssuedTokens:
        if not email or not password:
            raise CredentialsParseError()
        try:
            _email_adapter.validate_python(email)
        except PydanticValidationError:
            raise CredentialsParseError()

        user = await self._users.get_by_email_with_company_and_tenant(email)
        if user is None:
            if await self._users.is_deleted_email(email):
                raise MemberNotActiveError()
            raise MemberNotFoundError()
        if is_tenant_blocked(user):
            logger.warning("Blocked tenant sign-in denied for %s", user.email)
            raise MemberNotActiveError("Tenant bloqueado")
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        logger.info("User %s signed in", user.email)
        return await self._issue(user)

    async def refresh(self, refresh_token: str) -> IssuedTokens:
        if not refresh_token:
            raise UnauthorizedError(SESSION_EXPIRED)
        try:
            payload = decode_refresh_token(refresh_token)
        except UnauthorizedError:
            logger.warning("Invalid refresh token signature")
            raise UnauthorizedError(SESSION_EXPIRED)

        now = utc_now()
        record = await self._tokens.get_by_hash(hash_refresh_token(refresh_token))
        if record is None or record.user_id != payload.get("sub"):
            logger.warning("Refresh token not found")
            raise UnauthorizedError(SESSION_EXPIRED)
        if record.revoked_at is not None:
            logger.warning("Refresh token %s already revoked", record.id)
            raise UnauthorizedError(SESSION_EXPIRED)
        if as_utc(record.expires_at) <= now:
            logger.warning("Refresh token %s expired", record.id)
            raise UnauthorizedError(SESSION_EXPIRED)

        user = await self._users.get_with_company_and_tenant(record.user_id)
        if user is None:
            raise UnauthorizedError(SESSION_EXPIRED)
        if is_tenant_blocked(user):
            logger.warning("Blocked tenant refresh denied for %s", user.email)
            raise UnauthorizedError("Tenant bloqueado")

        # Concurrent refreshes with one token race here; only one revokes it
        if not await self._tokens.revoke(record.id, now):
            logger.warning("Refresh token %s already used", record.id)
            raise UnauthorizedError(SESSION_EXPIRED)

        issued = await self._issue(user, now)
        replacement = await self._tokens.get_by_hash(hash_refresh_token(issued.refresh_token))
        await self._tokens.update(record.id, replaced_by_id=replacement.id)
        return issued

    async def logout(self, refresh_token: str) -> None:
        """Revoke the given refresh token. Unknown tokens are ignored."""
        record = await self._tokens.get_by_hash(hash_refresh_token(refresh_token))
        if record is not None and record.revoked_at is None:
            await self._tokens.revoke(record.id, utc_now())

    async def _issue(self, user: User, now: datetime | None = None) -> IssuedTokens:
        now = now or utc_now()
        access = create_access_token(
            user.id, user.email, user.role.value, user.tenant_id, user.company_id, now=now
        )
        refresh, expires_at = create_refresh_token(user.id, now=now)
        await self._tokens.create(
            user_id=user.id, token_hash=hash_refresh_token(refresh), expires_at=expires_at
        )
        return IssuedTokens(
            access_token=access,
            refresh_token=refresh,
            expires_in=int(settings.access_token_ttl.total_seconds()),
            user=user,
        )
