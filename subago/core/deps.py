"""Request dependencies: the authenticated user, their tenant, and role guards."""

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.exceptions import ForbiddenError, UnauthorizedError
from subago.core.security import decode_access_token
from subago.db.base import get_db
from subago.domain.enums import UserRole
from subago.domain.user import User
from subago.repositories.user import UserRepository

# auto_error=False so a missing header goes through our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


async def load_user_from_token(session: AsyncSession, token: str) -> User:
    """Decode an access token and load its (live, unblocked) user. Shared with the WebSocket gateway."""
    payload = decode_access_token(token)
    user = await UserRepository(session).get_with_company_and_tenant(payload.get("sub", ""))
    if user is None:
        raise UnauthorizedError("Usuario no encontrado o eliminado")
    if user.role != UserRole.ADMIN and user.tenant is not None and user.tenant.is_blocked:
        raise ForbiddenError("Tenant bloqueado")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return await load_user_from_token(session, credentials.credentials)


async def get_tenant_id(user: User = Depends(get_current_user)) -> str:
    """Tenant every scoped query runs under."""
    if not user.tenant_id:
        raise ForbiddenError("El usuario no tiene un tenant asignado")
    return user.tenant_id


def require_roles(*roles: UserRole) -> Callable[..., Coroutine[Any, Any, User]]:
    """Dependency factory: `user = Depends(require_roles(UserRole.ADMIN))`."""

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ForbiddenError("No tienes permisos para realizar esta acción")
        return user

    return _guard


# Common guards
require_manager = require_roles(UserRole.ADMIN, UserRole.AUCTION_MANAGER)
require_admin = require_roles(UserRole.ADMIN)
