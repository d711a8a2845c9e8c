"""Audit logging middleware: records every state-changing request to audit_logs."""


import asyncio
import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from subago.core.config import settings
from subago.core.exceptions import AppException
from subago.core.security import decode_access_token
from subago.db.base import session_scope
from subago.domain.enums import AuditAction
from subago.repositories.observation import AuditLogRepository

logger = logging.getLogger(__name__)

# Methods that mutate state
_WRITE_ACTIONS = {
    "POST": AuditAction.CREATE,
    "PUT": AuditAction.UPDATE,
    "PATCH": AuditAction.UPDATE,
    "DELETE": AuditAction.DELETE,
}

_UUID_LENGTH = 36


def _actor(request: Request) -> tuple[str | None, str | None]:
    """(user_id, tenant_id) from the bearer token, if there is a valid one."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None, None
    try:
        payload = decode_access_token(token)
    except AppException:
        return None, None
    return payload.get("sub"), payload.get("tenantId")


def _entity(path: str) -> tuple[str, str | None]:
    """Infer the entity from the path, e.g. /api/v1/items/<uuid> -> ("item", "<uuid>")."""
    parts = [p for p in path.strip("/").split("/") if p]
    ids = [p for p in parts if len(p) == _UUID_LENGTH]
    names = [p for p in parts if len(p) != _UUID_LENGTH and p not in ("api", "v1")]
    entity_type = names[0] if names else "unknown"
    return entity_type.rstrip("s") or "unknown", ids[0] if ids else None


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs all write operations.

    Each audit row is written asynchronously AFTER the response is sent so it
    never adds latency to the request. Failures in audit logging are logged,
    never raised to the caller.
    """

    def __init__(self, app, session_factory=session_scope):
        super().__init__(app)
        self._session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000)

        action = _WRITE_ACTIONS.get(request.method)
        if settings.audit_enabled and action is not None:
            # Fire-and-forget: don't await here so the response is not delayed
            task = asyncio.create_task(self._record(request, action, response.status_code, duration_ms))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return response

    async def _record(
        self, request: Request, action: AuditAction, status_code: int, duration_ms: int
    ) -> None:
        """Persist an audit row. Errors are logged and dropped."""
        try:
            user_id, tenant_id = _actor(request)
            entity_type, entity_id = _entity(request.url.path)

            async with self._session_factory() as session:
                row = await AuditLogRepository(session, tenant_id).record(
                    action,
                    entity_type,
                    entity_id,
                    user_id=user_id,
                    description=f"{request.method} {request.url.path} -> {status_code} ({duration_ms}ms)",
                )
                row.ip_address = request.client.host if request.client else None
                row.user_agent = (request.headers.get("user-agent") or "")[:512] or None
        except Exception:
            logger.exception("[AuditMiddleware] failed to record %s %s", request.method, request.url.path)
