"""Observation, Feedback and AuditLog repositories."""

from typing import Any

from subago.domain.audit import AuditLog
from subago.domain.enums import AuditAction
from subago.domain.observation import Feedback, Observation
from subago.repositories.base import BaseRepository


class ObservationRepository(BaseRepository[Observation]):
    model = Observation


class FeedbackRepository(BaseRepository[Feedback]):
    model = Feedback


class AuditLogRepository(BaseRepository[AuditLog]):
    """Append-only. AuditLog has no deleted_at, so soft_delete is never used."""

    model = AuditLog

    async def record(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: str | None,
        *,
        user_id: str | None = None,
        changes: Any = None,
        description: str | None = None,
    ) -> AuditLog:
        return await self.create(
            tenant_id=self._tenant_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            changes=changes,
            description=description,
        )
