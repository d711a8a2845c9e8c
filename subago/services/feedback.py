"""User feedback inbox. Users file entries; managers triage them."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.exceptions import NotFoundError
from subago.core.pagination import PaginationParams
from subago.domain.enums import FeedbackStatus
from subago.domain.observation import Feedback
from subago.repositories.observation import FeedbackRepository
from subago.schemas.feedback import FeedbackCreate, FeedbackUpdate

logger = logging.getLogger(__name__)


class FeedbackService:
    def __init__(self, session: AsyncSession, tenant_id: str):
        self._repo = FeedbackRepository(session, tenant_id)

    async def create_feedback(self, data: FeedbackCreate, user_id: str) -> Feedback:
        feedback = await self._repo.create(
            user_id=user_id, status=FeedbackStatus.PENDING, **data.model_dump()
        )
        logger.info("Feedback %s filed by %s (%s)", feedback.id, user_id, feedback.category)
        return feedback

    async def list_feedback(
        self,
        pagination: PaginationParams,
        status: FeedbackStatus | None = None,
        category: str | None = None,
        user_id: str | None = None,
    ):
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"status": status, "category": category, "user_id": user_id},
        )

    async def update_feedback(self, feedback_id: str, data: FeedbackUpdate) -> Feedback:
        if not await self._repo.get_by_id(feedback_id):
            raise NotFoundError("Feedback", feedback_id)
        updated = await self._repo.update(
            feedback_id, **data.model_dump(exclude_none=True, exclude_unset=True)
        )
        return updated  # type: ignore[return-value]
