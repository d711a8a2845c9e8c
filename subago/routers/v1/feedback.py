"""Feedback router.

Pattern:
  1. Any member of a tenant files feedback
  2. USER members only ever see their own entries
  3. Managers see the whole tenant inbox and move entries through PENDING -> REVIEWED/RESOLVED
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user, get_tenant_id, require_manager
from subago.core.pagination import PaginationParams
from subago.core.response import DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.enums import FeedbackStatus, UserRole
from subago.domain.user import User
from subago.schemas.feedback import FeedbackCreate, FeedbackOut, FeedbackUpdate
from subago.services.feedback import FeedbackService

router = APIRouter(prefix="/feedback", tags=["Feedback"])


def _svc(session: AsyncSession, tenant_id: str) -> FeedbackService:
    return FeedbackService(session, tenant_id)


@router.post("", response_model=DataResponse[FeedbackOut], status_code=status.HTTP_201_CREATED)
async def create_feedback(
    body: FeedbackCreate,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id),
):
    feedback = await _svc(session, tenant_id).create_feedback(body, user_id=user.id)
    return {"data": FeedbackOut.model_validate(feedback)}


@router.get("", response_model=ListResponse[FeedbackOut])
async def list_feedback(
    feedback_status: Optional[FeedbackStatus] = Query(default=None, alias="status"),
    category: Optional[str] = Query(default=None),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id),
):
    own_only = user.id if user.role == UserRole.USER else None
    entries, total = await _svc(session, tenant_id).list_feedback(
        pagination, status=feedback_status, category=category, user_id=own_only
    )
    return paginated(
        [FeedbackOut.model_validate(f) for f in entries],
        total, pagination.page, pagination.limit,
    )


@router.patch("/{feedback_id}", response_model=DataResponse[FeedbackOut])
async def update_feedback(
    feedback_id: str,
    body: FeedbackUpdate,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    feedback = await _svc(session, tenant_id).update_feedback(feedback_id, body)
    return {"data": FeedbackOut.model_validate(feedback)}
