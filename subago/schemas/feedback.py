"""Feedback schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from subago.domain.enums import FEEDBACK_CATEGORIES, FeedbackStatus
from subago.schemas.common import CamelModel, StrictModel


def _check_category(value: str) -> str:
    if value not in FEEDBACK_CATEGORIES:
        raise ValueError(f"Categoría inválida. Opciones: {', '.join(FEEDBACK_CATEGORIES)}")
    return value


class FeedbackCreate(StrictModel):
    # status, userId and tenantId are set server-side
    category: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)

    @field_validator("category")
    @classmethod
    def _known_category(cls, v: str) -> str:
        return _check_category(v)


class FeedbackUpdate(StrictModel):
    category: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    message: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    status: Optional[FeedbackStatus] = None

    @field_validator("category")
    @classmethod
    def _known_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v) if v is not None else v


class FeedbackOut(CamelModel):
    id: str
    tenant_id: str
    user_id: str
    category: str
    title: str
    message: str
    status: FeedbackStatus
    created_at: datetime
    updated_at: datetime
