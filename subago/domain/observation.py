"""SQLAlchemy ORM models for Observations and user Feedback."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from subago.db.base import Base
from subago.domain.enums import FeedbackStatus
from subago.domain.mixins import TenantMixin, TimestampMixin, enum_type, new_uuid


class Observation(Base, TenantMixin, TimestampMixin):
    __tablename__ = "observations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("items.id"), nullable=True, index=True
    )


class Feedback(Base, TenantMixin, TimestampMixin):
    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[FeedbackStatus] = mapped_column(
        enum_type(FeedbackStatus), default=FeedbackStatus.PENDING, nullable=False, index=True
    )
