"""SQLAlchemy ORM model for Items (vehicles offered in auctions)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subago.db.base import Base
from subago.domain.enums import ItemState, LegalStatus
from subago.domain.mixins import TenantMixin, TimestampMixin, enum_type, new_uuid
from subago.domain.user import User


class Item(Base, TenantMixin, TimestampMixin):
    __tablename__ = "items"
    __table_args__ = (UniqueConstraint("tenant_id", "plate"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    plate: Mapped[str] = mapped_column(String(6), nullable=False, index=True)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    photos: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)  # list of URLs
    docs: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    kilometraje: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    legal_status: Mapped[Optional[LegalStatus]] = mapped_column(
        enum_type(LegalStatus), nullable=True
    )
    state: Mapped[ItemState] = mapped_column(
        enum_type(ItemState), default=ItemState.DISPONIBLE, nullable=False, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    base_price: Mapped[Optional[float]] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=True
    )
    sold_price: Mapped[Optional[float]] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=True
    )
    sold_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_to_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True, index=True
    )

    sold_to_user: Mapped[Optional["User"]] = relationship(lazy="noload")
