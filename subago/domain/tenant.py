"""SQLAlchemy ORM models for Tenants and Companies.

A tenant is the top-level organisational unit, addressed by its own
(sub)domain. Companies live under a tenant and group its users.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subago.db.base import Base
from subago.domain.mixins import TenantMixin, TimestampMixin, new_uuid


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    domain: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    # Blocked tenants are denied access (except for ADMIN users)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    companies: Mapped[List["Company"]] = relationship(back_populates="tenant", lazy="noload")


class Company(Base, TenantMixin, TimestampMixin):
    __tablename__ = "companies"
    __table_args__ = (UniqueConstraint("tenant_id", "name_lowercase"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_lowercase: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    logo: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    principal_color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    principal_color2: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    secondary_color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    secondary_color2: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    secondary_color3: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    tenant: Mapped["Tenant"] = relationship(back_populates="companies", lazy="noload")
