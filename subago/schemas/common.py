"""Shared Pydantic schema bases with camelCase aliases."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """All API schemas inherit from this to auto-generate camelCase aliases."""

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "from_attributes": True,
    }


class StrictModel(CamelModel):
    """CamelModel that rejects unknown fields."""

    model_config = {
        **CamelModel.model_config,
        "extra": "forbid",
    }


class BaseFields(CamelModel):
    """Columns every entity carries."""

    id: UUID
    is_deleted: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class StrictEntity(BaseFields):
    """Full entity shape that rejects unknown fields."""

    model_config = {**StrictModel.model_config}


class HealthResponse(BaseModel):
    """Health-check response returned by /health."""
    status: str = "ok"
    app: str
    env: str


class RpcEnvelope(BaseModel):
    """`{ success, data | error, statusCode }` returned by every RPC procedure."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    status_code: int

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }
