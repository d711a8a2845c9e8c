"""Tenant and Company schemas."""

from typing import Optional

from pydantic import Field

from subago.schemas.common import CamelModel, StrictEntity, StrictModel
from subago.schemas.validators import Name

_SUBDOMAIN_PATTERN = r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$"


class TenantSchema(StrictEntity):
    name: Name
    domain: str
    is_blocked: Optional[bool] = None


class TenantCreate(StrictModel):
    name: Name
    subdomain: str = Field(pattern=_SUBDOMAIN_PATTERN, max_length=63)


class TenantBlockUpdate(StrictModel):
    is_blocked: bool


class CompanySchema(StrictEntity):
    name: Name
    tenant_id: Optional[str] = None
    logo: Optional[str] = None
    principal_color: Optional[str] = None
    principal_color2: Optional[str] = None
    secondary_color: Optional[str] = None
    secondary_color2: Optional[str] = None
    secondary_color3: Optional[str] = None


class CompanyCreate(StrictModel):
    name: Name
    tenant_id: str
    logo: Optional[str] = None
    principal_color: Optional[str] = None
    principal_color2: Optional[str] = None
    secondary_color: Optional[str] = None
    secondary_color2: Optional[str] = None
    secondary_color3: Optional[str] = None


class CompanyUpdate(StrictModel):
    name: Optional[Name] = None
    logo: Optional[str] = None
    principal_color: Optional[str] = None
    principal_color2: Optional[str] = None
    secondary_color: Optional[str] = None
    secondary_color2: Optional[str] = None
    secondary_color3: Optional[str] = None


class TenantDomain(CamelModel):
    domain: str
