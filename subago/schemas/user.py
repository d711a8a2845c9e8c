"""User, authentication and sign-up schemas."""

from typing import Any, Optional

from pydantic import model_validator

from subago.domain.enums import UserRole
from subago.schemas.common import CamelModel, StrictModel
from subago.schemas.tenant import CompanySchema, TenantCreate, TenantSchema
from subago.schemas.validators import Email, Name, Password, Phone, Rut


class UserCreate(StrictModel):
    """Self sign-up. Tenant and company are assigned by the server, never by the caller."""

    name: Name
    email: Email
    password: Password
    confirm_password: str
    phone: Optional[Phone] = None
    rut: Optional[Rut] = None
    public_name: Optional[Name] = None
    role: Optional[UserRole] = UserRole.AUCTION_MANAGER

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Las contraseñas no coinciden")
        return self


class UserCreateInTenant(UserCreate):
    """Account created by a signed-in manager or ADMIN; only ADMIN may pick the tenant."""

    tenant_id: Optional[str] = None
    company_id: Optional[str] = None


class UserSafe(CamelModel):
    """User as exposed over the API; never carries the password."""

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    rut: Optional[str] = None
    public_name: Optional[str] = None
    role: UserRole
    tenant_id: Optional[str] = None
    company_id: Optional[str] = None


class UserBasicInfo(CamelModel):
    id: str
    name: str
    email: str
    public_name: Optional[str] = None


class UserSafeWithCompanyAndTenant(UserSafe):
    company: Optional[CompanySchema] = None
    tenant: Optional[TenantSchema] = None


class UserUpdateProfile(StrictModel):
    name: Optional[Name] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    rut: Optional[Rut] = None
    public_name: Optional[Name] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        # Clearing a field from the profile form sends ""
        if isinstance(data, dict):
            return {k: (None if v == "" else v) for k, v in data.items()}
        return data


class ConnectUserRequest(StrictModel):
    user_id: str
    tenant_id: str
    company_id: str


class CompanyDomainRequest(StrictModel):
    email: Email


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class LoginRequest(CamelModel):
    email: str
    password: str


class RefreshRequest(CamelModel):
    refresh_token: str


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserSafe


# ---------------------------------------------------------------------------
# Multi-step sign-up (tenant + company + user in one go)
# ---------------------------------------------------------------------------

class CompanyData(StrictModel):
    name: Name
    logo: Optional[str] = None
    principal_color: Optional[str] = None
    principal_color2: Optional[str] = None
    secondary_color: Optional[str] = None
    secondary_color2: Optional[str] = None
    secondary_color3: Optional[str] = None


class MultiStepFormCreate(StrictModel):
    user_data: UserCreate
    company_data: CompanyData
    tenant_data: TenantCreate


class MultiStepFormResult(CamelModel):
    user: UserSafe
    company: CompanySchema
    tenant: TenantSchema
