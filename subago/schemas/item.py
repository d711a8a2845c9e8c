"""Item (vehicle) and Observation schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from subago.domain.enums import ItemState, LegalStatus
from subago.schemas.common import CamelModel, StrictEntity, StrictModel
from subago.schemas.user import UserBasicInfo
from subago.schemas.validators import Name
from subago.utils.time import utc_now

_PLATE_MSG = "La patente debe tener exactamente 6 caracteres"


def _check_plate(value: str) -> str:
    if len(value) != 6:
        raise ValueError(_PLATE_MSG)
    return value.upper()


def _max_year() -> int:
    return utc_now().year + 1


class ItemSchema(StrictEntity):
    plate: str
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1900, le=3000)
    version: Optional[str] = None
    photos: Optional[list[str]] = None
    docs: Optional[list[str]] = None
    kilometraje: Optional[int] = None
    legal_status: Optional[LegalStatus] = None
    state: ItemState = ItemState.DISPONIBLE
    description: Optional[str] = None
    base_price: Optional[float] = None
    sold_price: Optional[float] = None
    sold_at: Optional[datetime] = None
    sold_to_user_id: Optional[str] = None
    tenant_id: str

    @field_validator("plate")
    @classmethod
    def _plate_length(cls, v: str) -> str:
        return _check_plate(v)


class ItemWithSoldToUser(ItemSchema):
    sold_to_user: Optional[UserBasicInfo] = None


class ItemCreate(StrictModel):
    plate: str
    brand: str = Field(min_length=2)
    model: Optional[str] = None
    year: Optional[int] = None
    version: Optional[str] = None
    kilometraje: Optional[int] = Field(default=None, ge=0)
    legal_status: LegalStatus
    base_price: float = Field(ge=1)
    description: Optional[str] = None
    photos: Optional[list[str]] = None
    docs: Optional[list[str]] = None

    @field_validator("plate")
    @classmethod
    def _plate_length(cls, v: str) -> str:
        return _check_plate(v)

    @field_validator("year")
    @classmethod
    def _year_range(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1900 <= v <= _max_year():
            raise ValueError("Año inválido")
        return v


class ItemEdit(StrictModel):
    plate: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    version: Optional[str] = None
    kilometraje: Optional[Any] = None
    legal_status: Optional[LegalStatus] = None
    base_price: Optional[Any] = None
    description: Optional[str] = None
    photos: Optional[list[str]] = None
    docs: Optional[list[str]] = None

    @field_validator("plate")
    @classmethod
    def _plate_length(cls, v: Optional[str]) -> Optional[str]:
        return _check_plate(v) if v is not None else v

    @field_validator("year")
    @classmethod
    def _year_range(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1900 <= v <= _max_year():
            raise ValueError("Año inválido")
        return v

    # Form inputs arrive as "", numbers or numeric strings; bad values are dropped
    @field_validator("kilometraje", mode="before")
    @classmethod
    def _coerce_km(cls, v: Any) -> Optional[int]:
        num = _to_number(v)
        if num is None or num < 0:
            return None
        return int(num)

    @field_validator("base_price", mode="before")
    @classmethod
    def _coerce_price(cls, v: Any) -> Optional[float]:
        num = _to_number(v)
        if num is None or num <= 0:
            return None
        return num


def _to_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if num != num:  # NaN
        return None
    return num


class ItemStats(CamelModel):
    total: int
    disponible: int
    en_subasta: int
    vendido: int
    eliminado: int


class ObservationSchema(StrictEntity):
    title: Name
    description: str


class ObservationCreate(StrictModel):
    title: Name
    description: str
    item_id: Optional[str] = None


class ObservationUpdate(StrictModel):
    title: Optional[Name] = None
    description: Optional[str] = None


class ObservationOut(CamelModel):
    id: str
    tenant_id: str
    title: str
    description: str
    item_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
