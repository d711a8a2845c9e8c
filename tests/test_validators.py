"""Tests for field validators, strict schemas and enum wire values."""

import pytest
from pydantic import ValidationError

from subago.domain.enums import AuctionItemState, AuctionState, ItemState, LegalStatus, UserRole
from subago.schemas.auction import BidCreate
from subago.schemas.item import ObservationCreate
from subago.schemas.tenant import TenantCreate
from subago.schemas.user import UserCreate
from subago.schemas.validators import normalize_company_name, validate_phone, validate_rut


class TestPhone:
    @pytest.mark.parametrize("phone", ["+56912345678", "+56221234567"])
    def test_valid(self, phone):
        assert validate_phone(phone)

    @pytest.mark.parametrize(
        "phone", ["", None, "912345678", "+5691234567", "+569123456789", "+56312345678", "+56 9 1234 5678"]
    )
    def test_invalid(self, phone):
        assert not validate_phone(phone)


class TestRut:
    @pytest.mark.parametrize("rut", ["12345678-5", "12.345.678-5", "11111111-1", "123456785"])
    def test_valid(self, rut):
        assert validate_rut(rut)

    @pytest.mark.parametrize("rut", ["", None, "12345678-4", "1234-5", "abcdefgh-k"])
    def test_invalid(self, rut):
        assert not validate_rut(rut)


class TestCompanyName:
    def test_normalization(self):
        assert normalize_company_name("Mi Empresa S.A.") == "miempresasa"
        assert normalize_company_name("  Autos   del Sur  ") == "autosdelsur"
        assert len(normalize_company_name("Una empresa con un nombre larguísimo")) == 20


def _user(**overrides):
    data = {
        "name": "Ana Pérez",
        "email": "ana@example.com",
        "password": "Secreta#123",
        "confirmPassword": "Secreta#123",
    }
    data.update(overrides)
    return UserCreate.model_validate(data)


class TestUserCreate:
    def test_valid_payload(self):
        user = _user(phone="+56912345678", rut="12345678-5")
        assert user.confirm_password == user.password

    @pytest.mark.parametrize("password", ["corta#A", "sinmayuscula#1", "SINMINUSCULA#1", "SinEspecial1"])
    def test_password_rules(self, password):
        with pytest.raises(ValidationError):
            _user(password=password, confirmPassword=password)

    def test_passwords_must_match(self):
        with pytest.raises(ValidationError, match="no coinciden"):
            _user(confirmPassword="Otra#Clave1")

    def test_short_name(self):
        with pytest.raises(ValidationError):
            _user(name="Al")


class TestStrictSchemas:
    def test_bid_rejects_unknown_fields(self):
        payload = {"auctionItemId": "6f1c1a52-63a4-4f8e-9a35-2d1d7a1b0c11", "offeredPrice": 1000}
        assert BidCreate.model_validate(payload).offered_price == 1000
        with pytest.raises(ValidationError):
            BidCreate.model_validate({**payload, "userId": "someone"})

    def test_tenant_rejects_unknown_fields(self):
        assert TenantCreate.model_validate({"name": "Autos Sur", "subdomain": "autossur"})
        with pytest.raises(ValidationError):
            TenantCreate.model_validate({"name": "Autos Sur", "subdomain": "autossur", "isBlocked": True})

    def test_tenant_subdomain_shape(self):
        with pytest.raises(ValidationError):
            TenantCreate.model_validate({"name": "Autos Sur", "subdomain": "Autos Sur"})

    def test_observation_rejects_unknown_fields(self):
        assert ObservationCreate.model_validate({"title": "Rayón", "description": "Puerta trasera"})
        with pytest.raises(ValidationError):
            ObservationCreate.model_validate({"title": "Rayón", "description": "x", "tenantId": "t"})


class TestEnumLiterals:
    def test_wire_values(self):
        assert [s.value for s in AuctionState] == ["active", "inactive", "completed", "cancelled"]
        assert ItemState.EN_SUBASTA.value == "En subasta"
        assert AuctionItemState.EN_REVISION.value == "En revisión"
        assert LegalStatus.POSIBILIDAD_DE_ENBARGO.value == "Posibilidad de enbargo"
        assert {r.value for r in UserRole} == {"ADMIN", "USER", "AUCTION_MANAGER"}
