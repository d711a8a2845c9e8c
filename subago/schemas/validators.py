"""Shared field validators (phone, RUT, names, passwords) and their Spanish messages.

Each validator is exposed both as a plain function (usable from services) and
as an ``Annotated`` type (usable as a schema field).
"""

from __future__ import annotations

import re
from typing import Annotated

from pydantic import AfterValidator, EmailStr

ERROR_MESSAGES = {
    "invalid_type": "Debes ingresar un valor",
    "invalid_literal": "El tipo debe ser un valor adecuado",
    "too_small": "Debes ingresar un valor",
    "custom": {
        "phone": "Debes ingresar un número en formato +56 9 1234 5678 o +56 2 2123 4567",
        "rut": "Debes ingresar un RUT válido",
        "name": "Debes ingresar un nombre válido",
        "email": "Debes ingresar un email valido",
        "company_name": "Debes ingresar el nombre de la empresa",
        "password": "Debes ingresar una contraseña válida",
    },
}

# Mobile (+569) or Santiago landline (+562), eight digits after the prefix
_PHONE_RE = re.compile(r"^\+56(9\d{8}|2\d{8})$")
_RUT_RE = re.compile(r"^\d{7,8}[\dkK]$")
_PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[\W_])[A-Za-z\d\W_]{8,100}$")


def validate_phone(phone: str | None) -> bool:
    if not phone:
        return False
    return _PHONE_RE.fullmatch(phone) is not None


def validate_rut(rut: str | None) -> bool:
    """Chilean RUT with mod-11 check digit. Dots, hyphens and spaces are ignored."""
    if not rut:
        return False
    rut = re.sub(r"[.\- ]", "", rut)
    if not _RUT_RE.fullmatch(rut):
        return False

    body, dv = rut[:-1], rut[-1].upper()
    total = 0
    multiplier = 2
    for digit in reversed(body):
        total += int(digit) * multiplier
        multiplier = multiplier + 1 if multiplier < 7 else 2

    calculated = 11 - (total % 11)
    if calculated == 11:
        expected = "0"
    elif calculated == 10:
        expected = "K"
    else:
        expected = str(calculated)
    return expected == dv


def normalize_company_name(name: str) -> str:
    """Lowercase, drop spaces and anything non-alphanumeric, cap at 20 chars."""
    name = re.sub(r"\s+", "", name.lower())
    return re.sub(r"[^a-z0-9]", "", name)[:20]


# ---------------------------------------------------------------------------
# Annotated field types
# ---------------------------------------------------------------------------

def _check_phone(value: str) -> str:
    if not validate_phone(value):
        raise ValueError(ERROR_MESSAGES["custom"]["phone"])
    return value


def _check_rut(value: str) -> str:
    if not validate_rut(value):
        raise ValueError(ERROR_MESSAGES["custom"]["rut"])
    return value


def _check_name(value: str) -> str:
    # Length is checked before trimming
    if len(value) < 3:
        raise ValueError(ERROR_MESSAGES["custom"]["name"])
    return value.strip()


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Contraseña debe tener largo de 8")
    if len(value) > 100:
        raise ValueError("Largo máximo de 100")
    if not _PASSWORD_RE.fullmatch(value):
        raise ValueError(
            "Contraseña debe tener al menos una mayúscula, una minúscula, un caracter especial"
        )
    return value


Phone = Annotated[str, AfterValidator(_check_phone)]
Rut = Annotated[str, AfterValidator(_check_rut)]
Name = Annotated[str, AfterValidator(_check_name)]
Password = Annotated[str, AfterValidator(_check_password)]
Email = EmailStr
