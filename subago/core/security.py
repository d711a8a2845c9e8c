"""Password hashing (bcrypt) and JWT issuing/verification (PyJWT)."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime

import bcrypt
import jwt

from subago.core.config import settings
from subago.core.exceptions import UnauthorizedError
from subago.utils.time import utc_now

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input
_BCRYPT_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_access_token(
    user_id: str,
    email: str,
    role: str,
    tenant_id: str | None,
    company_id: str | None,
    now: datetime | None = None,
) -> str:
    now = now or utc_now()
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "tenantId": tenant_id,
        "companyId": company_id,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": now + settings.access_token_ttl,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: str, now: datetime | None = None) -> tuple[str, datetime]:
    """Return (token, expires_at). Each token gets a random jti so it hashes uniquely."""
    now = now or utc_now()
    expires_at = now + settings.refresh_token_ttl
    payload = {
        "sub": user_id,
        "jti": secrets.token_hex(16),
        "type": REFRESH_TOKEN_TYPE,
        "iat": now,
        "exp": expires_at,
    }
    token = jwt.encode(payload, settings.jwt_refresh_secret, algorithm=settings.jwt_algorithm)
    return token, expires_at


def _decode(token: str, secret: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expirado")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Token inválido")
    if payload.get("type") != expected_type or not payload.get("sub"):
        raise UnauthorizedError("Token inválido")
    return payload


def decode_access_token(token: str) -> dict:
    return _decode(token, settings.jwt_secret, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> dict:
    return _decode(token, settings.jwt_refresh_secret, REFRESH_TOKEN_TYPE)


def hash_refresh_token(token: str) -> str:
    """HMAC-SHA256 of the raw token; only this digest is persisted."""
    return hmac.new(
        settings.jwt_refresh_secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256
    ).hexdigest()
