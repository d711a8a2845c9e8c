"""Authentication router: sign-in, token refresh, logout and the current user."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user
from subago.core.response import DataResponse
from subago.db.base import get_db
from subago.domain.user import User
from subago.schemas.user import (
    LoginRequest,
    RefreshRequest,
    TokenPair,
    UserSafe,
    UserSafeWithCompanyAndTenant,
)
from subago.services.auth import AuthService, IssuedTokens

router = APIRouter(prefix="/auth", tags=["Auth"])


def _token_pair(issued: IssuedTokens) -> TokenPair:
    return TokenPair(
        access_token=issued.access_token,
        refresh_token=issued.refresh_token,
        expires_in=issued.expires_in,
        user=UserSafe.model_validate(issued.user),
    )


@router.post("/login", response_model=DataResponse[TokenPair])
async def login(body: LoginRequest, session: AsyncSession = Depends(get_db)):
    issued = await AuthService(session).login(body.email, body.password)
    return {"data": _token_pair(issued)}


@router.post("/refresh", response_model=DataResponse[TokenPair])
async def refresh(body: RefreshRequest, session: AsyncSession = Depends(get_db)):
    """Rotate a refresh token. The presented token is revoked."""
    issued = await AuthService(session).refresh(body.refresh_token)
    return {"data": _token_pair(issued)}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(body: RefreshRequest, session: AsyncSession = Depends(get_db)):
    await AuthService(session).logout(body.refresh_token)


@router.get("/me", response_model=DataResponse[UserSafeWithCompanyAndTenant])
async def me(user: User = Depends(get_current_user)):
    return {"data": UserSafeWithCompanyAndTenant.model_validate(user)}
