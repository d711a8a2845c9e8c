"""Auction router.

Pattern:
  1. Managers create/edit/drive auctions inside their tenant
  2. USER members list auctions and register themselves
  3. State changes go out over the realtime gateway; schedule edits wake the scheduler
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from subago.core.deps import get_current_user, get_tenant_id, require_manager, require_roles
from subago.core.pagination import PaginationParams
from subago.core.response import CollectionResponse, DataResponse, ListResponse, paginated
from subago.db.base import get_db
from subago.domain.enums import AuctionState, AuctionType, UserRole
from subago.domain.user import User
from subago.realtime.gateway import gateway
from subago.schemas.auction import (
    AuctionCreate,
    AuctionItemSchema,
    AuctionSchema,
    AuctionStats,
    AuctionUpdate,
    AuctionWithItems,
    ConnectedUsers,
    RegistrationOut,
)
from subago.services.auction import AuctionService

router = APIRouter(prefix="/auctions", tags=["Auctions"])


def _svc(session: AsyncSession, tenant_id: str) -> AuctionService:
    return AuctionService(session, tenant_id, broadcaster=gateway)


def _wake_scheduler(request: Request) -> None:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.wake()


# ------------------------------------------------------------------
# Collection
# ------------------------------------------------------------------

@router.post("", response_model=DataResponse[AuctionWithItems], status_code=status.HTTP_201_CREATED)
async def create_auction(
    body: AuctionCreate,
    request: Request,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_manager),
    tenant_id: str = Depends(get_tenant_id),
):
    auction = await _svc(session, tenant_id).create_auction(body, created_by_id=user.id)
    _wake_scheduler(request)
    return {"data": AuctionWithItems.model_validate(auction)}


@router.get("", response_model=ListResponse[AuctionSchema])
async def list_auctions(
    state: Optional[AuctionState] = Query(default=None, alias="status"),
    auction_type: Optional[AuctionType] = Query(default=None, alias="type"),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """List the tenant's auctions. Filter by ?status=active|inactive|completed|cancelled and ?type=."""
    items, total = await _svc(session, tenant_id).list_auctions(pagination, state, auction_type)
    return paginated(
        [AuctionSchema.model_validate(a) for a in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/stats", response_model=DataResponse[AuctionStats])
async def auction_stats(
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    return {"data": await _svc(session, tenant_id).get_stats()}


@router.get("/my-registrations", response_model=CollectionResponse[RegistrationOut])
async def my_registrations(
    session: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id),
):
    registrations = await _svc(session, tenant_id).list_user_registrations(user.id)
    return {"data": [RegistrationOut.model_validate(r) for r in registrations]}


# ------------------------------------------------------------------
# Single auction
# ------------------------------------------------------------------

@router.get("/{auction_id}", response_model=DataResponse[AuctionWithItems])
async def get_auction(
    auction_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    auction = await _svc(session, tenant_id).get_auction(auction_id)
    return {"data": AuctionWithItems.model_validate(auction)}


@router.put("/{auction_id}", response_model=DataResponse[AuctionWithItems])
async def update_auction(
    auction_id: str,
    body: AuctionUpdate,
    request: Request,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    auction = await _svc(session, tenant_id).update_auction(auction_id, body)
    _wake_scheduler(request)
    return {"data": AuctionWithItems.model_validate(auction)}


@router.delete("/{auction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_auction(
    auction_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    await _svc(session, tenant_id).delete_auction(auction_id)
    _wake_scheduler(request)


@router.get("/{auction_id}/items", response_model=CollectionResponse[AuctionItemSchema])
async def list_auction_items(
    auction_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
):
    auction_items = await _svc(session, tenant_id).list_auction_items(auction_id)
    return {"data": [AuctionItemSchema.model_validate(ai) for ai in auction_items]}


# ------------------------------------------------------------------
# State changes
# ------------------------------------------------------------------

@router.post("/{auction_id}/start", response_model=DataResponse[AuctionSchema])
async def start_auction(
    auction_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    auction = await _svc(session, tenant_id).start_auction(auction_id)
    _wake_scheduler(request)
    return {"data": AuctionSchema.model_validate(auction)}


@router.post("/{auction_id}/close", response_model=DataResponse[AuctionSchema])
async def close_auction(
    auction_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    """Close now and award every item to its highest bidder."""
    auction = await _svc(session, tenant_id).close_auction(auction_id)
    _wake_scheduler(request)
    return {"data": AuctionSchema.model_validate(auction)}


@router.post("/{auction_id}/cancel", response_model=DataResponse[AuctionSchema])
async def cancel_auction(
    auction_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    auction = await _svc(session, tenant_id).cancel_auction(auction_id)
    _wake_scheduler(request)
    return {"data": AuctionSchema.model_validate(auction)}


@router.post("/{auction_id}/uncancel", response_model=DataResponse[AuctionSchema])
async def uncancel_auction(
    auction_id: str,
    request: Request,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    auction = await _svc(session, tenant_id).uncancel_auction(auction_id)
    _wake_scheduler(request)
    return {"data": AuctionSchema.model_validate(auction)}


# ------------------------------------------------------------------
# Participants
# ------------------------------------------------------------------

@router.post(
    "/{auction_id}/register",
    response_model=DataResponse[RegistrationOut],
    status_code=status.HTTP_201_CREATED,
)
async def register_self(
    auction_id: str,
    session: AsyncSession = Depends(get_db),
    user: User = Depends(require_roles(UserRole.USER)),
    tenant_id: str = Depends(get_tenant_id),
):
    registration = await _svc(session, tenant_id).register_user(auction_id, user.id)
    return {"data": RegistrationOut.model_validate(registration)}


@router.post(
    "/{auction_id}/register/{user_id}",
    response_model=DataResponse[RegistrationOut],
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    auction_id: str,
    user_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    registration = await _svc(session, tenant_id).register_user(auction_id, user_id)
    return {"data": RegistrationOut.model_validate(registration)}


@router.delete("/{auction_id}/register/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_user(
    auction_id: str,
    user_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    await _svc(session, tenant_id).unregister_user(auction_id, user_id)


@router.get("/{auction_id}/participants", response_model=CollectionResponse[RegistrationOut])
async def list_participants(
    auction_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    registrations = await _svc(session, tenant_id).list_participants(auction_id)
    return {"data": [RegistrationOut.model_validate(r) for r in registrations]}


@router.get("/{auction_id}/connected-users", response_model=DataResponse[ConnectedUsers])
async def connected_users(
    auction_id: str,
    session: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id),
    _user: User = Depends(require_manager),
):
    """Users with a live socket in the auction room right now."""
    await _svc(session, tenant_id).get_auction(auction_id)
    user_ids = gateway.get_connected_users(tenant_id, auction_id)
    return {"data": ConnectedUsers(auction_id=auction_id, user_ids=user_ids, count=len(user_ids))}
