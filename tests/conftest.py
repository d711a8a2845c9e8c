"""Pytest configuration and shared fixtures.

Every test gets its own SQLite file. The app's session factory is rebound to
it, so services, routers, the gateway and the scheduler all see the same data.
"""

import os

# Must be set before anything imports subago.core.config
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-subago.db")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["AUDIT_ENABLED"] = "false"
os.environ["WS_LEAVE_GRACE_SECONDS"] = "0"

from dataclasses import dataclass, field
from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

import subago.domain  # noqa: F401  (registers every model on Base.metadata)
from subago.core.security import create_access_token, hash_password
from subago.db.base import Base, async_session_factory, enable_sqlite_foreign_keys
from subago.domain.auction import Auction, AuctionItem, AuctionRegistration
from subago.domain.enums import AuctionItemState, AuctionState, ItemState, LegalStatus, UserRole
from subago.domain.item import Item
from subago.domain.tenant import Company, Tenant
from subago.domain.user import User
from subago.utils.time import utc_now

TEST_PASSWORD = "Secreta#123"
# bcrypt is slow on purpose; hash once for the whole run
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# --- Database Fixtures ---


@pytest.fixture
async def test_engine(tmp_path):
    """Fresh schema in a throwaway SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session_factory.configure(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session
        await session.rollback()


# --- App Fixtures ---


@pytest.fixture
def app(test_engine):
    from subago.main import create_app

    return create_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(
        user.id, user.email, user.role.value, user.tenant_id, user.company_id
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    """`headers(user)` builds a bearer header for `user`."""
    return auth_headers


@pytest.fixture
def password() -> str:
    return TEST_PASSWORD


# --- Data Factory ---


@dataclass
class World:
    """A tenant with its company, one manager and one bidder."""

    tenant: Tenant
    company: Company
    manager: User
    bidder: User
    extra: dict = field(default_factory=dict)


class Factory:
    """Builds committed rows so that other sessions (routers, gateway) can see them."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def _save(self, *rows):
        self.session.add_all(rows)
        await self.session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def tenant(self, name: Optional[str] = None, is_blocked: bool = False) -> Tenant:
        n = self._next()
        name = name or f"Tenant {n}"
        return await self._save(
            Tenant(name=name, domain=f"http://tenant{n}.localhost:3000", is_blocked=is_blocked)
        )

    async def company(self, tenant: Tenant, name: Optional[str] = None) -> Company:
        name = name or f"Empresa {self._next()}"
        return await self._save(
            Company(tenant_id=tenant.id, name=name, name_lowercase=name.lower().replace(" ", "")[:20])
        )

    async def user(
        self,
        tenant: Optional[Tenant] = None,
        company: Optional[Company] = None,
        role: UserRole = UserRole.USER,
        name: Optional[str] = None,
        public_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        n = self._next()
        return await self._save(
            User(
                name=name or f"Usuario {n}",
                email=email or f"user{n}@example.com",
                public_name=public_name,
                password_hash=TEST_PASSWORD_HASH,
                role=role,
                tenant_id=tenant.id if tenant else None,
                company_id=company.id if company else None,
            )
        )

    async def item(
        self, tenant: Tenant, state: ItemState = ItemState.DISPONIBLE, base_price: float = 1_000_000
    ) -> Item:
        n = self._next()
        return await self._save(
            Item(
                tenant_id=tenant.id,
                plate=f"AB{n:04d}",
                brand="Toyota",
                model="Yaris",
                year=2020,
                legal_status=LegalStatus.TRANSFERIBLE,
                state=state,
                base_price=base_price,
            )
        )

    async def auction(
        self,
        tenant: Tenant,
        items: tuple[Item, ...] = (),
        state: AuctionState = AuctionState.ACTIVE,
        starts_in: timedelta = timedelta(minutes=-10),
        lasts: timedelta = timedelta(hours=1),
        bid_increment: float = 50_000,
    ) -> tuple[Auction, list[AuctionItem]]:
        start = utc_now() + starts_in
        auction = Auction(
            tenant_id=tenant.id,
            title=f"Subasta {self._next()}",
            start_time=start,
            end_time=start + lasts,
            state=state,
            bid_increment=bid_increment,
        )
        self.session.add(auction)
        await self.session.flush()

        auction_items = []
        for item in items:
            item.state = ItemState.EN_SUBASTA
            auction_items.append(
                AuctionItem(
                    tenant_id=tenant.id,
                    auction_id=auction.id,
                    item_id=item.id,
                    starting_bid=item.base_price,
                    state=AuctionItemState.EN_SUBASTA,
                    start_time=auction.start_time,
                    end_time=auction.end_time,
                )
            )
        self.session.add_all(auction_items)
        await self.session.commit()
        return auction, auction_items

    async def register(self, user: User, auction: Auction) -> AuctionRegistration:
        return await self._save(AuctionRegistration(user_id=user.id, auction_id=auction.id))

    async def world(self) -> World:
        tenant = await self.tenant()
        company = await self.company(tenant)
        manager = await self.user(tenant, company, role=UserRole.AUCTION_MANAGER, name="Gestor Uno")
        bidder = await self.user(tenant, company, role=UserRole.USER, name="Postor Real", public_name="Postor7")
        return World(tenant=tenant, company=company, manager=manager, bidder=bidder)


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


@pytest.fixture
async def world(factory) -> World:
    return await factory.world()


# --- Realtime Fixtures ---


class FakeBroadcaster:
    """Records everything services try to push to sockets."""

    def __init__(self):
        self.room_messages: list[tuple[str, dict]] = []
        self.bids: list[tuple[str, object, str, str]] = []
        self.status_changes: list[tuple[str, str, str]] = []

    async def broadcast_to_room(self, room, message):
        self.room_messages.append((room, message))

    async def broadcast_bid_placed(self, room, data, user_display_name, manager_display_name):
        self.bids.append((room, data, user_display_name, manager_display_name))

    async def broadcast_auction_status_change(self, tenant_id, auction_id, status, auction=None):
        self.status_changes.append((tenant_id, auction_id, status))

    def events(self, name: str) -> list[dict]:
        return [m["data"] for _, m in self.room_messages if m["event"] == name]


@pytest.fixture
def broadcaster() -> FakeBroadcaster:
    return FakeBroadcaster()


class FakeWebSocket:
    """Just enough of starlette's WebSocket for the gateway."""

    def __init__(self):
        self.accepted = False
        self.sent: list[dict] = []
        self.closed_with: Optional[tuple[int, str]] = None

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.closed_with is not None:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = ""):
        self.closed_with = (code, reason)

    def events(self, name: Optional[str] = None) -> list[dict]:
        return [m for m in self.sent if name is None or m["event"] == name]

    def last(self, name: str) -> dict:
        matching = self.events(name)
        assert matching, f"no {name} frame in {[m['event'] for m in self.sent]}"
        return matching[-1]["data"]


@pytest.fixture
def fake_socket():
    """Factory: `ws = fake_socket()`."""
    return FakeWebSocket
