"""Domain package - all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  tenant.py       - Tenant and Company
  user.py         - User and RefreshToken
  item.py         - Vehicles offered for sale
  auction.py      - Auction, AuctionItem, AuctionRegistration, Bid
  observation.py  - Observations and user Feedback
  audit.py        - Immutable audit log (never updated or deleted)
  enums.py        - State/role enums (Spanish literals are wire values)
  transitions.py  - Allowed state transitions
  mixins.py       - Shared TimestampMixin, TenantMixin
"""

from subago.domain.audit import AuditLog
from subago.domain.auction import Auction, AuctionItem, AuctionRegistration, Bid
from subago.domain.item import Item
from subago.domain.observation import Feedback, Observation
from subago.domain.tenant import Company, Tenant
from subago.domain.user import RefreshToken, User

__all__ = [
    "Auction",
    "AuctionItem",
    "AuctionRegistration",
    "AuditLog",
    "Bid",
    "Company",
    "Feedback",
    "Item",
    "Observation",
    "RefreshToken",
    "Tenant",
    "User",
]
