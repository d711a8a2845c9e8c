"""Domain enums. Values are the exact literals stored in the DB and sent on the wire."""

from enum import Enum


class AuctionState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"  # scheduled, not started yet
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AuctionType(str, Enum):
    TEST = "test"
    REAL = "real"


class AuctionItemState(str, Enum):
    DISPONIBLE = "Disponible"
    VENDIDO = "Vendido"
    EN_SUBASTA = "En subasta"
    EN_REVISION = "En revisión"
    ADJUDICADO = "Adjudicado"
    ELIMINADO = "Eliminado"


class ItemState(str, Enum):
    DISPONIBLE = "Disponible"
    VENDIDO = "Vendido"
    EN_SUBASTA = "En subasta"
    ELIMINADO = "Eliminado"


class LegalStatus(str, Enum):
    TRANSFERIBLE = "Transferible"
    LEASING = "Leasing"
    POSIBILIDAD_DE_ENBARGO = "Posibilidad de enbargo"
    PRENDA = "Prenda"
    OTRO = "Otro"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"
    AUCTION_MANAGER = "AUCTION_MANAGER"


class FeedbackStatus(str, Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    RESOLVED = "RESOLVED"


FEEDBACK_CATEGORIES = ("Comentarios", "Feedback", "Consejos", "Críticas")


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ITEM_SOLD = "ITEM_SOLD"
