# models/__init__.py
from .base import Base
from .order import (
     Order,
     OrderStatus,
     OPEN_STATUSES,
     TERMINAL_STATUSES,
     IMMUTABLE_FIELDS,
     COMPLETION_FIELDS,
     audit_entry,
     utcnow,
)

__all__ = [
     "Base",
     "Order",
     "OrderStatus",
     "OPEN_STATUSES",
     "TERMINAL_STATUSES",
     "IMMUTABLE_FIELDS",
     "COMPLETION_FIELDS",
     "audit_entry",
     "utcnow",
]
