# models/order.py
"""
Order model - one checkout transaction and its full lifecycle record.

Orders are never deleted. Status only moves forward, and the audit log is an
append-only JSON array of {timestamp, actor, message} entries.
"""
import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, Numeric, String, false, func

from .base import Base


class OrderStatus(str, enum.Enum):
     """Lifecycle states of an order."""
     WAITING = "waiting"
     PENDING = "pending"
     PROCESSING = "processing"
     FULFILLING = "fulfilling"
     COMPLETED = "completed"
     CANCELLED = "cancelled"

     @property
     def is_open(self) -> bool:
          return self in OPEN_STATUSES

     @property
     def is_terminal(self) -> bool:
          return self in TERMINAL_STATUSES


OPEN_STATUSES = frozenset({
     OrderStatus.WAITING,
     OrderStatus.PENDING,
     OrderStatus.PROCESSING,
     OrderStatus.FULFILLING,
})
TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Fields fixed at checkout time
IMMUTABLE_FIELDS = frozenset({
     "order_id",
     "payment_reference",
     "invoice_url",
     "amount",
     "currency",
     "amount_usd",
     "customer_name",
     "customer_email",
     "product_name",
     "created_at",
})

# Fields written only by the completion routine
COMPLETION_FIELDS = frozenset({"fulfillment_id", "delivery_node", "execution_time"})


def utcnow() -> datetime:
     """Naive UTC timestamp, the form every DateTime column stores."""
     return datetime.now(timezone.utc).replace(tzinfo=None)


def audit_entry(message: str, actor: str = "system", timestamp: Optional[datetime] = None) -> dict:
     """Build one audit log entry."""
     ts = timestamp or utcnow()
     return {"timestamp": ts.isoformat(), "actor": actor, "message": message}


class Order(Base):
     """
     Order placed through the storefront checkout.

     Columns added after the first migration are nullable (or carry a server
     default) so older rows load without errors.
     """
     __tablename__ = "orders"

     id = Column(Integer, primary_key=True, autoincrement=True)
     order_id = Column(String(64), unique=True, nullable=False, index=True)

     # Invoice
     payment_reference = Column(String(128), nullable=False)
     invoice_url = Column(String(1024), nullable=True)
     amount = Column(Numeric(12, 2), nullable=False)
     currency = Column(String(3), nullable=False, default="ILS")
     amount_usd = Column(Numeric(12, 2), nullable=True)

     # Customer
     customer_name = Column(String(255), nullable=False)
     customer_email = Column(String(255), nullable=False)
     product_name = Column(String(255), nullable=False)

     # Lifecycle
     status = Column(String(20), nullable=False, default=OrderStatus.FULFILLING.value, index=True)
     audit_log = Column(JSON, nullable=True, default=list)
     payment_confirmed = Column(Boolean, nullable=False, default=False, server_default=false())
     scheduled_for = Column(DateTime, nullable=True)

     # Admin-attached delivery metadata
     txid = Column(String(255), nullable=True)
     delivery_proof_image = Column(String(1024), nullable=True)

     # Set once by the completion routine
     fulfillment_id = Column(String(64), nullable=True, unique=True)
     delivery_node = Column(String(64), nullable=True)
     execution_time = Column(DateTime, nullable=True)

     # Timestamps
     created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
     updated_at = Column(DateTime, nullable=True, onupdate=utcnow)

     def __repr__(self):
          return f"<Order(order_id='{self.order_id}', amount={self.amount}, status='{self.status}')>"

     @property
     def order_status(self) -> OrderStatus:
          return OrderStatus(self.status)

     @property
     def is_completed(self) -> bool:
          return self.status == OrderStatus.COMPLETED.value

     @property
     def is_terminal(self) -> bool:
          return self.order_status.is_terminal

     @property
     def audit_entries(self) -> list:
          """Audit log as a list, empty for rows written before the column existed."""
          return list(self.audit_log or [])
