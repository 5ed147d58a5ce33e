# services/order_store.py
"""
Order Store - durable keyed storage of orders and their audit trail.

All mutation goes through update(), which holds a per-order re-entrant lock
for the whole read-modify-write so concurrent callers never lose audit
appends. The lifecycle manager takes the same lock (locked()) around its
read-check-write sequence to get exactly-once completion.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Union

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from database import SessionLocal, check_connection, get_session_context
from models import IMMUTABLE_FIELDS, OPEN_STATUSES, Order, audit_entry
from .exceptions import DuplicateKey, NotFound

logger = logging.getLogger(__name__)

AuditItem = Union[str, dict]


class OrderStore:
     """SQLAlchemy-backed order repository with per-order locking."""

     def __init__(self, session_factory: sessionmaker = SessionLocal):
          self._session_factory = session_factory
          # order_id -> [lock, holders and waiters]
          self._locks: Dict[str, list] = {}
          self._locks_guard = threading.Lock()

     # ------------------------------------------------------------------
     # Locking
     # ------------------------------------------------------------------

     def _acquire_entry(self, order_id: str) -> threading.RLock:
          with self._locks_guard:
               entry = self._locks.get(order_id)
               if entry is None:
                    entry = [threading.RLock(), 0]
                    self._locks[order_id] = entry
               entry[1] += 1
               return entry[0]

     def _release_entry(self, order_id: str) -> None:
          with self._locks_guard:
               entry = self._locks[order_id]
               entry[1] -= 1
               if entry[1] == 0:
                    del self._locks[order_id]

     @contextmanager
     def locked(self, order_id: str) -> Iterator[None]:
          """
          Hold the order's lock; re-entrant, so update() may be called inside.
          The lock is dropped from the map once nobody holds or waits on it.
          """
          lock = self._acquire_entry(order_id)
          try:
               with lock:
                    yield
          finally:
               self._release_entry(order_id)

     def lock_count(self) -> int:
          with self._locks_guard:
               return len(self._locks)

     # ------------------------------------------------------------------
     # Queries
     # ------------------------------------------------------------------

     @staticmethod
     def _fetch(session: Session, order_id: str) -> Optional[Order]:
          return session.query(Order).filter(Order.order_id == order_id).first()

     def create(self, order: Order) -> Order:
          """
          Insert a new order.

          Raises:
               DuplicateKey: If order_id is already taken.
          """
          with self.locked(order.order_id):
               with self._session_factory() as session:
                    if self._fetch(session, order.order_id) is not None:
                         raise DuplicateKey(order.order_id)
                    if order.audit_log is None:
                         order.audit_log = []
                    session.add(order)
                    try:
                         session.commit()
                    except IntegrityError:
                         session.rollback()
                         raise DuplicateKey(order.order_id)
                    session.refresh(order)
                    session.expunge(order)
          logger.info("Order %s stored with status %s", order.order_id, order.status)
          return order

     def get(self, order_id: str) -> Order:
          """
          Load one order.

          Raises:
               NotFound: If no order has this order_id.
          """
          with self._session_factory() as session:
               order = self._fetch(session, order_id)
               if order is None:
                    raise NotFound(order_id)
               session.expunge(order)
               return order

     def ping(self) -> bool:
          """True when the database answers."""
          with self._session_factory() as session:
               return check_connection(session.get_bind())

     def exists(self, order_id: str) -> bool:
          with self._session_factory() as session:
               return self._fetch(session, order_id) is not None

     def list(self) -> List[Order]:
          """All orders, newest first."""
          with self._session_factory() as session:
               orders = (
                    session.query(Order)
                    .order_by(desc(Order.created_at), desc(Order.id))
                    .all()
               )
               session.expunge_all()
               return orders

     def list_scheduled(self) -> List[Order]:
          """Open orders that still have an auto-completion due."""
          open_values = [s.value for s in OPEN_STATUSES]
          with self._session_factory() as session:
               orders = (
                    session.query(Order)
                    .filter(Order.status.in_(open_values), Order.scheduled_for.isnot(None))
                    .order_by(Order.scheduled_for)
                    .all()
               )
               session.expunge_all()
               return orders

     # ------------------------------------------------------------------
     # Mutation
     # ------------------------------------------------------------------

     def update(
          self,
          order_id: str,
          fields: Optional[dict] = None,
          audit: Optional[Iterable[AuditItem]] = None,
          actor: str = "system",
     ) -> Order:
          """
          Apply field updates and audit appends atomically.

          Args:
               order_id: Order to update
               fields: Column values to set (immutable columns are refused)
               audit: Entries to append, as messages or prebuilt entry dicts
               actor: Actor recorded for plain-message entries

          Raises:
               NotFound: If the order doesn't exist.
               ValueError: If fields touches an immutable or unknown column.
          """
          fields = dict(fields or {})
          frozen = IMMUTABLE_FIELDS.intersection(fields)
          if frozen:
               raise ValueError(f"Cannot modify immutable fields: {', '.join(sorted(frozen))}")
          unknown = [name for name in fields if name not in Order.__table__.columns]
          if unknown:
               raise ValueError(f"Unknown order fields: {', '.join(sorted(unknown))}")
          if "audit_log" in fields:
               raise ValueError("audit_log is append-only; pass entries via audit=")

          entries = [
               item if isinstance(item, dict) else audit_entry(item, actor)
               for item in (audit or [])
          ]

          with self.locked(order_id):
               with get_session_context(self._session_factory) as session:
                    order = self._fetch(session, order_id)
                    if order is None:
                         raise NotFound(order_id)
                    for name, value in fields.items():
                         setattr(order, name, value)
                    if entries:
                         # Assign a new list so the JSON column is flagged dirty
                         order.audit_log = order.audit_entries + entries
                    session.flush()
                    session.refresh(order)
               return order

     def append_audit(self, order_id: str, message: str, actor: str = "system") -> Order:
          """Append a single audit entry."""
          return self.update(order_id, audit=[message], actor=actor)
