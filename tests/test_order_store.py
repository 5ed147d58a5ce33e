"""
Order store tests: round trips, key uniqueness, append-only audit log under
concurrent writers, and reading rows that predate newer columns.
"""
import threading
from decimal import Decimal

import pytest
from sqlalchemy import text

from models import Order, OrderStatus, audit_entry
from schemas.order import OrderResponse
from services import DuplicateKey, NotFound


def _order(order_id="WOLF_1", **overrides) -> Order:
     values = {
          "order_id": order_id,
          "payment_reference": "5077125051",
          "invoice_url": "https://nowpayments.io/payment/?iid=5077125051",
          "amount": Decimal("120.00"),
          "currency": "ILS",
          "amount_usd": Decimal("30.00"),
          "customer_name": "Dana Levi",
          "customer_email": "dana@example.com",
          "product_name": "1000 V-Bucks",
          "status": OrderStatus.FULFILLING.value,
          "audit_log": [audit_entry("Order Created", "checkout")],
     }
     values.update(overrides)
     return Order(**values)


class TestOrderStore:

     def test_create_then_get_round_trips_immutable_fields(self, store):
          store.create(_order())

          loaded = store.get("WOLF_1")

          assert loaded.order_id == "WOLF_1"
          assert loaded.payment_reference == "5077125051"
          assert loaded.amount == Decimal("120.00")
          assert loaded.customer_name == "Dana Levi"
          assert loaded.customer_email == "dana@example.com"
          assert loaded.product_name == "1000 V-Bucks"
          assert loaded.status == "fulfilling"
          assert [e["message"] for e in loaded.audit_entries] == ["Order Created"]
          assert loaded.created_at is not None

     def test_duplicate_order_id_is_rejected(self, store):
          store.create(_order())
          with pytest.raises(DuplicateKey):
               store.create(_order(payment_reference="other"))
          assert len(store.list()) == 1

     def test_get_and_update_unknown_order_raise_not_found(self, store):
          with pytest.raises(NotFound):
               store.get("WOLF_404")
          with pytest.raises(NotFound):
               store.update("WOLF_404", {"txid": "abc"})

     def test_update_refuses_immutable_fields(self, store):
          store.create(_order())
          with pytest.raises(ValueError):
               store.update("WOLF_1", {"amount": Decimal("1.00")})
          with pytest.raises(ValueError):
               store.update("WOLF_1", {"audit_log": []})
          assert store.get("WOLF_1").amount == Decimal("120.00")

     def test_update_applies_fields_and_appends_audit_in_order(self, store):
          store.create(_order())

          store.update("WOLF_1", {"txid": "T1"}, audit=["TXID set to T1"], actor="admin")
          updated = store.update("WOLF_1", {"status": "processing"}, audit=["Status changed to processing"])

          assert updated.txid == "T1"
          assert updated.status == "processing"
          messages = [e["message"] for e in updated.audit_entries]
          assert messages == ["Order Created", "TXID set to T1", "Status changed to processing"]
          assert updated.audit_entries[1]["actor"] == "admin"

     def test_concurrent_audit_appends_are_not_lost(self, store):
          store.create(_order())
          barrier = threading.Barrier(8)

          def writer(n):
               barrier.wait()
               for i in range(5):
                    store.append_audit("WOLF_1", f"writer {n} entry {i}")

          threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
          for t in threads:
               t.start()
          for t in threads:
               t.join()

          entries = store.get("WOLF_1").audit_entries
          assert len(entries) == 1 + 8 * 5
          for n in range(8):
               mine = [e["message"] for e in entries if e["message"].startswith(f"writer {n} ")]
               assert mine == [f"writer {n} entry {i}" for i in range(5)]
          assert store.lock_count() == 0

     def test_lock_map_is_emptied_after_use(self, store):
          store.create(_order())
          for i in range(100):
               with store.locked(f"WOLF_MISSING_{i}"):
                    pass
          store.append_audit("WOLF_1", "touched")
          with pytest.raises(NotFound):
               store.update("WOLF_MISSING", {"txid": "0x1"})

          assert store.lock_count() == 0

     def test_lock_entry_lives_while_held(self, store):
          with store.locked("WOLF_1"):
               with store.locked("WOLF_1"):
                    assert store.lock_count() == 1
               assert store.lock_count() == 1
          assert store.lock_count() == 0

     def test_list_is_newest_first(self, store):
          for i in range(3):
               store.create(_order(order_id=f"WOLF_{i}"))

          assert [o.order_id for o in store.list()] == ["WOLF_2", "WOLF_1", "WOLF_0"]

     def test_list_scheduled_only_returns_open_orders_with_a_due_time(self, store):
          from models import utcnow

          store.create(_order("WOLF_A", scheduled_for=utcnow()))
          store.create(_order("WOLF_B"))
          store.create(_order("WOLF_C", scheduled_for=utcnow(), status="cancelled"))

          assert [o.order_id for o in store.list_scheduled()] == ["WOLF_A"]

     def test_rows_written_before_newer_columns_load_with_empty_values(self, store, session_factory):
          store.create(_order())
          with session_factory() as session:
               session.execute(text("UPDATE orders SET audit_log = NULL, invoice_url = NULL, amount_usd = NULL"))
               session.commit()

          legacy = store.get("WOLF_1")

          assert legacy.audit_entries == []
          assert legacy.txid is None
          assert legacy.fulfillment_id is None
          response = OrderResponse.model_validate(legacy)
          assert response.audit_log == []
          assert response.payment_confirmed is False

          appended = store.append_audit("WOLF_1", "Status changed to processing")
          assert [e["message"] for e in appended.audit_entries] == ["Status changed to processing"]

     def test_ping_reports_a_live_database(self, store):
          assert store.ping() is True


def test_orders_table_name():
     assert Order.__table__.name == "orders"
