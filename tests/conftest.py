"""
Shared fixtures: a temporary SQLite database and fake collaborators, so the
lifecycle runs end to end without NOWPayments, Brevo or Telegram.
"""
import random
import threading
import time
from decimal import Decimal

import pytest

from database import build_engine, build_session_factory, init_db
from services import (
     ExchangeRateProvider,
     FulfillmentScheduler,
     Invoice,
     NotificationFailure,
     OrderLifecycleManager,
     OrderStore,
     UpstreamUnavailable,
)


class FakeInvoiceService:
     """Records calls; fails when .fail is set."""

     def __init__(self):
          self.calls = []
          self.fail = False

     def create_invoice(self, amount_usd, order_id, description):
          self.calls.append({"amount_usd": amount_usd, "order_id": order_id, "description": description})
          if self.fail:
               raise UpstreamUnavailable("NOWPayments error: 503")
          return Invoice(
               invoice_id=f"INV-{len(self.calls)}",
               invoice_url=f"https://nowpayments.io/payment/?iid={order_id}",
          )


class FakeNotifier:
     """Collects operator messages and delivery emails."""

     def __init__(self):
          self.messages = []
          self.emails = []
          self.fail_email = False
          self.email_failures_left = 0
          self.fail_notify = False
          self.email_delay = 0.0
          self._lock = threading.Lock()

     def notify(self, message):
          if self.fail_notify:
               raise RuntimeError("telegram down")
          with self._lock:
               self.messages.append(message)

     def send_delivery_confirmation(self, order, fulfillment_id):
          if self.email_delay:
               time.sleep(self.email_delay)
          with self._lock:
               if self.fail_email:
                    raise NotificationFailure("Brevo error: 500")
               if self.email_failures_left > 0:
                    self.email_failures_left -= 1
                    raise NotificationFailure("Brevo error: 500")
               self.emails.append((order.order_id, fulfillment_id))


def wait_for(predicate, timeout=5.0, interval=0.02):
     """Poll predicate until true or timeout; returns the last result."""
     deadline = time.monotonic() + timeout
     while time.monotonic() < deadline:
          if predicate():
               return True
          time.sleep(interval)
     return predicate()


@pytest.fixture
def session_factory(tmp_path):
     engine = build_engine(f"sqlite:///{tmp_path / 'orders.sqlite'}")
     init_db(engine)
     yield build_session_factory(engine)
     engine.dispose()


@pytest.fixture
def store(session_factory):
     return OrderStore(session_factory)


@pytest.fixture
def scheduler():
     s = FulfillmentScheduler()
     yield s
     s.shutdown()


@pytest.fixture
def invoices():
     return FakeInvoiceService()


@pytest.fixture
def notifier():
     return FakeNotifier()


@pytest.fixture
def rates():
     return ExchangeRateProvider(url="http://rates.invalid", fallback_rate=Decimal("4.00"))


@pytest.fixture
def make_lifecycle(store, scheduler, invoices, rates, notifier):
     """Factory for lifecycle managers sharing the test collaborators."""

     def _make(**overrides):
          options = {
               "auto_delay_range": (3600, 3600),
               "retry_delay": 3600,
               "max_attempts": 3,
               "require_payment_confirmation": False,
               "min_ils": Decimal("100"),
               "min_usd": Decimal("31"),
               "rng": random.Random(7),
          }
          options.update(overrides)
          return OrderLifecycleManager(
               store=options.pop("store", store),
               scheduler=options.pop("scheduler", scheduler),
               invoices=invoices,
               rates=rates,
               notifier=notifier,
               **options,
          )

     return _make


@pytest.fixture
def lifecycle(make_lifecycle):
     return make_lifecycle()


@pytest.fixture
def place_order(lifecycle):
     """Create an order with sensible checkout defaults."""

     def _place(manager=None, **overrides):
          params = {
               "amount": "120",
               "customer_name": "Dana Levi",
               "customer_email": "dana@example.com",
               "product_name": "1000 V-Bucks",
               "currency": "ILS",
          }
          params.update(overrides)
          return (manager or lifecycle).create_order(**params)

     return _place
