# services/lifecycle.py
"""
Order Lifecycle Manager - the order state machine.

States:
     waiting | pending | processing | fulfilling   (open)
     completed                                      (terminal, via complete())
     cancelled                                      (terminal, admin override only)

Completion has two producers, the scheduler's timer (Auto) and the admin
mark-delivered call (Manual). Both run the same complete() routine, which
holds the order's store lock across read-check-write, so whichever caller
first sees an open status performs the transition and the other no-ops.

The completion audit entry is persisted before the customer email goes out;
the completed status is only committed after the email succeeds. A failed
email therefore leaves an "attempt" entry behind and the order still open.
"""
import enum
import logging
import random
import re
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from functools import partial
from html import escape
from typing import Optional, Tuple, Union

import config
from models import Order, OrderStatus, audit_entry, utcnow
from .currency import ExchangeRateProvider
from .exceptions import (
     InvalidTransition,
     NotFound,
     NotificationFailure,
     ValidationError,
)
from .invoice_service import InvoiceService
from .notifications import NotificationSink
from .order_store import OrderStore
from .scheduler import FulfillmentScheduler

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DELIVERY_NODES = (
     "EU-Central-Node-04",
     "EU-West-Node-09",
     "US-East-Node-11",
     "IL-TLV-Node-02",
     "AS-SG-Node-07",
)

SUPPORTED_CURRENCIES = ("ILS", "USD")


class CompletionMethod(str, enum.Enum):
     AUTO = "Auto"
     MANUAL = "Manual"


@dataclass(frozen=True)
class CheckoutResult:
     order: Order
     invoice_url: str


class OrderLifecycleManager:
     """Creates orders, drives their status, and completes them exactly once."""

     def __init__(
          self,
          store: OrderStore,
          scheduler: FulfillmentScheduler,
          invoices: InvoiceService,
          rates: ExchangeRateProvider,
          notifier: NotificationSink,
          auto_delay_range: Tuple[float, float] = (
               config.AUTO_COMPLETE_MIN_SECONDS,
               config.AUTO_COMPLETE_MAX_SECONDS,
          ),
          retry_delay: float = config.AUTO_COMPLETE_RETRY_SECONDS,
          max_attempts: int = config.AUTO_COMPLETE_MAX_ATTEMPTS,
          require_payment_confirmation: bool = config.REQUIRE_PAYMENT_CONFIRMATION,
          min_ils: Decimal = config.MIN_ORDER_ILS,
          min_usd: Decimal = config.MIN_ORDER_USD,
          rng: Optional[random.Random] = None,
     ):
          low, high = auto_delay_range
          if low < 0 or high < low:
               raise ValueError(f"Invalid auto-completion delay range: {auto_delay_range}")
          self.store = store
          self.scheduler = scheduler
          self.invoices = invoices
          self.rates = rates
          self.notifier = notifier
          self.auto_delay_range = (low, high)
          self.retry_delay = retry_delay
          self.max_attempts = max(1, max_attempts)
          self.require_payment_confirmation = require_payment_confirmation
          self.minimums = {"ILS": Decimal(min_ils), "USD": Decimal(min_usd)}
          self.rng = rng or random.Random()

     # ------------------------------------------------------------------
     # Helpers
     # ------------------------------------------------------------------

     def new_order_id(self) -> str:
          return f"WOLF_{int(time.time() * 1000)}{self.rng.randint(100, 999)}"

     def _unused_order_id(self) -> str:
          while True:
               candidate = self.new_order_id()
               if not self.store.exists(candidate):
                    return candidate

     @staticmethod
     def new_fulfillment_id() -> str:
          return f"FUL-{uuid.uuid4().hex[:10].upper()}"

     def minimum_for(self, currency: str) -> Decimal:
          return self.minimums[currency]

     def _notify_operators(self, message: str) -> None:
          try:
               self.notifier.notify(message)
          except Exception:
               logger.exception("Operator notification failed")

     def validate_checkout(
          self,
          amount: Union[str, Decimal, float, int, None],
          currency: str,
          customer_name: str,
          customer_email: str,
          product_name: str,
     ) -> Tuple[Decimal, str]:
          """
          Check checkout input before anything is issued or stored.

          Returns:
               (amount as Decimal, normalized currency code)

          Raises:
               ValidationError: On a missing field, bad email, unknown currency
                    or an amount below the currency's minimum.
          """
          currency = (currency or "").strip().upper()
          if currency not in SUPPORTED_CURRENCIES:
               raise ValidationError(f"Unsupported currency: {currency or '(empty)'}")
          if not (customer_name or "").strip():
               raise ValidationError("Customer name is required")
          if not EMAIL_RE.match((customer_email or "").strip()):
               raise ValidationError("A valid email address is required")
          if not (product_name or "").strip():
               raise ValidationError("Product name is required")
          if amount is None or amount == "":
               raise ValidationError("Amount is required")
          try:
               value = Decimal(str(amount)).quantize(Decimal("0.01"))
          except (InvalidOperation, ValueError):
               raise ValidationError(f"Invalid amount: {amount}")
          if not value.is_finite() or value <= 0:
               raise ValidationError(f"Invalid amount: {amount}")
          minimum = self.minimum_for(currency)
          if value < minimum:
               raise ValidationError(f"Minimum order is {minimum} {currency}")
          return value, currency

     # ------------------------------------------------------------------
     # Create
     # ------------------------------------------------------------------

     def create_order(
          self,
          amount: Union[str, Decimal, float, int],
          customer_name: str,
          customer_email: str,
          product_name: str,
          currency: str = "ILS",
          status: OrderStatus = OrderStatus.FULFILLING,
          order_id: Optional[str] = None,
     ) -> CheckoutResult:
          """
          Issue an invoice and persist a new open order.

          Raises:
               ValidationError: Input rejected; nothing issued or stored.
               UpstreamUnavailable: Invoice issuer failed; nothing stored or scheduled.
               DuplicateKey: order_id already exists.
          """
          status = OrderStatus(status)
          if not status.is_open:
               raise ValidationError(f"Orders must start in an open status, not {status.value}")

          value, currency = self.validate_checkout(amount, currency, customer_name, customer_email, product_name)
          amount_usd = value if currency == "USD" else self.rates.to_usd(value)
          order_id = order_id or self._unused_order_id()

          invoice = self.invoices.create_invoice(
               amount_usd,
               order_id,
               f"{config.STORE_NAME} - {product_name.strip()}",
          )

          delay = None
          scheduled_for = None
          if not self.require_payment_confirmation:
               delay = self.rng.uniform(*self.auto_delay_range)
               scheduled_for = utcnow() + timedelta(seconds=delay)

          order = Order(
               order_id=order_id,
               payment_reference=invoice.invoice_id,
               invoice_url=invoice.invoice_url,
               amount=value,
               currency=currency,
               amount_usd=amount_usd,
               customer_name=customer_name.strip(),
               customer_email=customer_email.strip(),
               product_name=product_name.strip(),
               status=status.value,
               audit_log=[audit_entry("Order Created", "checkout")],
               payment_confirmed=False,
               scheduled_for=scheduled_for,
          )
          order = self.store.create(order)
          logger.info("Order %s created: %s %s (%s USD)", order_id, value, currency, amount_usd)

          self._notify_operators(
               f"<b>🆕 New order - {config.STORE_NAME}</b>\n"
               f"Order: {order_id}\n"
               f"Product: {escape(order.product_name)}\n"
               f"Amount: {value} {currency} ({amount_usd} USD)\n"
               f"Customer: {escape(order.customer_name)} &lt;{escape(order.customer_email)}&gt;\n"
               f"Awaiting USDT payment."
          )

          if delay is not None:
               self.scheduler.schedule(order_id, delay, partial(self._auto_complete, order_id, 1))

          return CheckoutResult(order=order, invoice_url=invoice.invoice_url)

     # ------------------------------------------------------------------
     # Admin transitions
     # ------------------------------------------------------------------

     def change_status(self, order_id: str, new_status: Union[str, OrderStatus], actor: str = "admin") -> Order:
          """
          Admin override of an open order's status.

          Raises:
               ValidationError: Unknown status value.
               InvalidTransition: Order already terminal, or target is completed.
               NotFound: Unknown order.
          """
          try:
               target = OrderStatus(new_status)
          except ValueError:
               raise ValidationError(f"Unknown status: {new_status}")
          if target is OrderStatus.COMPLETED:
               raise InvalidTransition("Orders are completed through mark-delivered")

          with self.store.locked(order_id):
               order = self.store.get(order_id)
               if order.is_terminal:
                    raise InvalidTransition(f"Order {order_id} is already {order.status}")
               fields = {"status": target.value}
               if target is OrderStatus.CANCELLED:
                    fields["scheduled_for"] = None
               order = self.store.update(order_id, fields, audit=[f"Status changed to {target.value}"], actor=actor)

          if target is OrderStatus.CANCELLED:
               self.scheduler.cancel(order_id)
          logger.info("Order %s status changed to %s by %s", order_id, target.value, actor)
          return order

     def attach_delivery(
          self,
          order_id: str,
          txid: Optional[str] = None,
          proof_image: Optional[str] = None,
          actor: str = "admin",
     ) -> Order:
          """Set txid and/or the proof-of-delivery image; last write wins per field."""
          fields = {}
          audit = []
          if txid is not None and txid.strip():
               fields["txid"] = txid.strip()
               audit.append(f"TXID set to {fields['txid']}")
          if proof_image:
               fields["delivery_proof_image"] = proof_image
               audit.append("Delivery proof image attached")
          if not fields:
               raise ValidationError("Nothing to update: provide txid or image")
          return self.store.update(order_id, fields, audit=audit, actor=actor)

     def confirm_payment(self, order_id: str, payment_status: str, payment_id: Optional[str] = None) -> Order:
          """
          Record the processor's payment confirmation.

          With REQUIRE_PAYMENT_CONFIRMATION on, this is what arms auto-completion.
          """
          with self.store.locked(order_id):
               order = self.store.get(order_id)
               if order.payment_confirmed:
                    return order
               note = f"Payment confirmed ({payment_status})"
               if payment_id:
                    note += f", payment {payment_id}"
               order = self.store.update(order_id, {"payment_confirmed": True}, audit=[note], actor="processor")

          if self.require_payment_confirmation and not order.is_terminal and order_id not in self.scheduler:
               self.schedule_completion(order_id)
          return order

     # ------------------------------------------------------------------
     # Complete
     # ------------------------------------------------------------------

     def complete(self, order_id: str, method: Union[str, CompletionMethod]) -> Optional[Order]:
          """
          Complete an order exactly once.

          Returns:
               The completed order, or None when this call was a no-op (unknown
               order, already terminal, or an unpaid order under Auto while
               payment confirmation is required).

          Raises:
               NotificationFailure: Customer email failed; status left unchanged.
          """
          method = CompletionMethod(method)
          actor = method.value.lower()

          with self.store.locked(order_id):
               try:
                    order = self.store.get(order_id)
               except NotFound:
                    logger.warning("%s completion skipped: order %s not found", method.value, order_id)
                    return None
               if order.is_terminal:
                    logger.info("%s completion skipped: order %s is %s", method.value, order_id, order.status)
                    return None
               if (
                    method is CompletionMethod.AUTO
                    and self.require_payment_confirmation
                    and not order.payment_confirmed
               ):
                    logger.info("Auto completion skipped: order %s is unpaid", order_id)
                    return None

               fulfillment_id = self.new_fulfillment_id()
               node = self.rng.choice(DELIVERY_NODES)
               self.store.append_audit(
                    order_id,
                    f"{method.value} fulfillment started ({fulfillment_id}) on {node}",
                    actor=actor,
               )

               try:
                    self.notifier.send_delivery_confirmation(order, fulfillment_id)
               except NotificationFailure as e:
                    logger.error("Order %s not completed: %s", order_id, e)
                    raise

               order = self.store.update(
                    order_id,
                    {
                         "status": OrderStatus.COMPLETED.value,
                         "fulfillment_id": fulfillment_id,
                         "delivery_node": node,
                         "execution_time": utcnow(),
                         "scheduled_for": None,
                    },
                    audit=[f"Completed via {method.value} ({fulfillment_id}); confirmation sent to {order.customer_email}"],
                    actor=actor,
               )

          if method is CompletionMethod.MANUAL:
               self.scheduler.cancel(order_id)
          logger.info("Order %s completed via %s (%s)", order_id, method.value, fulfillment_id)
          self._notify_operators(
               f"<b>✅ Order delivered - {config.STORE_NAME}</b>\n"
               f"Order: {order_id}\n"
               f"Method: {method.value}\n"
               f"Fulfillment: {fulfillment_id} via {node}"
          )
          return order

     # ------------------------------------------------------------------
     # Auto-completion
     # ------------------------------------------------------------------

     def schedule_completion(self, order_id: str, delay: Optional[float] = None, attempt: int = 1) -> float:
          """Arm (or re-arm) the order's auto-completion timer and record when it is due."""
          if delay is None:
               delay = self.rng.uniform(*self.auto_delay_range)
          self.store.update(order_id, {"scheduled_for": utcnow() + timedelta(seconds=delay)})
          self.scheduler.schedule(order_id, delay, partial(self._auto_complete, order_id, attempt))
          return delay

     def restore_schedule(self) -> int:
          """Re-arm timers for open orders that were still due when the process stopped."""
          count = 0
          now = utcnow()
          for order in self.store.list_scheduled():
               remaining = max(0.0, (order.scheduled_for - now).total_seconds())
               self.scheduler.schedule(order.order_id, remaining, partial(self._auto_complete, order.order_id, 1))
               count += 1
          if count:
               logger.info("Restored %d auto-completion timer(s)", count)
          return count

     def _auto_complete(self, order_id: str, attempt: int) -> None:
          try:
               self.complete(order_id, CompletionMethod.AUTO)
          except NotificationFailure:
               if attempt < self.max_attempts:
                    logger.warning(
                         "Auto completion of %s failed (attempt %d/%d); retrying in %.0fs",
                         order_id, attempt, self.max_attempts, self.retry_delay,
                    )
                    with self.store.locked(order_id):
                         if self.store.get(order_id).is_terminal:
                              return
                         self.schedule_completion(order_id, self.retry_delay, attempt + 1)
               else:
                    with self.store.locked(order_id):
                         if self.store.get(order_id).is_terminal:
                              return
                         self.store.update(order_id, {"scheduled_for": None})
                    logger.error("Auto completion of %s gave up after %d attempts", order_id, attempt)
                    self._notify_operators(
                         f"<b>⚠️ Auto delivery failed - {config.STORE_NAME}</b>\n"
                         f"Order: {order_id}\n"
                         f"Confirmation email could not be sent after {attempt} attempts."
                    )
