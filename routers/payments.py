# routers/payments.py
"""
Payment notification API.

POST /api/payments/webhook: NOWPayments IPN callback. Marks the order's
payment as confirmed once the processor reports it "confirmed" or "finished".
When NOWPAYMENTS_IPN_SECRET is set, the x-nowpayments-sig header must be the
HMAC-SHA512 of the key-sorted JSON body. Without the secret, notifications
are refused when REQUIRE_PAYMENT_CONFIRMATION is on.
"""
import hashlib
import hmac
import json
import logging
import math
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as SchemaError

import config
from schemas.payment import PaymentNotification, PaymentNotificationResponse
from services import NotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _js_number(value: float) -> str:
     """Format a float the way JavaScript's JSON.stringify does."""
     if not math.isfinite(value):
          return "null"
     if value.is_integer() and abs(value) < 1e21:
          return str(int(value))
     if 1e-6 <= abs(value) < 1e21:
          return format(Decimal(repr(value)), "f")
     mantissa, exponent = repr(value).split("e")
     exponent = int(exponent)
     return f"{mantissa}e{'+' if exponent > 0 else '-'}{abs(exponent)}"


def canonical_json(value) -> str:
     """Key-sorted compact JSON, matching the processor's sorted JSON.stringify."""
     if isinstance(value, dict):
          items = ",".join(
               f"{json.dumps(str(k), ensure_ascii=False)}:{canonical_json(value[k])}"
               for k in sorted(value)
          )
          return "{" + items + "}"
     if isinstance(value, list):
          return "[" + ",".join(canonical_json(v) for v in value) + "]"
     if isinstance(value, float):
          return _js_number(value)
     return json.dumps(value, ensure_ascii=False)


def compute_ipn_signature(payload: dict, secret: str) -> str:
     message = canonical_json(payload)
     return hmac.new(secret.encode(), message.encode(), hashlib.sha512).hexdigest()


def verify_ipn_signature(payload: dict, signature: str, secret: str) -> bool:
     if not signature:
          return False
     return hmac.compare_digest(compute_ipn_signature(payload, secret), signature.lower())


@router.post("/webhook", response_model=PaymentNotificationResponse)
async def nowpayments_webhook(request: Request):
     """
     Receives NOWPayments payment status updates.
     """
     try:
          payload = json.loads(await request.body())
     except ValueError:
          raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
     if not isinstance(payload, dict):
          raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")

     lifecycle = request.app.state.lifecycle
     if lifecycle.require_payment_confirmation and not config.NOWPAYMENTS_IPN_SECRET:
          logger.error("Rejected IPN: payment confirmation is required but NOWPAYMENTS_IPN_SECRET is unset")
          raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Payment notifications are not configured")

     if config.NOWPAYMENTS_IPN_SECRET:
          signature = request.headers.get("x-nowpayments-sig", "")
          if not verify_ipn_signature(payload, signature, config.NOWPAYMENTS_IPN_SECRET):
               logger.warning("Rejected IPN with bad signature for %s", payload.get("order_id"))
               raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid signature")

     try:
          notification = PaymentNotification.model_validate(payload)
     except SchemaError as e:
          raise HTTPException(422, str(e))

     if not notification.is_confirmed:
          logger.info("IPN for %s: %s", notification.order_id, notification.payment_status)
          return PaymentNotificationResponse(
               order_id=notification.order_id,
               payment_status=notification.payment_status,
               payment_confirmed=False,
               message="Ignored non-final payment status",
          )

     payment_id = str(notification.payment_id) if notification.payment_id is not None else None
     try:
          order = await run_in_threadpool(
               lifecycle.confirm_payment,
               notification.order_id,
               notification.payment_status,
               payment_id,
          )
     except NotFound:
          raise HTTPException(status.HTTP_404_NOT_FOUND, f"Order {notification.order_id} not found")

     return PaymentNotificationResponse(
          order_id=order.order_id,
          payment_status=notification.payment_status,
          payment_confirmed=bool(order.payment_confirmed),
     )
