# services/invoice_service.py
"""
Invoice Service - NOWPayments hosted invoice creation.

Given a USD amount and an order id, asks NOWPayments for a hosted invoice and
returns its id and redirect URL. Any failure surfaces as UpstreamUnavailable
so the checkout aborts without persisting anything.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests

import config
from .exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Invoice:
     invoice_id: str
     invoice_url: str


class InvoiceService:
     """Client for the NOWPayments invoice API."""

     def __init__(
          self,
          api_key: Optional[str] = config.NOWPAYMENTS_API_KEY,
          base_url: str = config.NOWPAYMENTS_BASE_URL,
          site_url: str = config.BASE_URL,
          pay_currency: str = config.NOWPAYMENTS_PAY_CURRENCY,
          timeout: float = config.INVOICE_TIMEOUT_SECONDS,
          http: Optional[requests.Session] = None,
     ):
          self.api_key = api_key
          self.base_url = base_url.rstrip("/")
          self.site_url = site_url.rstrip("/")
          self.pay_currency = pay_currency
          self.timeout = timeout
          self._http = http or requests.Session()

     def _headers(self) -> dict:
          return {
               "x-api-key": self.api_key or "",
               "Content-Type": "application/json",
          }

     def create_invoice(self, amount_usd: Decimal, order_id: str, description: str) -> Invoice:
          """
          Create a hosted invoice.

          Args:
               amount_usd: Amount already converted to USD
               order_id: Our order identifier, echoed back by the IPN webhook
               description: Shown to the payer on the invoice page

          Returns:
               Invoice with the provider id and the URL to redirect the buyer to

          Raises:
               UpstreamUnavailable: If the provider is unreachable, times out or refuses.
          """
          if not self.api_key:
               raise UpstreamUnavailable("NOWPAYMENTS_API_KEY is not set")

          payload = {
               "price_amount": float(amount_usd),
               "price_currency": "usd",
               "pay_currency": self.pay_currency,
               "order_id": order_id,
               "order_description": description,
               "ipn_callback_url": f"{self.site_url}/api/payments/webhook",
               "success_url": f"{self.site_url}/success?order_id={order_id}",
               "cancel_url": f"{self.site_url}/cancel",
          }

          try:
               response = self._http.post(
                    f"{self.base_url}/invoice",
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout,
               )
          except requests.RequestException as e:
               logger.error("NOWPayments request failed for %s: %s", order_id, e)
               raise UpstreamUnavailable(f"Invoice request failed: {e}") from e

          if response.status_code not in (200, 201):
               logger.error("NOWPayments error for %s: %s", order_id, response.text)
               raise UpstreamUnavailable(f"NOWPayments error: {response.status_code}")

          try:
               data = response.json()
               invoice = Invoice(invoice_id=str(data["id"]), invoice_url=data["invoice_url"])
          except (KeyError, TypeError, ValueError) as e:
               raise UpstreamUnavailable(f"Unexpected NOWPayments response: {e}") from e

          logger.info("Invoice %s created for %s (%s USD)", invoice.invoice_id, order_id, amount_usd)
          return invoice
