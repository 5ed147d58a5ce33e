# services/notifications.py
"""
Notification Sink - operator chat messages and customer emails.

notify() is fire-and-forget: failures are logged and swallowed.
send_delivery_confirmation() is the one dispatch the lifecycle depends on, so
it raises NotificationFailure instead.
"""
import logging
from typing import Iterable, Optional

import requests

import config
from models import Order
from utils.email import delivery_email_html, send_email
from .exceptions import NotificationFailure

logger = logging.getLogger(__name__)


class NotificationSink:
     """Telegram operator alerts plus Brevo customer email."""

     def __init__(
          self,
          telegram_token: Optional[str] = config.TELEGRAM_BOT_TOKEN,
          chat_ids: Iterable[str] = tuple(config.TELEGRAM_CHAT_IDS),
          timeout: float = config.NOTIFY_TIMEOUT_SECONDS,
     ):
          self.telegram_token = telegram_token
          self.chat_ids = list(chat_ids)
          self.timeout = timeout

     def notify(self, message: str) -> None:
          """Send an HTML message to every operator chat. Never raises."""
          if not self.telegram_token or not self.chat_ids:
               logger.debug("Telegram not configured; dropping notification")
               return
          url = f"https://api.telegram.org/bot{self.telegram_token}/sendMessage"
          for chat_id in self.chat_ids:
               try:
                    response = requests.post(
                         url,
                         json={"chat_id": chat_id, "text": message, "parse_mode": "HTML"},
                         timeout=self.timeout,
                    )
                    if response.status_code != 200:
                         logger.error("Telegram error for chat %s: %s", chat_id, response.text)
               except requests.RequestException as e:
                    logger.error("Telegram error for chat %s: %s", chat_id, e)

     def send_delivery_confirmation(self, order: Order, fulfillment_id: str) -> None:
          """
          Email the customer that the order was delivered.

          Raises:
               NotificationFailure: If the email could not be sent.
          """
          html = delivery_email_html(order.customer_name, order.product_name, order.order_id, fulfillment_id)
          try:
               send_email(
                    order.customer_email,
                    f"{config.STORE_NAME} - Order {order.order_id} delivered",
                    html,
                    to_name=order.customer_name,
               )
          except Exception as e:
               raise NotificationFailure(f"Delivery email for {order.order_id} failed: {e}") from e
          logger.info("Delivery confirmation for %s sent to %s", order.order_id, order.customer_email)
