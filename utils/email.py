# utils/email.py
from html import escape

import requests

import config

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


def send_email(to_email: str, subject: str, html: str, to_name: str = ""):
     if not config.BREVO_API_KEY:
          raise Exception("BREVO_API_KEY is not set")

     recipient = {"email": to_email}
     if to_name:
          recipient["name"] = to_name

     response = requests.post(
          BREVO_URL,
          headers={
               "api-key": config.BREVO_API_KEY,
               "Content-Type": "application/json",
          },
          json={
               "sender": {"name": config.EMAIL_SENDER_NAME, "email": config.EMAIL_SENDER_ADDRESS},
               "to": [recipient],
               "subject": subject,
               "htmlContent": html,
          },
          timeout=config.NOTIFY_TIMEOUT_SECONDS,
     )
     if response.status_code not in (200, 201, 202):
          raise Exception(f"Brevo error: {response.text}")


def delivery_email_html(customer_name: str, product_name: str, order_id: str, fulfillment_id: str) -> str:
     return f"""
          <h2>{config.STORE_NAME}</h2>
          <p>Hi {escape(customer_name)},</p>
          <p>Your order <b>{order_id}</b> for <b>{escape(product_name)}</b> has been delivered.</p>
          <p>Fulfillment ID: <span style="color:#00f2ff">{fulfillment_id}</span></p>
          <p>Thank you for shopping with us.</p>
     """
