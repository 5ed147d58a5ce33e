# schemas/payment.py
"""
Pydantic schemas for the NOWPayments IPN webhook.
"""
from decimal import Decimal
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict

CONFIRMED_PAYMENT_STATUSES = ("confirmed", "finished")


class PaymentNotification(BaseModel):
     """IPN body posted by NOWPayments when a payment changes state."""

     payment_id: Optional[Union[int, str]] = None
     invoice_id: Optional[Union[int, str]] = None
     payment_status: str
     order_id: str
     price_amount: Optional[Decimal] = None
     price_currency: Optional[str] = None
     pay_currency: Optional[str] = None
     actually_paid: Optional[Decimal] = None

     model_config = ConfigDict(
          extra="allow",
          json_schema_extra={
               "example": {
                    "payment_id": 5077125051,
                    "invoice_id": 4522625843,
                    "payment_status": "finished",
                    "order_id": "WOLF_1730000000000123",
                    "price_amount": 32.43,
                    "price_currency": "usd",
                    "pay_currency": "usdttrc20",
                    "actually_paid": 32.43,
               }
          },
     )

     @property
     def is_confirmed(self) -> bool:
          return self.payment_status.lower() in CONFIRMED_PAYMENT_STATUSES


class PaymentNotificationResponse(BaseModel):
     order_id: str
     payment_status: str
     payment_confirmed: bool
     message: Optional[str] = None
