# schemas/order.py
"""
Pydantic schemas for the admin order API.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, field_validator
from enum import Enum


class OrderStatusEnum(str, Enum):
     """Order lifecycle status options."""
     WAITING = "waiting"
     PENDING = "pending"
     PROCESSING = "processing"
     FULFILLING = "fulfilling"
     COMPLETED = "completed"
     CANCELLED = "cancelled"


class AuditEntry(BaseModel):
     """One audit log line."""
     timestamp: str
     actor: str = "system"
     message: str


class OrderResponse(BaseModel):
     """Schema for order response."""
     order_id: str
     payment_reference: str
     invoice_url: Optional[str] = None
     amount: Decimal
     currency: str
     amount_usd: Optional[Decimal] = None
     customer_name: str
     customer_email: str
     product_name: str
     status: OrderStatusEnum
     audit_log: List[AuditEntry] = Field(default_factory=list)
     payment_confirmed: bool = False
     scheduled_for: Optional[datetime] = None
     txid: Optional[str] = None
     delivery_proof_image: Optional[str] = None
     fulfillment_id: Optional[str] = None
     delivery_node: Optional[str] = None
     execution_time: Optional[datetime] = None
     created_at: datetime

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "order_id": "WOLF_1730000000000123",
                    "payment_reference": "5077125051",
                    "invoice_url": "https://nowpayments.io/payment/?iid=5077125051",
                    "amount": "120.00",
                    "currency": "ILS",
                    "amount_usd": "32.43",
                    "customer_name": "Dana Levi",
                    "customer_email": "dana@example.com",
                    "product_name": "1000 V-Bucks",
                    "status": "fulfilling",
                    "audit_log": [
                         {"timestamp": "2026-10-19T10:30:00", "actor": "checkout", "message": "Order Created"}
                    ],
                    "created_at": "2026-10-19T10:30:00",
               }
          }
     )

     @field_validator("audit_log", mode="before")
     @classmethod
     def _missing_audit_log(cls, value):
          return value or []

     @field_validator("payment_confirmed", mode="before")
     @classmethod
     def _missing_payment_flag(cls, value):
          return bool(value)


class OrderListResponse(BaseModel):
     """Schema for the admin order list."""
     orders: List[OrderResponse]
     total: int


class StatusUpdateRequest(BaseModel):
     """Body for POST /api/admin/update-status."""
     orderId: str = Field(..., min_length=1)
     status: OrderStatusEnum

     model_config = ConfigDict(
          json_schema_extra={"example": {"orderId": "WOLF_1730000000000123", "status": "processing"}}
     )


class MarkDeliveredRequest(BaseModel):
     """Body for POST /api/admin/mark-delivered."""
     orderId: str = Field(..., min_length=1)


class MarkDeliveredResponse(BaseModel):
     success: bool
     completed: bool
     order: Optional[OrderResponse] = None
     message: Optional[str] = None


class LoginRequest(BaseModel):
     password: str


class LoginResponse(BaseModel):
     success: bool
     token: Optional[str] = None
