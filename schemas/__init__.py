# schemas/__init__.py
from .order import (
     OrderStatusEnum,
     AuditEntry,
     OrderResponse,
     OrderListResponse,
     StatusUpdateRequest,
     MarkDeliveredRequest,
     MarkDeliveredResponse,
     LoginRequest,
     LoginResponse,
)
from .payment import PaymentNotification, PaymentNotificationResponse

__all__ = [
     "OrderStatusEnum",
     "AuditEntry",
     "OrderResponse",
     "OrderListResponse",
     "StatusUpdateRequest",
     "MarkDeliveredRequest",
     "MarkDeliveredResponse",
     "LoginRequest",
     "LoginResponse",
     "PaymentNotification",
     "PaymentNotificationResponse",
]
