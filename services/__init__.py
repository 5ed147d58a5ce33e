# services/__init__.py
from .currency import ExchangeRateProvider
from .exceptions import (
     OrderError,
     ValidationError,
     InvalidTransition,
     NotFound,
     DuplicateKey,
     UpstreamUnavailable,
     NotificationFailure,
)
from .invoice_service import Invoice, InvoiceService
from .lifecycle import CheckoutResult, CompletionMethod, OrderLifecycleManager
from .notifications import NotificationSink
from .order_store import OrderStore
from .scheduler import FulfillmentScheduler

__all__ = [
     "ExchangeRateProvider",
     "OrderError",
     "ValidationError",
     "InvalidTransition",
     "NotFound",
     "DuplicateKey",
     "UpstreamUnavailable",
     "NotificationFailure",
     "Invoice",
     "InvoiceService",
     "CheckoutResult",
     "CompletionMethod",
     "OrderLifecycleManager",
     "NotificationSink",
     "OrderStore",
     "FulfillmentScheduler",
]
