# services/exceptions.py
"""
Errors raised by the order services.

Routers translate these into HTTP responses; services never build responses.
"""


class OrderError(Exception):
     """Base class for order service errors."""


class ValidationError(OrderError, ValueError):
     """Bad checkout input (amount below minimum, missing customer fields)."""


class InvalidTransition(OrderError, ValueError):
     """Requested status change is not allowed from the order's current state."""


class NotFound(OrderError, LookupError):
     """No order with the given order_id."""

     def __init__(self, order_id: str):
          super().__init__(f"Order {order_id} not found")
          self.order_id = order_id


class DuplicateKey(OrderError):
     """An order with the same order_id already exists."""

     def __init__(self, order_id: str):
          super().__init__(f"Order {order_id} already exists")
          self.order_id = order_id


class UpstreamUnavailable(OrderError):
     """Invoice issuer or rate provider failed or timed out."""


class NotificationFailure(OrderError):
     """Email or chat dispatch failed."""
