"""
Barista Service Models

All models inherit from BaristaServiceBaseModel which provides common fields.
"""

from .base import BaristaServiceBase, BaristaServiceBaseModel, utcnow
from .order import MAX_ORDER_ID, Order, OrderState
from .outbox import OutboxMessage

__all__ = [
    # Base classes
    "BaristaServiceBase",
    "BaristaServiceBaseModel",
    "utcnow",
    # Models
    "Order",
    "MAX_ORDER_ID",
    "OrderState",
    "OutboxMessage",
]
