"""
Events module for the Barista Service.

Channels:
    - newOrders: inbound order identifiers, consumed by NewOrderConsumer
    - finishedOrders: outbound completion messages, sent by FinishedOrderPublisher

Both channels carry the bare order identifier as their payload. Broker
destinations are bound to the logical names at startup by ChannelBindings.
"""

from .bindings import FINISHED_ORDERS, NEW_ORDERS, ChannelBindings, OutputChannel
from .consumers import NewOrderConsumer, decode_order_id
from .producers import FinishedOrderPublisher

__all__ = [
    # Channels
    "NEW_ORDERS",
    "FINISHED_ORDERS",
    "ChannelBindings",
    "OutputChannel",
    # Producers
    "FinishedOrderPublisher",
    # Consumers
    "NewOrderConsumer",
    "decode_order_id",
]
