"""
Barista service consumer for the new-orders channel.
"""

import json
from typing import Union

from ..core.exceptions import InvalidReference, ProcessingResult
from ..core.setting import get_settings
from ..models.order import MAX_ORDER_ID
from ..services.intake_handler import OrderIntakeHandler
from ..utils.logging import setup_barista_logging as setup_logging
from .base import MessageHandler

logger = setup_logging("barista-consumer-events", log_level=get_settings().LOG_LEVEL)


def decode_order_id(raw: Union[bytes, str, None]) -> int:
    """Read the bare order identifier carried by a new-orders message.

    Accepts a JSON number, a JSON string of digits, or plain digits.
    """
    if raw is None:
        raise InvalidReference("Empty new-orders payload")
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    text = text.strip()

    try:
        value = json.loads(text)
    except ValueError:
        value = text

    if isinstance(value, bool):
        raise InvalidReference(f"Malformed order reference: {text!r}")
    if isinstance(value, str):
        value = value.strip()
        if value.isascii() and value.isdigit():
            value = int(value)
    if not isinstance(value, int) or value < 0:
        raise InvalidReference(f"Malformed order reference: {text!r}")
    if value > MAX_ORDER_ID:
        raise InvalidReference(f"Order reference out of range: {text!r}")
    return value


class NewOrderConsumer(MessageHandler):
    """Feeds new-orders messages to the intake handler"""

    def __init__(self, intake_handler: OrderIntakeHandler):
        self.intake_handler = intake_handler

    async def on_message(self, value: bytes) -> bool:
        try:
            order_id = decode_order_id(value)
        except InvalidReference as e:
            logger.error(
                "Discarding malformed new-orders message",
                extra={"payload": repr(value), "error": e.message},
            )
            return True

        result = await self.intake_handler.handle(order_id)
        return self.acknowledge(result)

    @staticmethod
    def acknowledge(result: ProcessingResult) -> bool:
        """Only transient storage failures are redelivered"""
        return not result.should_redeliver
