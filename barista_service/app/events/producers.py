from typing import Optional

from ..core.setting import get_settings
from ..utils.logging import setup_barista_logging as setup_logging
from .bindings import FINISHED_ORDERS, ChannelBindings

logger = setup_logging("barista-producer-events", log_level=get_settings().LOG_LEVEL)


class FinishedOrderPublisher:
    """Emits completion messages for brewed orders.

    The body of a completion message is the bare order identifier.
    """

    def __init__(self, bindings: ChannelBindings, channel: str = FINISHED_ORDERS):
        self.bindings = bindings
        self.channel = channel

    async def publish(self, order_id: int) -> None:
        """Publish the completion message for one order"""
        await self.send(self.channel, str(order_id), key=str(order_id))

    async def send(self, channel: str, payload: str, key: Optional[str] = None) -> None:
        """Send a raw payload to a logical channel, resolving its destination now"""
        output = self.bindings.resolve(channel)
        await output.send(payload, key=key)
        logger.info(
            "Published completion message",
            extra={
                "channel": channel,
                "destination": output.destination,
                "payload": payload,
            },
        )
