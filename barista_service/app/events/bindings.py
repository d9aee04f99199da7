"""
Logical channel bindings.

Channels are addressed by logical name throughout the service; the broker
destination behind each name comes from configuration and is resolved when
a message is sent.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ..core.exceptions import UnknownChannel
from ..core.setting import BaristaSettings
from .base import MessagePublisher

NEW_ORDERS = "newOrders"
FINISHED_ORDERS = "finishedOrders"


@dataclass(frozen=True)
class OutputChannel:
    """A live publish handle for one logical channel"""

    name: str
    destination: str
    publisher: MessagePublisher

    async def send(self, payload: str, key: Optional[str] = None) -> None:
        await self.publisher.send(self.destination, payload, key=key)


class ChannelBindings:
    """Lookup table from logical channel names to broker destinations"""

    def __init__(
        self,
        inputs: Mapping[str, str],
        outputs: Mapping[str, str],
        publisher: MessagePublisher,
    ):
        self._inputs: Dict[str, str] = dict(inputs)
        self._outputs: Dict[str, OutputChannel] = {
            name: OutputChannel(name=name, destination=destination, publisher=publisher)
            for name, destination in outputs.items()
        }

    @classmethod
    def from_settings(
        cls, settings: BaristaSettings, publisher: MessagePublisher
    ) -> "ChannelBindings":
        return cls(
            inputs={NEW_ORDERS: settings.NEW_ORDERS_DESTINATION},
            outputs={FINISHED_ORDERS: settings.FINISHED_ORDERS_DESTINATION},
            publisher=publisher,
        )

    def resolve(self, name: str) -> OutputChannel:
        try:
            return self._outputs[name]
        except KeyError:
            raise UnknownChannel(f"No destination bound to output channel '{name}'") from None

    def input_destination(self, name: str) -> str:
        try:
            return self._inputs[name]
        except KeyError:
            raise UnknownChannel(f"No destination bound to input channel '{name}'") from None

    def describe(self) -> Dict[str, Dict[str, str]]:
        return {
            "inputs": dict(self._inputs),
            "outputs": {
                name: channel.destination for name, channel in self._outputs.items()
            },
        }
