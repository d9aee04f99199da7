"""
Barista Service messaging base classes and interfaces.
"""

from abc import ABC, abstractmethod
from typing import Optional


class MessagePublisher(ABC):
    """Abstract base class for broker publishers"""

    @abstractmethod
    async def send(
        self, destination: str, payload: str, key: Optional[str] = None
    ) -> None:
        """Send a payload to a destination; raise PublishFailure if not accepted"""
        pass


class MessageHandler(ABC):
    """Abstract base class for inbound message handlers"""

    @abstractmethod
    async def on_message(self, value: bytes) -> bool:
        """Handle one message; return True to acknowledge, False to redeliver"""
        pass
