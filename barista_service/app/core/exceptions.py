"""
Barista Service error taxonomy and processing results.

Errors are raised inside the service layer and converted into a
``ProcessingResult`` at the intake boundary, which the broker integration
inspects to decide between acknowledging and redelivering a message.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ProcessingOutcome(str, Enum):
    """Outcome of handling one inbound order message"""

    BREWED = "brewed"
    INVALID_REFERENCE = "invalid_reference"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    STORAGE_UNAVAILABLE = "storage_unavailable"

    @property
    def retryable(self) -> bool:
        return self is ProcessingOutcome.STORAGE_UNAVAILABLE


class BaristaServiceError(Exception):
    """Base class for all barista service errors"""

    outcome: Optional[ProcessingOutcome] = None

    def __init__(self, message: str, order_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.order_id = order_id


class InvalidReference(BaristaServiceError):
    """The message does not reference an existing order"""

    outcome = ProcessingOutcome.INVALID_REFERENCE


class InvalidStateTransition(BaristaServiceError):
    """The order exists but is not eligible for brewing"""

    outcome = ProcessingOutcome.INVALID_STATE_TRANSITION

    def __init__(
        self, message: str, order_id: Optional[int] = None, state: Optional[str] = None
    ):
        super().__init__(message, order_id)
        self.state = state


class StorageUnavailable(BaristaServiceError):
    """Transient storage failure; the transaction was rolled back"""

    outcome = ProcessingOutcome.STORAGE_UNAVAILABLE


class PublishFailure(BaristaServiceError):
    """The broker did not accept an outbound message"""


class UnknownChannel(BaristaServiceError):
    """No destination is bound to a logical channel name"""


@dataclass(frozen=True)
class ProcessingResult:
    """Typed result returned by the intake handler"""

    order_id: Optional[int]
    outcome: ProcessingOutcome
    published: bool = False
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is ProcessingOutcome.BREWED

    @property
    def should_redeliver(self) -> bool:
        return self.outcome.retryable

    @classmethod
    def brewed(cls, order_id: int, published: bool) -> "ProcessingResult":
        return cls(order_id=order_id, outcome=ProcessingOutcome.BREWED, published=published)

    @classmethod
    def from_error(cls, error: BaristaServiceError) -> "ProcessingResult":
        if error.outcome is None:
            raise ValueError(f"{type(error).__name__} has no processing outcome")
        return cls(order_id=error.order_id, outcome=error.outcome, detail=error.message)
