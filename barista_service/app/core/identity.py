"""Process-wide barista identity."""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class WorkerIdentity:
    """Identifies the worker instance that brewed an order.

    Built once at startup and injected wherever completed work has to be
    attributed, so tests can pass a fixed value.
    """

    prefix: str
    token: str

    @classmethod
    def generate(cls, prefix: str) -> "WorkerIdentity":
        return cls(prefix=prefix, token=uuid.uuid4().hex)

    @property
    def value(self) -> str:
        return f"{self.prefix}{self.token}"

    def __str__(self) -> str:
        return self.value
