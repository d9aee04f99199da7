from datetime import datetime

from sqlalchemy import DateTime, Integer, String, TEXT
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaristaServiceBaseModel


class OutboxMessage(BaristaServiceBaseModel):
    """Outbound message recorded in the same transaction as the state change"""

    __tablename__ = "outbox_messages"

    order_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )  # Reference to orders.id (no FK)
    channel: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[str] = mapped_column(TEXT, nullable=False)

    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(TEXT, nullable=True)
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False), nullable=True, index=True
    )
