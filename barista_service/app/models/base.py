from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the column definitions below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaristaServiceBase(DeclarativeBase):
    """Base class for all Barista Service database models."""

    pass


class BaristaServiceBaseModel(BaristaServiceBase):
    """Base model with common fields for Barista Service."""

    __abstract__ = True
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
