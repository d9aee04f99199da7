from enum import Enum

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaristaServiceBaseModel


# Upper bound of the Integer primary key
MAX_ORDER_ID = 2**31 - 1


class OrderState(Enum):
    PLACED = "PLACED"
    PAID = "PAID"
    BREWING = "BREWING"
    BREWED = "BREWED"
    TAKEN = "TAKEN"
    CANCELLED = "CANCELLED"


class Order(BaristaServiceBaseModel):
    __tablename__ = "orders"

    customer: Mapped[str] = mapped_column(String(255), nullable=False)
    waiter_id: Mapped[str] = mapped_column(String(255), nullable=False)
    barista_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    state: Mapped[str] = mapped_column(
        String(20), default=OrderState.PLACED.value, nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} state={self.state} barista_id={self.barista_id!r}>"
