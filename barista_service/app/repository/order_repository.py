from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.order import Order, OrderState


class OrderRepository:
    """Order storage scoped to the caller's session.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_order(
        self,
        customer: str,
        waiter_id: str,
        state: OrderState = OrderState.PLACED,
    ) -> Order:
        """Create a new order"""
        order = Order(customer=customer, waiter_id=waiter_id, state=state.value)
        self.session.add(order)
        await self.session.flush()
        return order

    async def get_order_by_id(
        self, order_id: int, for_update: bool = False
    ) -> Optional[Order]:
        """Get order by ID, optionally locking the row for the transaction"""
        query = select(Order).where(Order.id == order_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def save(self, order: Order) -> Order:
        """Persist an order, refreshing updated_at"""
        if order.id is not None:
            order.updated_at = utcnow()
        self.session.add(order)
        await self.session.flush()
        return order

    async def claim_order(
        self,
        order_id: int,
        expected_states: Iterable[OrderState],
        new_state: OrderState,
        barista_id: str,
    ) -> bool:
        """Move an order to new_state only if it is still in one of expected_states.

        Returns False when the update matched no row, meaning another
        transaction changed the order first.
        """
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.state.in_([state.value for state in expected_states]),
            )
            .values(state=new_state.value, barista_id=barista_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
