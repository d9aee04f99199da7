"""
Brewing transition rule.

Orders move through PLACED -> PAID -> BREWING -> BREWED -> TAKEN, with
CANCELLED outside the flow. This worker only ever moves an order from a
pre-brew state to BREWED.
"""

from typing import FrozenSet, Optional, Union

from ..core.exceptions import InvalidStateTransition
from ..models.order import OrderState

PRE_BREW_STATES: FrozenSet[OrderState] = frozenset(
    {OrderState.PLACED, OrderState.PAID, OrderState.BREWING}
)


def parse_state(value: Union[str, OrderState]) -> Optional[OrderState]:
    if isinstance(value, OrderState):
        return value
    try:
        return OrderState(value)
    except ValueError:
        return None


def next_state(
    current: Union[str, OrderState], order_id: Optional[int] = None
) -> OrderState:
    """Return the state an order moves to when brewed.

    Raises InvalidStateTransition for orders already brewed, taken,
    cancelled, or in a state this service does not know.
    """
    state = parse_state(current)
    if state not in PRE_BREW_STATES:
        shown = state.value if state is not None else str(current)
        raise InvalidStateTransition(
            f"Order cannot be brewed from state {shown}",
            order_id=order_id,
            state=shown,
        )
    return OrderState.BREWED
