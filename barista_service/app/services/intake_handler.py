"""
Brewing intake: claims a placed order and records its completion message.

One call handles one inbound message inside a single unit of work that
spans the read, the state check, the conditional update and the outbox
insert. Either all of it commits or none of it does.
"""

from sqlalchemy.exc import DataError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import (
    InvalidReference,
    InvalidStateTransition,
    ProcessingResult,
    PublishFailure,
    StorageUnavailable,
)
from ..core.identity import WorkerIdentity
from ..core.setting import get_settings
from ..events.bindings import FINISHED_ORDERS
from ..models.order import MAX_ORDER_ID
from ..repository.order_repository import OrderRepository
from ..repository.outbox_repository import OutboxRepository
from ..utils.logging import setup_barista_logging as setup_logging
from .outbox_relay import OutboxRelay
from .state_transition import PRE_BREW_STATES, next_state

logger = setup_logging("barista_intake", log_level=get_settings().LOG_LEVEL)


class OrderIntakeHandler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identity: WorkerIdentity,
        relay: OutboxRelay,
        lock_rows: bool = False,
        channel: str = FINISHED_ORDERS,
    ):
        self.session_factory = session_factory
        self.identity = identity
        self.relay = relay
        self.lock_rows = lock_rows
        self.channel = channel

    async def handle(self, order_id: int) -> ProcessingResult:
        """Brew one order and emit its completion message"""
        try:
            outbox_id = await self._claim(order_id)
        except InvalidReference as e:
            logger.error(
                "Order reference not found; discarding message",
                extra={"order_id": order_id, "outcome": e.outcome.value},
            )
            return ProcessingResult.from_error(e)
        except InvalidStateTransition as e:
            logger.info(
                "Order not eligible for brewing; ignoring message",
                extra={"order_id": order_id, "state": e.state, "outcome": e.outcome.value},
            )
            return ProcessingResult.from_error(e)
        except StorageUnavailable as e:
            logger.warning(
                "Storage unavailable; message will be redelivered",
                extra={"order_id": order_id, "error": e.message, "outcome": e.outcome.value},
            )
            return ProcessingResult.from_error(e)

        published = await self._publish(order_id, outbox_id)
        logger.info(
            "Order brewed",
            extra={
                "order_id": order_id,
                "barista_id": self.identity.value,
                "published": published,
            },
        )
        return ProcessingResult.brewed(order_id, published=published)

    async def _claim(self, order_id: int) -> int:
        if not 0 <= order_id <= MAX_ORDER_ID:
            raise InvalidReference(
                f"Order reference {order_id} is out of range", order_id=order_id
            )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    orders = OrderRepository(session)
                    order = await orders.get_order_by_id(order_id, for_update=self.lock_rows)
                    if order is None:
                        raise InvalidReference(
                            f"Order {order_id} does not exist", order_id=order_id
                        )

                    target = next_state(order.state, order_id=order_id)
                    claimed = await orders.claim_order(
                        order_id,
                        expected_states=PRE_BREW_STATES,
                        new_state=target,
                        barista_id=self.identity.value,
                    )
                    if not claimed:
                        raise InvalidStateTransition(
                            f"Order {order_id} was claimed concurrently",
                            order_id=order_id,
                            state=target.value,
                        )

                    message = await OutboxRepository(session).add_message(
                        order_id=order_id, channel=self.channel, payload=str(order_id)
                    )
                    return message.id
        except DataError as e:
            # Value the column type cannot hold
            raise InvalidReference(str(e), order_id=order_id) from e
        except SQLAlchemyError as e:
            raise StorageUnavailable(str(e), order_id=order_id) from e

    async def _publish(self, order_id: int, outbox_id: int) -> bool:
        # The order is committed at this point; a failure only delays the
        # completion message until the relay retries it.
        try:
            return await self.relay.dispatch(outbox_id)
        except PublishFailure as e:
            logger.error(
                "Completion publish failed after commit; outbox will retry",
                extra={"order_id": order_id, "outbox_id": outbox_id, "error": e.message},
            )
        except SQLAlchemyError as e:
            logger.error(
                "Outbox bookkeeping failed after commit; outbox will retry",
                extra={"order_id": order_id, "outbox_id": outbox_id, "error": str(e)},
            )
        return False
