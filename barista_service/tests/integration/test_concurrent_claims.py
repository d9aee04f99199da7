"""
Two barista workers racing for the same orders on one shared database.
"""

import asyncio

import pytest

from barista_service.app.core.exceptions import ProcessingOutcome
from barista_service.app.core.identity import WorkerIdentity
from barista_service.app.events.producers import FinishedOrderPublisher
from barista_service.app.models.order import OrderState
from barista_service.app.services.intake_handler import OrderIntakeHandler
from barista_service.app.services.outbox_relay import OutboxRelay


def make_worker(database, bindings, token):
    relay = OutboxRelay(
        session_factory=database.async_session_maker,
        publisher=FinishedOrderPublisher(bindings),
        retry_backoff=0.0,
        max_backoff=0.0,
    )
    return OrderIntakeHandler(
        session_factory=database.async_session_maker,
        identity=WorkerIdentity("springbucks-", token),
        relay=relay,
    )


@pytest.mark.integration
class TestConcurrentClaims:
    @pytest.mark.asyncio
    async def test_only_one_worker_brews_an_order(
        self, database, bindings, publisher, make_order, load_order
    ):
        order = await make_order(state=OrderState.PLACED)
        first = make_worker(database, bindings, "a")
        second = make_worker(database, bindings, "b")

        results = await asyncio.gather(first.handle(order.id), second.handle(order.id))

        outcomes = sorted(result.outcome.value for result in results)
        assert outcomes == sorted(
            [ProcessingOutcome.BREWED.value, ProcessingOutcome.INVALID_STATE_TRANSITION.value]
        )
        assert publisher.payloads("finishedOrders") == [str(order.id)]

        brewed = await load_order(order.id)
        assert brewed.state == OrderState.BREWED.value
        assert brewed.barista_id in {"springbucks-a", "springbucks-b"}

    @pytest.mark.asyncio
    async def test_each_order_is_published_exactly_once(
        self, database, bindings, publisher, make_order, load_order
    ):
        orders = [await make_order() for _ in range(5)]
        workers = [make_worker(database, bindings, token) for token in ("a", "b")]

        results = await asyncio.gather(
            *(worker.handle(order.id) for order in orders for worker in workers)
        )

        brewed = [r for r in results if r.outcome is ProcessingOutcome.BREWED]
        assert len(brewed) == len(orders)
        assert sorted(publisher.payloads("finishedOrders")) == sorted(
            str(order.id) for order in orders
        )
        for order in orders:
            assert (await load_order(order.id)).state == OrderState.BREWED.value
