"""
Pytest configuration and fixtures for Barista Service tests.
"""

import os
from typing import Any, AsyncGenerator, List, Optional, Tuple

import pytest

# Set up test environment variables before importing anything else
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("SERVICE_NAME", "barista-service")
os.environ.setdefault("BARISTA_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
os.environ.setdefault("KAFKA_GROUP_ID", "barista-service-test")
os.environ.setdefault("NEW_ORDERS_DESTINATION", "newOrders")
os.environ.setdefault("FINISHED_ORDERS_DESTINATION", "finishedOrders")
os.environ.setdefault("BARISTA_PREFIX", "springbucks-")

from barista_service.app.core.database import BaristaServiceDatabaseManager
from barista_service.app.core.exceptions import PublishFailure
from barista_service.app.core.identity import WorkerIdentity
from barista_service.app.core.setting import get_settings
from barista_service.app.events.base import MessagePublisher
from barista_service.app.events.bindings import ChannelBindings
from barista_service.app.events.producers import FinishedOrderPublisher
from barista_service.app.models.order import Order, OrderState
from barista_service.app.services.intake_handler import OrderIntakeHandler
from barista_service.app.services.outbox_relay import OutboxRelay


class InMemoryPublisher(MessagePublisher):
    """Broker stand-in that records every accepted message."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Optional[str]]] = []
        self.failures_remaining = 0

    def fail_next(self, times: int = 1) -> None:
        self.failures_remaining = times

    async def send(
        self, destination: str, payload: str, key: Optional[str] = None
    ) -> None:
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise PublishFailure(f"broker rejected message for {destination}")
        self.sent.append((destination, payload, key))

    def payloads(self, destination: str) -> List[str]:
        return [payload for dest, payload, _ in self.sent if dest == destination]


@pytest.fixture(scope="session")
def test_settings():
    """Get test settings."""
    return get_settings()


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[BaristaServiceDatabaseManager, None]:
    """File-backed SQLite database, fresh for every test."""
    manager = BaristaServiceDatabaseManager(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'barista.db'}"
    )
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def publisher() -> InMemoryPublisher:
    return InMemoryPublisher()


@pytest.fixture
def bindings(test_settings, publisher) -> ChannelBindings:
    return ChannelBindings.from_settings(test_settings, publisher)


@pytest.fixture
def identity() -> WorkerIdentity:
    return WorkerIdentity(prefix="springbucks-", token="test-barista")


@pytest.fixture
def relay(database, bindings) -> OutboxRelay:
    return OutboxRelay(
        session_factory=database.async_session_maker,
        publisher=FinishedOrderPublisher(bindings),
        lease_seconds=30.0,
        retry_backoff=0.0,
        max_backoff=0.0,
        batch_size=10,
        poll_interval=0.01,
    )


@pytest.fixture
def intake_handler(database, identity, relay) -> OrderIntakeHandler:
    return OrderIntakeHandler(
        session_factory=database.async_session_maker,
        identity=identity,
        relay=relay,
    )


@pytest.fixture
def make_order(database):
    """Insert an order directly, optionally with a fixed id."""

    async def _make_order(
        state: OrderState = OrderState.PLACED,
        order_id: Optional[int] = None,
        customer: str = "Li Lei",
        waiter_id: str = "waiter-1",
        barista_id: Optional[str] = None,
    ) -> Order:
        async with database.async_session_maker() as session:
            async with session.begin():
                order = Order(
                    customer=customer,
                    waiter_id=waiter_id,
                    state=state.value,
                    barista_id=barista_id,
                )
                if order_id is not None:
                    order.id = order_id
                session.add(order)
            return order

    return _make_order


@pytest.fixture
def load_order(database):
    """Read an order back in a fresh session."""

    async def _load_order(order_id: int) -> Optional[Order]:
        async with database.async_session_maker() as session:
            return await session.get(Order, order_id)

    return _load_order


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "integration: tests that exercise several components together")
