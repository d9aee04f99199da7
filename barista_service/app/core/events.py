"""
Barista Service Event Management
Initializes and tears down the publisher, channel bindings, outbox relay and
new-orders subscriber for the process.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..events.base.kafka_client import KafkaMessagePublisher, KafkaMessageSubscriber
from ..events.bindings import NEW_ORDERS, ChannelBindings
from ..events.consumers import NewOrderConsumer
from ..events.producers import FinishedOrderPublisher
from ..services.intake_handler import OrderIntakeHandler
from ..services.outbox_relay import OutboxRelay
from .database import BaristaServiceDatabaseManager
from .identity import WorkerIdentity
from .setting import BaristaSettings

logger = logging.getLogger(__name__)


@dataclass
class EventRuntime:
    """Everything the worker wires together at startup"""

    identity: WorkerIdentity
    publisher: KafkaMessagePublisher
    bindings: ChannelBindings
    relay: OutboxRelay
    intake_handler: OrderIntakeHandler
    subscriber: KafkaMessageSubscriber
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)
    relay_task: Optional[asyncio.Task] = None


_runtime: Optional[EventRuntime] = None


def build_event_runtime(
    settings: BaristaSettings,
    database: BaristaServiceDatabaseManager,
    identity: Optional[WorkerIdentity] = None,
) -> EventRuntime:
    """Wire the worker components without connecting to anything"""
    identity = identity or WorkerIdentity.generate(settings.BARISTA_PREFIX)

    publisher = KafkaMessagePublisher(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        client_id=f"{settings.KAFKA_CLIENT_ID}-producer",
        send_timeout=settings.PUBLISH_TIMEOUT,
    )
    bindings = ChannelBindings.from_settings(settings, publisher)
    relay = OutboxRelay(
        session_factory=database.async_session_maker,
        publisher=FinishedOrderPublisher(bindings),
        lease_seconds=settings.OUTBOX_LEASE_SECONDS,
        retry_backoff=settings.OUTBOX_RETRY_BACKOFF,
        max_backoff=settings.OUTBOX_MAX_BACKOFF,
        batch_size=settings.OUTBOX_BATCH_SIZE,
        poll_interval=settings.OUTBOX_POLL_INTERVAL,
    )
    intake_handler = OrderIntakeHandler(
        session_factory=database.async_session_maker,
        identity=identity,
        relay=relay,
        lock_rows=database.supports_row_locks,
    )
    subscriber = KafkaMessageSubscriber(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        topic=bindings.input_destination(NEW_ORDERS),
        group_id=settings.KAFKA_GROUP_ID,
        client_id=f"{settings.KAFKA_CLIENT_ID}-consumer",
        handler=NewOrderConsumer(intake_handler),
        redelivery_backoff=settings.REDELIVERY_BACKOFF,
    )
    return EventRuntime(
        identity=identity,
        publisher=publisher,
        bindings=bindings,
        relay=relay,
        intake_handler=intake_handler,
        subscriber=subscriber,
    )


async def init_events(
    settings: BaristaSettings,
    database: BaristaServiceDatabaseManager,
    identity: Optional[WorkerIdentity] = None,
) -> EventRuntime:
    """Connect the publisher, start the outbox relay and join the consumer group"""
    global _runtime

    runtime = build_event_runtime(settings, database, identity)
    _runtime = runtime

    await runtime.publisher.start()
    runtime.relay_task = asyncio.create_task(runtime.relay.run(runtime.stop_event))
    await runtime.subscriber.start()

    logger.info(
        "Event infrastructure initialized",
        extra={
            "barista_id": runtime.identity.value,
            "bindings": runtime.bindings.describe(),
        },
    )
    return runtime


async def close_events() -> None:
    """Stop consuming first, then drain the relay, then close the producer"""
    global _runtime

    runtime = _runtime
    if runtime is None:
        return
    _runtime = None

    try:
        await runtime.subscriber.stop()
        runtime.stop_event.set()
        if runtime.relay_task is not None:
            await runtime.relay_task
    finally:
        runtime.stop_event.set()
        await runtime.publisher.stop()
    logger.info("Event infrastructure closed")


def get_event_runtime() -> Optional[EventRuntime]:
    return _runtime


def get_channel_bindings() -> Optional[ChannelBindings]:
    return _runtime.bindings if _runtime else None


async def health_check_events() -> bool:
    """Check that completions can be published and new orders are being consumed"""
    if _runtime is None:
        return False
    if not _runtime.subscriber.is_consuming:
        return False
    return await _runtime.publisher.health_check()
