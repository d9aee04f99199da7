"""
Outbox relay: delivers completion messages recorded by the intake handler.

Every dispatch first takes a lease on the row, so the immediate dispatch
after a commit and the background loop never publish the same row at the
same time. A failed publish keeps the row pending and pushes its lease out
by an exponential back-off.
"""

import asyncio
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import PublishFailure, UnknownChannel
from ..core.setting import get_settings
from ..events.producers import FinishedOrderPublisher
from ..models.base import utcnow
from ..repository.outbox_repository import OutboxRepository
from ..utils.logging import setup_barista_logging as setup_logging

logger = setup_logging("barista_outbox_relay", log_level=get_settings().LOG_LEVEL)


class OutboxRelay:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: FinishedOrderPublisher,
        lease_seconds: float = 30.0,
        retry_backoff: float = 2.0,
        max_backoff: float = 300.0,
        batch_size: int = 100,
        poll_interval: float = 5.0,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.lease_seconds = lease_seconds
        self.retry_backoff = retry_backoff
        self.max_backoff = max_backoff
        self.batch_size = batch_size
        self.poll_interval = poll_interval

    def backoff_for(self, attempts: int) -> float:
        """Seconds to wait before the next attempt after `attempts` failures"""
        if attempts <= 0:
            return 0.0
        return min(self.retry_backoff * (2 ** (attempts - 1)), self.max_backoff)

    async def dispatch(self, message_id: int) -> bool:
        """Publish one outbox message.

        Returns False when the message is already published or leased by
        another dispatcher. Raises PublishFailure when the broker rejects it.
        """
        now = utcnow()
        async with self.session_factory() as session:
            async with session.begin():
                repository = OutboxRepository(session)
                leased = await repository.acquire_lease(
                    message_id, now, now + timedelta(seconds=self.lease_seconds)
                )
                if not leased:
                    return False
                message = await repository.get_message(message_id)
                if message is None:
                    return False

        try:
            await self.publisher.send(
                message.channel, message.payload, key=str(message.order_id)
            )
        except (PublishFailure, UnknownChannel) as e:
            attempts = message.attempts + 1
            delay = self.backoff_for(attempts)
            await self._record_failure(message_id, str(e), delay)
            logger.error(
                "Outbox message publish failed; will retry",
                extra={
                    "outbox_id": message_id,
                    "order_id": message.order_id,
                    "channel": message.channel,
                    "attempts": attempts,
                    "retry_in_seconds": delay,
                    "error": str(e),
                },
            )
            if isinstance(e, PublishFailure):
                raise
            raise PublishFailure(str(e), order_id=message.order_id) from e

        async with self.session_factory() as session:
            async with session.begin():
                await OutboxRepository(session).mark_published(message_id, utcnow())

        logger.info(
            "Outbox message published",
            extra={
                "outbox_id": message_id,
                "order_id": message.order_id,
                "channel": message.channel,
            },
        )
        return True

    async def _record_failure(self, message_id: int, error: str, delay: float) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await OutboxRepository(session).record_failure(
                    message_id, error, utcnow() + timedelta(seconds=delay)
                )

    async def relay_pending(self, limit: Optional[int] = None) -> int:
        """Dispatch due messages; returns the number published"""
        async with self.session_factory() as session:
            message_ids = await OutboxRepository(session).get_due_message_ids(
                utcnow(), limit or self.batch_size
            )

        published = 0
        for message_id in message_ids:
            try:
                if await self.dispatch(message_id):
                    published += 1
            except PublishFailure:
                continue

        if message_ids:
            logger.info(
                "Outbox relay pass completed",
                extra={"due": len(message_ids), "published": published},
            )
        return published

    async def run(self, stop_event: asyncio.Event) -> None:
        """Relay pending messages until stop_event is set"""
        logger.info(
            "Outbox relay started",
            extra={"poll_interval": self.poll_interval, "batch_size": self.batch_size},
        )
        while not stop_event.is_set():
            try:
                await self.relay_pending()
            except SQLAlchemyError as e:
                logger.warning(
                    "Outbox relay pass failed; storage unavailable",
                    extra={"error": str(e)},
                )

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Outbox relay stopped")
