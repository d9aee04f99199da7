from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.outbox import OutboxMessage


class OutboxRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_message(self, order_id: int, channel: str, payload: str) -> OutboxMessage:
        """Record an outbound message in the current transaction"""
        message = OutboxMessage(order_id=order_id, channel=channel, payload=payload)
        self.session.add(message)
        await self.session.flush()
        return message

    async def get_message(self, message_id: int) -> Optional[OutboxMessage]:
        query = select(OutboxMessage).where(OutboxMessage.id == message_id)
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_messages_for_order(self, order_id: int) -> List[OutboxMessage]:
        query = (
            select(OutboxMessage)
            .where(OutboxMessage.order_id == order_id)
            .order_by(OutboxMessage.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_due_message_ids(self, now: datetime, limit: int) -> List[int]:
        """IDs of unpublished messages whose lease is free or expired"""
        query = (
            select(OutboxMessage.id)
            .where(
                OutboxMessage.published_at.is_(None),
                or_(
                    OutboxMessage.locked_until.is_(None),
                    OutboxMessage.locked_until <= now,
                ),
            )
            .order_by(OutboxMessage.id)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_pending(self) -> int:
        query = select(func.count(OutboxMessage.id)).where(
            OutboxMessage.published_at.is_(None)
        )
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def acquire_lease(
        self, message_id: int, now: datetime, locked_until: datetime
    ) -> bool:
        """Claim a message for dispatch; False if it is leased or already published"""
        stmt = (
            update(OutboxMessage)
            .where(
                OutboxMessage.id == message_id,
                OutboxMessage.published_at.is_(None),
                or_(
                    OutboxMessage.locked_until.is_(None),
                    OutboxMessage.locked_until <= now,
                ),
            )
            .values(locked_until=locked_until, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_published(self, message_id: int, published_at: datetime) -> None:
        stmt = (
            update(OutboxMessage)
            .where(OutboxMessage.id == message_id)
            .values(
                published_at=published_at,
                attempts=OutboxMessage.attempts + 1,
                last_error=None,
                locked_until=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def record_failure(
        self, message_id: int, error: str, retry_at: datetime
    ) -> None:
        """Count a failed attempt and hold the lease until retry_at"""
        stmt = (
            update(OutboxMessage)
            .where(OutboxMessage.id == message_id)
            .values(
                attempts=OutboxMessage.attempts + 1,
                last_error=error,
                locked_until=retry_at,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
