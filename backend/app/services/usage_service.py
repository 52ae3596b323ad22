"""
SubText Backend — Usage Accountant
====================================

What:  Counts successful (non-cached) extractions per user per UTC calendar
       month and decides whether the user has hit their plan's limit.
Why:   Plans are sold by monthly analysis allowance (25 / 100 / unlimited).
How:   One usage_tracking row per (user, "YYYY-MM"), fetched or created on
       first read. The increment is a plain read-then-write and is launched
       as a detached task after the OCR response is ready.

Known race (kept on purpose):
    Two concurrent increments for the same user can both read N and both
    write N + 1, losing one count. Two concurrent first reads in a new month
    can each create a row; readers always take the oldest one.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import PersistenceError
from app.models.subscription import UNLIMITED
from app.models.usage import UsageRecord
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


@dataclass
class UsageSnapshot:
    count: int
    period_key: str


def period_key_for(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m")


class UsageService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        subscriptions: SubscriptionService,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session_factory = session_factory
        self.subscriptions = subscriptions
        self.now = now
        # Strong references so detached increments are not garbage-collected
        self._pending: Set[asyncio.Task] = set()

    async def _get_or_create(self, session: AsyncSession, user_id: str, period: str) -> UsageRecord:
        result = await session.execute(
            select(UsageRecord)
            .where(UsageRecord.user_id == user_id, UsageRecord.month == period)
            .order_by(UsageRecord.created_at, UsageRecord.id)
            .limit(1)
        )
        record: Optional[UsageRecord] = result.scalar_one_or_none()
        if record is None:
            record = UsageRecord(user_id=user_id, month=period, analyses_count=0)
            session.add(record)
            await session.flush()
        return record

    async def current_usage(self, user_id: str) -> UsageSnapshot:
        period = period_key_for(self.now())
        try:
            async with self.session_factory() as session:
                record = await self._get_or_create(session, user_id, period)
                count = record.analyses_count
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to read usage for user %s: %s", user_id, str(e))
            raise PersistenceError(context={"user_id": user_id, "operation": "read_usage"}) from e
        return UsageSnapshot(count=count, period_key=period)

    async def increment(self, user_id: str) -> int:
        """Read the current count and write count + 1. Returns the new count."""
        period = period_key_for(self.now())
        try:
            async with self.session_factory() as session:
                record = await self._get_or_create(session, user_id, period)
                record.analyses_count = record.analyses_count + 1
                new_count = record.analyses_count
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(context={"user_id": user_id, "operation": "increment"}) from e
        logger.info("Usage for user %s in %s is now %d", user_id, period, new_count)
        return new_count

    async def limit_reached(self, user_id: str) -> bool:
        """
        True when the user may not run another extraction this month.

        No active subscription counts as "reached"; an unlimited plan never is.
        """
        subscription = await self.subscriptions.get_active_subscription(user_id)
        if subscription is None:
            return True
        if subscription.monthly_limit == UNLIMITED:
            return False
        usage = await self.current_usage(user_id)
        return usage.count >= subscription.monthly_limit

    def increment_in_background(self, user_id: str) -> asyncio.Task:
        """Fire-and-forget increment. Failures are logged, never raised or retried."""
        task = asyncio.create_task(self.increment(user_id))
        self._pending.add(task)
        task.add_done_callback(self._on_increment_done(user_id))
        return task

    def _on_increment_done(self, user_id: str):
        def callback(task: asyncio.Task) -> None:
            self._pending.discard(task)
            if task.cancelled():
                logger.warning("Usage increment for user %s was cancelled", user_id)
                return
            exc = task.exception()
            if exc is not None:
                logger.error(
                    "Failed to increment usage for user %s: %s",
                    user_id,
                    exc,
                    exc_info=exc,
                )
        return callback

    async def wait_for_pending(self) -> None:
        """Wait for in-flight increments (tests and shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
