"""Schedule store backed by the scheduled_messages table."""

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, select, update

from herald.db import Database, MessageDelivery, ScheduledMessage, utc_now
from herald.errors import ScheduleNotFoundError
from herald.scheduling.types import ScheduleDefinition, ScheduleStatus, TargetType

logger = logging.getLogger(__name__)


def row_to_schedule(row: ScheduledMessage) -> ScheduleDefinition:
    """Convert an ORM row to a ScheduleDefinition."""
    return ScheduleDefinition(
        id=row.id,
        owner_id=row.coach_id,
        title=row.title,
        content=row.content,
        cadence=row.schedule_type,
        start_date=row.start_date,
        start_time=row.start_time,
        timezone=row.timezone,
        utc_offset_minutes=row.utc_offset_minutes,
        cron_expression=row.cron_expression,
        starts_at=row.starts_at,
        end_date=row.end_date,
        frequency_config=row.frequency_config,
        target_type=TargetType(row.target_type),
        target_ids=list(row.target_user_ids or []),
        status=ScheduleStatus(row.status),
        is_active=row.is_active,
        last_sent_at=row.last_sent_at,
        next_send_at=row.next_send_at,
        trigger_handle=row.trigger_handle,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ScheduleStore:
    """Persistence for schedule definitions.

    Every mutation that races with concurrent firings is a single conditional
    UPDATE, so the database decides the winner.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get(
        self, schedule_id: str, owner_id: str | None = None
    ) -> ScheduleDefinition | None:
        """Load a schedule; when owner_id is given, foreign schedules are hidden."""
        async with self._db.session() as session:
            row = await session.get(ScheduledMessage, schedule_id)
            if row is None:
                return None
            if owner_id is not None and row.coach_id != owner_id:
                return None
            return row_to_schedule(row)

    async def require(
        self, schedule_id: str, owner_id: str | None = None
    ) -> ScheduleDefinition:
        schedule = await self.get(schedule_id, owner_id)
        if schedule is None:
            raise ScheduleNotFoundError(f"Schedule not found: {schedule_id}")
        return schedule

    async def list_for_owner(
        self, owner_id: str, status: ScheduleStatus | None = None
    ) -> list[ScheduleDefinition]:
        stmt = select(ScheduledMessage).where(ScheduledMessage.coach_id == owner_id)
        if status is not None:
            stmt = stmt.where(ScheduledMessage.status == status.value)
        stmt = stmt.order_by(ScheduledMessage.created_at.desc())
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [row_to_schedule(row) for row in rows]

    async def list_all(
        self, status: ScheduleStatus | None = None, limit: int | None = None
    ) -> list[ScheduleDefinition]:
        stmt = select(ScheduledMessage)
        if status is not None:
            stmt = stmt.where(ScheduledMessage.status == status.value)
        stmt = stmt.order_by(ScheduledMessage.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [row_to_schedule(row) for row in rows]

    async def list_active(self) -> list[ScheduleDefinition]:
        """Schedules eligible for the sweep: status active and flag set."""
        stmt = (
            select(ScheduledMessage)
            .where(
                ScheduledMessage.status == ScheduleStatus.ACTIVE.value,
                ScheduledMessage.is_active.is_(True),
            )
            .order_by(ScheduledMessage.starts_at)
        )
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [row_to_schedule(row) for row in rows]

    async def get_stats(self, owner_id: str) -> dict[str, Any]:
        """Schedule and delivery counts for one owner."""
        async with self._db.session() as session:
            status_rows = await session.execute(
                select(ScheduledMessage.status, func.count())
                .where(ScheduledMessage.coach_id == owner_id)
                .group_by(ScheduledMessage.status)
            )
            by_status = Counter({status: count for status, count in status_rows})

            delivery_rows = await session.execute(
                select(MessageDelivery.status, func.count())
                .join(
                    ScheduledMessage,
                    MessageDelivery.scheduled_message_id == ScheduledMessage.id,
                )
                .where(ScheduledMessage.coach_id == owner_id)
                .group_by(MessageDelivery.status)
            )
            deliveries = Counter({status: count for status, count in delivery_rows})

        return {
            "total": sum(by_status.values()),
            "active": by_status[ScheduleStatus.ACTIVE.value],
            "paused": by_status[ScheduleStatus.PAUSED.value],
            "completed": by_status[ScheduleStatus.COMPLETED.value],
            "cancelled": by_status[ScheduleStatus.CANCELLED.value],
            "deliveries": {
                "sent": deliveries["sent"],
                "failed": deliveries["failed"],
                "pending": deliveries["pending"],
            },
        }

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def add(self, schedule: ScheduleDefinition) -> ScheduleDefinition:
        now = utc_now()
        row = ScheduledMessage(
            id=schedule.id,
            coach_id=schedule.owner_id,
            title=schedule.title,
            content=schedule.content,
            schedule_type=schedule.cadence,
            start_date=schedule.start_date,
            start_time=schedule.start_time,
            timezone=schedule.timezone,
            utc_offset_minutes=schedule.utc_offset_minutes,
            cron_expression=schedule.cron_expression,
            starts_at=schedule.starts_at,
            end_date=schedule.end_date,
            frequency_config=schedule.frequency_config,
            target_type=schedule.target_type.value,
            target_user_ids=list(schedule.target_ids),
            status=schedule.status.value,
            is_active=schedule.is_active,
            last_sent_at=schedule.last_sent_at,
            next_send_at=schedule.next_send_at,
            trigger_handle=schedule.trigger_handle,
            created_at=now,
            updated_at=now,
        )
        async with self._db.session() as session:
            session.add(row)
        logger.debug(
            "schedule_added",
            extra={"schedule.id": schedule.id, "schedule.cadence": schedule.cadence},
        )
        return row_to_schedule(row)

    async def delete(self, schedule_id: str) -> bool:
        """Remove a schedule together with its delivery history."""
        async with self._db.session() as session:
            # SQLite only enforces ON DELETE CASCADE with foreign_keys enabled
            await session.execute(
                delete(MessageDelivery).where(
                    MessageDelivery.scheduled_message_id == schedule_id
                )
            )
            result = await session.execute(
                delete(ScheduledMessage).where(ScheduledMessage.id == schedule_id)
            )
            return result.rowcount > 0

    async def activate(self, schedule_id: str, handle: str | None) -> bool:
        """Store the trigger handle and raise the active flag."""
        return await self._update(
            schedule_id, trigger_handle=handle, is_active=True
        )

    async def set_handle(self, schedule_id: str, handle: str | None) -> bool:
        return await self._update(schedule_id, trigger_handle=handle)

    async def store_recurring_handle(self, schedule_id: str, handle: str) -> bool:
        """Store a recurring job handle unless one is already stored.

        Returns False when a concurrent activation stored its job first.
        """
        async with self._db.session() as session:
            result = await session.execute(
                update(ScheduledMessage)
                .where(
                    ScheduledMessage.id == schedule_id,
                    or_(
                        ScheduledMessage.trigger_handle.is_(None),
                        ScheduledMessage.trigger_handle.not_like("schedule:%"),
                    ),
                )
                .values(trigger_handle=handle, updated_at=utc_now())
            )
            return result.rowcount > 0

    async def transition(
        self,
        schedule_id: str,
        current: ScheduleStatus,
        target: ScheduleStatus,
        **values: Any,
    ) -> bool:
        """Move a schedule from `current` to `target` if it is still in `current`.

        Returns False when a concurrent writer changed the status first.
        """
        async with self._db.session() as session:
            result = await session.execute(
                update(ScheduledMessage)
                .where(
                    ScheduledMessage.id == schedule_id,
                    ScheduledMessage.status == current.value,
                )
                .values(status=target.value, updated_at=utc_now(), **values)
            )
            moved = result.rowcount > 0
        if moved:
            logger.info(
                "schedule_status_changed",
                extra={
                    "schedule.id": schedule_id,
                    "schedule.from": current.value,
                    "schedule.to": target.value,
                },
            )
        return moved

    async def advance_last_sent(
        self,
        schedule_id: str,
        sent_at: datetime,
        next_send_at: datetime | None = None,
    ) -> bool:
        """Advance last_sent_at, never moving it backwards.

        Returns False when the stored value is already at or past `sent_at`.
        """
        async with self._db.session() as session:
            result = await session.execute(
                update(ScheduledMessage)
                .where(
                    ScheduledMessage.id == schedule_id,
                    or_(
                        ScheduledMessage.last_sent_at.is_(None),
                        ScheduledMessage.last_sent_at < sent_at,
                    ),
                )
                .values(
                    last_sent_at=sent_at,
                    next_send_at=next_send_at,
                    updated_at=utc_now(),
                )
            )
            return result.rowcount > 0

    async def _update(self, schedule_id: str, **values: Any) -> bool:
        async with self._db.session() as session:
            result = await session.execute(
                update(ScheduledMessage)
                .where(ScheduledMessage.id == schedule_id)
                .values(updated_at=utc_now(), **values)
            )
            return result.rowcount > 0
