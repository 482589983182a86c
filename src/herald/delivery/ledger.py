"""Delivery ledger: idempotency record of (schedule, recipient, window).

A send is allowed only after `claim` succeeds. The claim is a plain INSERT of
a `pending` row; the unique index on (schedule, recipient, window) makes the
insert fail for the second claimant, whichever process it runs in. A failed
row keeps its slot, so nothing is re-sent within the same window.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from herald.db import Database, MessageDelivery, utc_now
from herald.scheduling.types import DeliveryRecord, DeliveryStatus

logger = logging.getLogger(__name__)


def row_to_record(row: MessageDelivery) -> DeliveryRecord:
    return DeliveryRecord(
        id=row.id,
        schedule_id=row.scheduled_message_id,
        recipient_id=row.user_id,
        window_id=row.window_id,
        sent_at=row.sent_at,
        status=DeliveryStatus(row.status),
        error=row.error_message,
        transport_message_id=row.stream_message_id,
    )


class DeliveryLedger:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def claim(
        self, schedule_id: str, recipient_id: str, window_id: str
    ) -> str | None:
        """Reserve the slot for one send.

        Returns:
            The new record id, or None when another firing already holds a
            record for this slot.
        """
        record_id = uuid.uuid4().hex
        try:
            async with self._db.session() as session:
                session.add(
                    MessageDelivery(
                        id=record_id,
                        scheduled_message_id=schedule_id,
                        user_id=recipient_id,
                        window_id=window_id,
                        status=DeliveryStatus.PENDING.value,
                        sent_at=utc_now(),
                    )
                )
        except IntegrityError:
            logger.debug(
                "delivery_slot_taken",
                extra={
                    "schedule.id": schedule_id,
                    "recipient.id": recipient_id,
                    "delivery.window": window_id,
                },
            )
            return None
        return record_id

    async def mark_sent(
        self,
        record_id: str,
        transport_message_id: str | None = None,
        sent_at: datetime | None = None,
    ) -> None:
        await self._finish(
            record_id,
            status=DeliveryStatus.SENT.value,
            stream_message_id=transport_message_id,
            sent_at=sent_at or utc_now(),
        )

    async def mark_failed(self, record_id: str, error: str) -> None:
        await self._finish(
            record_id,
            status=DeliveryStatus.FAILED.value,
            error_message=error,
            sent_at=utc_now(),
        )

    async def _finish(self, record_id: str, **values: object) -> None:
        # Only pending rows are resolved; sent and failed rows are final
        async with self._db.session() as session:
            await session.execute(
                update(MessageDelivery)
                .where(
                    MessageDelivery.id == record_id,
                    MessageDelivery.status == DeliveryStatus.PENDING.value,
                )
                .values(**values)
            )

    async def list_for_schedule(
        self, schedule_id: str, limit: int | None = None
    ) -> list[DeliveryRecord]:
        stmt = (
            select(MessageDelivery)
            .where(MessageDelivery.scheduled_message_id == schedule_id)
            .order_by(MessageDelivery.sent_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [row_to_record(row) for row in rows]

    async def has_sent(self, schedule_id: str) -> bool:
        """True when any recipient ever received this schedule."""
        async with self._db.session() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(MessageDelivery)
                .where(
                    MessageDelivery.scheduled_message_id == schedule_id,
                    MessageDelivery.status == DeliveryStatus.SENT.value,
                )
            )
            return bool(count)
