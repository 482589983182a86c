"""Recipient directory and target resolution."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from herald.db import Database, Recipient, utc_now
from herald.errors import TargetResolutionError
from herald.scheduling.types import ScheduleDefinition, TargetType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecipientInfo:
    id: str
    owner_id: str
    full_name: str | None = None
    is_active: bool = True


def _to_info(row: Recipient) -> RecipientInfo:
    return RecipientInfo(
        id=row.id,
        owner_id=row.coach_id,
        full_name=row.full_name,
        is_active=row.is_active,
    )


class RecipientDirectory:
    """Read and maintain the coach-to-recipient directory."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def add(
        self,
        recipient_id: str,
        owner_id: str,
        full_name: str | None = None,
        is_active: bool = True,
    ) -> RecipientInfo:
        """Insert or update a recipient."""
        async with self._db.session() as session:
            row = await session.get(Recipient, recipient_id)
            if row is None:
                row = Recipient(
                    id=recipient_id,
                    coach_id=owner_id,
                    full_name=full_name,
                    is_active=is_active,
                    created_at=utc_now(),
                )
                session.add(row)
            else:
                row.coach_id = owner_id
                row.full_name = full_name
                row.is_active = is_active
            return _to_info(row)

    async def list_for_owner(
        self, owner_id: str, active_only: bool = False
    ) -> list[RecipientInfo]:
        stmt = select(Recipient).where(Recipient.coach_id == owner_id)
        if active_only:
            stmt = stmt.where(Recipient.is_active.is_(True))
        stmt = stmt.order_by(Recipient.id)
        async with self._db.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_info(row) for row in rows]

    async def resolve(self, schedule: ScheduleDefinition) -> list[str]:
        """Resolve the recipient ids a firing of this schedule targets.

        `all` targets every active recipient of the owner. `specific` keeps
        the stored order and drops ids that are unknown, inactive, or owned
        by another coach.

        Raises:
            TargetResolutionError: If the directory cannot be read or the
                target selector is unusable.
        """
        try:
            if schedule.target_type is TargetType.ALL:
                recipients = await self.list_for_owner(
                    schedule.owner_id, active_only=True
                )
                return [r.id for r in recipients]

            if not schedule.target_ids:
                raise TargetResolutionError(
                    f"Schedule {schedule.id} targets specific recipients but lists none"
                )
            stmt = select(Recipient.id).where(
                Recipient.id.in_(schedule.target_ids),
                Recipient.coach_id == schedule.owner_id,
                Recipient.is_active.is_(True),
            )
            async with self._db.session() as session:
                known = set((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise TargetResolutionError(
                f"Could not load recipients for schedule {schedule.id}: {e}"
            ) from e

        dropped = [rid for rid in schedule.target_ids if rid not in known]
        if dropped:
            logger.warning(
                "recipients_dropped",
                extra={"schedule.id": schedule.id, "recipient.ids": dropped},
            )
        seen: set[str] = set()
        resolved = []
        for rid in schedule.target_ids:
            if rid in known and rid not in seen:
                seen.add(rid)
                resolved.append(rid)
        return resolved
