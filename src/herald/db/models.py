"""SQLAlchemy ORM models."""

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """DateTime that always round-trips as an aware UTC datetime.

    SQLite drops tzinfo on storage, so values are normalized to UTC on the
    way in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes are not allowed; attach a timezone")
        return value.astimezone(UTC)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
        list[str]: JSON,
        datetime: UTCDateTime,
    }


class Recipient(Base):
    """A coached user who can receive scheduled messages."""

    __tablename__ = "recipients"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    coach_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    full_name: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)


class ScheduledMessage(Base):
    """Persisted schedule definition.

    `start_time`/`timezone` are the coach's wall-clock input; `utc_offset_minutes`
    and `cron_expression` are derived from them and stored so the conversion
    can be re-derived later. `trigger_handle` references the job registered
    with the external trigger service.
    """

    __tablename__ = "scheduled_messages"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    coach_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    schedule_type: Mapped[str] = mapped_column(String, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    timezone: Mapped[str] = mapped_column(String, nullable=False, default="UTC")
    utc_offset_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    cron_expression: Mapped[str | None] = mapped_column(String, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    frequency_config: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    target_type: Mapped[str] = mapped_column(String, nullable=False)
    target_user_ids: Mapped[list[str]] = mapped_column(nullable=False, default=list)

    status: Mapped[str] = mapped_column(
        String, nullable=False, default="active", index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    next_send_at: Mapped[datetime | None] = mapped_column(nullable=True)
    trigger_handle: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )


class MessageDelivery(Base):
    """One delivery attempt of a schedule to a recipient within a window.

    The unique index allows exactly one row per (schedule, recipient,
    window) whatever its status, so a failed send is never retried within
    its window.
    """

    __tablename__ = "message_deliveries"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    scheduled_message_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("scheduled_messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    window_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    stream_message_id: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "uq_message_deliveries_claim",
            "scheduled_message_id",
            "user_id",
            "window_id",
            unique=True,
        ),
    )
