"""Herald schema.

Revision ID: 001
Revises:
Create Date: 2026-10-18

Recipients directory, scheduled messages, and the delivery ledger with its
unique claim index.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Recipients directory
    op.create_table(
        "recipients",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("coach_id", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_recipients_coach_id", "recipients", ["coach_id"])

    # Schedule definitions
    op.create_table(
        "scheduled_messages",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("coach_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("schedule_type", sa.String(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False),
        sa.Column("utc_offset_minutes", sa.Integer(), nullable=False),
        sa.Column("cron_expression", sa.String(), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("frequency_config", sa.JSON(), nullable=True),
        sa.Column("target_type", sa.String(), nullable=False),
        sa.Column("target_user_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_send_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trigger_handle", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_scheduled_messages_coach_id", "scheduled_messages", ["coach_id"]
    )
    op.create_index("ix_scheduled_messages_status", "scheduled_messages", ["status"])

    # Delivery ledger
    op.create_table(
        "message_deliveries",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("scheduled_message_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("window_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("stream_message_id", sa.String(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["scheduled_message_id"],
            ["scheduled_messages.id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_message_deliveries_scheduled_message_id",
        "message_deliveries",
        ["scheduled_message_id"],
    )
    # One row per (schedule, recipient, window), whatever its status
    op.create_index(
        "uq_message_deliveries_claim",
        "message_deliveries",
        ["scheduled_message_id", "user_id", "window_id"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_message_deliveries_claim", table_name="message_deliveries")
    op.drop_index(
        "ix_message_deliveries_scheduled_message_id", table_name="message_deliveries"
    )
    op.drop_table("message_deliveries")
    op.drop_index("ix_scheduled_messages_status", table_name="scheduled_messages")
    op.drop_index("ix_scheduled_messages_coach_id", table_name="scheduled_messages")
    op.drop_table("scheduled_messages")
    op.drop_index("ix_recipients_coach_id", table_name="recipients")
    op.drop_table("recipients")
