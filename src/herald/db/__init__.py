"""Database layer."""

from herald.db.engine import Database
from herald.db.models import (
    Base,
    MessageDelivery,
    Recipient,
    ScheduledMessage,
    utc_now,
)

__all__ = [
    # Engine
    "Database",
    # Models
    "Base",
    "MessageDelivery",
    "Recipient",
    "ScheduledMessage",
    "utc_now",
]
