"""External trigger coordination."""

from herald.triggers.base import (
    ACTIVATE_PATH,
    PROCESS_PATH,
    SWEEP_PATH,
    TriggerCoordinator,
    format_handle,
    parse_handle,
)
from herald.triggers.qstash import QStashTriggerCoordinator

__all__ = [
    "ACTIVATE_PATH",
    "PROCESS_PATH",
    "SWEEP_PATH",
    "QStashTriggerCoordinator",
    "TriggerCoordinator",
    "format_handle",
    "parse_handle",
]
