"""Delivery: recipient resolution, sending and the idempotency ledger."""

from herald.delivery.dispatcher import DeliveryDispatcher, DispatchResult, RecipientError
from herald.delivery.ledger import DeliveryLedger
from herald.delivery.recipients import RecipientDirectory, RecipientInfo
from herald.delivery.sender import (
    DeliveryRequest,
    HttpMessageSender,
    MessageSender,
    channel_id,
)

__all__ = [
    "DeliveryDispatcher",
    "DeliveryLedger",
    "DeliveryRequest",
    "DispatchResult",
    "HttpMessageSender",
    "MessageSender",
    "RecipientDirectory",
    "RecipientError",
    "RecipientInfo",
    "channel_id",
]
