"""Messaging collaborator: hands a rendered message to the chat transport."""

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from herald.config import ConfigError, MessagingConfig
from herald.errors import PerRecipientDeliveryError

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def channel_id(owner_id: str, recipient_id: str) -> str:
    """Deterministic 1:1 channel id for a coach/recipient pair.

    The pair is sorted, so both directions map to the same channel. The hash
    is the 32-bit `h*31 + c` string hash over UTF-16 code units, matching
    the ids the chat UI already uses.
    """
    combined = "-".join(sorted([owner_id, recipient_id]))
    data = combined.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"chat_{_to_base36(abs(h))}"


@dataclass(frozen=True)
class DeliveryRequest:
    schedule_id: str
    owner_id: str
    recipient_id: str
    text: str


@runtime_checkable
class MessageSender(Protocol):
    """Delivers one message to one recipient.

    Returns the transport's message id (or None). Any exception is treated
    as a failure for that recipient only.
    """

    async def send(self, request: DeliveryRequest) -> str | None: ...


class HttpMessageSender:
    """Posts messages to a chat bridge over HTTP."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: MessagingConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpMessageSender":
        if not config.url:
            raise ConfigError(
                "No messaging bridge configured. Set messaging.url in config.toml"
            )
        token = config.token.get_secret_value() if config.token else None
        return cls(config.url, token, config.timeout, transport=transport)

    async def send(self, request: DeliveryRequest) -> str | None:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        body = {
            "channelId": channel_id(request.owner_id, request.recipient_id),
            "senderId": request.owner_id,
            "recipientId": request.recipient_id,
            "text": request.text,
        }
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(self._url, json=body, headers=headers)

        if response.status_code >= 400:
            logger.warning(
                "message_send_rejected",
                extra={
                    "recipient.id": request.recipient_id,
                    "http.status": response.status_code,
                },
            )
            raise PerRecipientDeliveryError(
                request.recipient_id,
                f"Chat bridge returned {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, dict):
            message_id = data.get("messageId") or data.get("id")
            return str(message_id) if message_id else None
        return None
