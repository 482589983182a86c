"""Upstash QStash trigger coordinator (v2 REST API)."""

import logging
import math
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from herald.config import ConfigError, HeraldConfig
from herald.errors import CancellationError, RegistrationError
from herald.scheduling.types import TriggerPayload
from herald.triggers.base import PROCESS_PATH, format_handle, parse_handle

logger = logging.getLogger(__name__)


class QStashTriggerCoordinator:
    """Registers callbacks into Herald with QStash.

    One-shot triggers are delayed publishes; recurring triggers are QStash
    schedules. The scheduler bearer secret is forwarded to the callback with
    `Upstash-Forward-Authorization`.
    """

    def __init__(
        self,
        token: str,
        callback_base_url: str,
        callback_secret: str,
        *,
        base_url: str = "https://qstash.upstash.io",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._callback_base_url = callback_base_url.rstrip("/")
        self._callback_secret = callback_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: HeraldConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "QStashTriggerCoordinator":
        if config.qstash.token is None:
            raise ConfigError(
                "No QStash token configured. Set qstash.token or QSTASH_TOKEN"
            )
        return cls(
            token=config.qstash.token.get_secret_value(),
            callback_base_url=config.scheduler.public_url,
            callback_secret=config.require_scheduler_key(),
            base_url=config.qstash.base_url,
            timeout=config.qstash.timeout,
            transport=transport,
        )

    def _destination(self, path: str) -> str:
        return f"{self._callback_base_url}{path}"

    def _headers(self, **extra: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Upstash-Forward-Authorization": f"Bearer {self._callback_secret}",
            **extra,
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        headers: dict[str, str],
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            return await client.request(method, endpoint, headers=headers, json=body)

    async def register_once(
        self,
        payload: TriggerPayload,
        fire_at: datetime,
        *,
        path: str = PROCESS_PATH,
    ) -> str:
        """Publish a single delayed callback.

        Raises:
            RegistrationError: If QStash rejects the publish or is unreachable.
        """
        remaining = (fire_at - datetime.now(UTC)).total_seconds()
        delay = max(0, math.floor(remaining))
        headers = self._headers(**{"Upstash-Delay": f"{delay}s"})
        endpoint = f"/v2/publish/{quote(self._destination(path), safe=':/')}"
        try:
            response = await self._request("POST", endpoint, headers, payload.to_dict())
        except httpx.HTTPError as e:
            raise RegistrationError(f"QStash publish failed: {e}") from e

        job_id = self._extract(response, "messageId", "publish")
        logger.info(
            "trigger_registered_once",
            extra={
                "schedule.id": payload.schedule_id,
                "trigger.delay_seconds": delay,
                "trigger.path": path,
            },
        )
        return format_handle("message", job_id)

    async def register_recurring(
        self,
        payload: TriggerPayload | None,
        cron_expression: str,
        *,
        path: str = PROCESS_PATH,
    ) -> str:
        """Create a QStash schedule that calls `path` on the given UTC cron.

        Raises:
            RegistrationError: If QStash rejects the schedule or is unreachable.
        """
        headers = self._headers(**{"Upstash-Cron": cron_expression})
        endpoint = f"/v2/schedules/{quote(self._destination(path), safe=':/')}"
        body = payload.to_dict() if payload else {}
        try:
            response = await self._request("POST", endpoint, headers, body)
        except httpx.HTTPError as e:
            raise RegistrationError(f"QStash schedule creation failed: {e}") from e

        job_id = self._extract(response, "scheduleId", "schedule")
        logger.info(
            "trigger_registered_recurring",
            extra={
                "schedule.id": payload.schedule_id if payload else None,
                "trigger.cron": cron_expression,
                "trigger.path": path,
            },
        )
        return format_handle("schedule", job_id)

    async def cancel(self, handle: str) -> None:
        """Delete a schedule or a pending one-shot message.

        Raises:
            CancellationError: If the job could not be removed. A job that is
                already gone (404) counts as removed.
        """
        try:
            kind, job_id = parse_handle(handle)
        except ValueError as e:
            raise CancellationError(str(e)) from e
        endpoint = (
            f"/v2/schedules/{job_id}" if kind == "schedule" else f"/v2/messages/{job_id}"
        )
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await self._request("DELETE", endpoint, headers)
        except httpx.HTTPError as e:
            raise CancellationError(f"QStash cancel failed: {e}") from e

        if response.status_code == 404:
            logger.info("trigger_already_gone", extra={"trigger.handle": handle})
            return
        if response.status_code >= 400:
            raise CancellationError(
                f"QStash cancel of {handle} returned {response.status_code}: "
                f"{response.text[:200]}"
            )
        logger.info("trigger_cancelled", extra={"trigger.handle": handle})

    @staticmethod
    def _extract(response: httpx.Response, key: str, action: str) -> str:
        if response.status_code >= 400:
            raise RegistrationError(
                f"QStash {action} returned {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RegistrationError(f"QStash {action} returned invalid JSON") from e
        job_id = data.get(key) if isinstance(data, dict) else None
        if not job_id:
            raise RegistrationError(f"QStash {action} response missing {key}")
        return str(job_id)
