"""Sentry wiring for the server and CLI entrypoints."""

import logging
from typing import TYPE_CHECKING, Any

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from herald import __version__
from herald.logging import SecretRedactor

if TYPE_CHECKING:
    from herald.config import SentryConfig

logger = logging.getLogger(__name__)

_redactor = SecretRedactor()


def scrub_event(event: dict[str, Any], _hint: dict[str, Any]) -> dict[str, Any]:
    """Mask bearer credentials in exception values and breadcrumbs."""
    for exc in event.get("exception", {}).get("values", []):
        if isinstance(exc.get("value"), str):
            exc["value"] = _redactor.redact(exc["value"])

    for crumb in event.get("breadcrumbs", {}).get("values", []):
        if isinstance(crumb.get("message"), str):
            crumb["message"] = _redactor.redact(crumb["message"])

    logentry = event.get("logentry")
    if logentry and isinstance(logentry.get("message"), str):
        logentry["message"] = _redactor.redact(logentry["message"])

    return event


def init_sentry(config: "SentryConfig", server_mode: bool = False) -> bool:
    """Initialize Sentry if a DSN is configured.

    Args:
        config: Sentry configuration.
        server_mode: Whether running under uvicorn (adds the FastAPI integration).

    Returns:
        True if Sentry was initialized, False otherwise.
    """
    if not config.dsn:
        logger.debug("sentry_disabled")
        return False

    integrations: list[Any] = [
        AsyncioIntegration(),
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
    ]
    if server_mode:
        from sentry_sdk.integrations.fastapi import FastApiIntegration

        integrations.append(FastApiIntegration())

    sentry_sdk.init(
        dsn=config.dsn.get_secret_value(),
        environment=config.environment,
        release=config.release or f"herald@{__version__}",
        traces_sample_rate=config.traces_sample_rate,
        profiles_sample_rate=config.profiles_sample_rate,
        send_default_pii=config.send_default_pii,
        debug=config.debug,
        integrations=integrations,
        before_send=scrub_event,
    )
    sentry_sdk.set_tag("herald.mode", "server" if server_mode else "cli")

    logger.info(
        "sentry_initialized",
        extra={"sentry.environment": config.environment, "sentry.server": server_mode},
    )
    return True
