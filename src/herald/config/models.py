"""Configuration models using Pydantic."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator

from herald.config.paths import get_database_path

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """Configuration for the schedule/ledger database.

    `url` takes precedence over `path` and must use an async driver
    (e.g. sqlite+aiosqlite, postgresql+asyncpg).
    """

    url: str | None = None
    path: Path = Field(default_factory=get_database_path)


class ServerConfig(BaseModel):
    """Configuration for HTTP server."""

    host: str = "127.0.0.1"
    port: int = 8080


class SchedulerConfig(BaseModel):
    """Configuration for the processing endpoints.

    `api_key` is the bearer credential every trigger and sweep call must
    present. `public_url` is the externally reachable base URL the trigger
    service calls back into.
    """

    api_key: SecretStr | None = None
    public_url: str = "http://127.0.0.1:8080"
    # Cron used when installing the fallback sweep as a recurring trigger
    sweep_cron: str = "*/5 * * * *"

    @field_validator("public_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class QStashConfig(BaseModel):
    """Configuration for the Upstash QStash trigger service."""

    token: SecretStr | None = None
    base_url: str = "https://qstash.upstash.io"
    timeout: float = 10.0


class MessagingConfig(BaseModel):
    """Configuration for the chat bridge that actually delivers text."""

    url: str | None = None
    token: SecretStr | None = None
    timeout: float = 10.0


class DeliveryConfig(BaseModel):
    """Configuration for per-firing delivery behaviour."""

    max_concurrency: int = Field(default=8, ge=1)
    send_timeout: float = Field(default=15.0, gt=0)


class SentryConfig(BaseModel):
    """Configuration for Sentry error reporting."""

    dsn: SecretStr | None = None
    environment: str = "production"
    release: str | None = None
    traces_sample_rate: float = 0.0
    profiles_sample_rate: float = 0.0
    send_default_pii: bool = False
    debug: bool = False


class ConfigError(Exception):
    """Configuration error."""

    pass


class HeraldConfig(BaseModel):
    """Root configuration model."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    qstash: QStashConfig = Field(default_factory=QStashConfig)
    messaging: MessagingConfig = Field(default_factory=MessagingConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    sentry: SentryConfig | None = None

    def require_scheduler_key(self) -> str:
        """Return the scheduler bearer secret.

        Raises:
            ConfigError: If no key is configured.
        """
        if self.scheduler.api_key is None:
            raise ConfigError(
                "No scheduler API key configured. Set scheduler.api_key "
                "or HERALD_SCHEDULER_API_KEY"
            )
        return self.scheduler.api_key.get_secret_value()
