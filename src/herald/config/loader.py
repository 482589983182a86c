"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from herald.config.models import HeraldConfig
from herald.config.paths import get_config_path


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.herald/config.toml (or HERALD_HOME)
        Path("/etc/herald/config.toml"),  # System-wide
    ]


def _set_secret_from_env(section: dict[str, Any], key: str, env_var: str) -> None:
    """Set a secret value from environment if not already set."""
    if section.get(key) is None:
        value = os.environ.get(env_var)
        if value:
            section[key] = SecretStr(value)


def _resolve_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Resolve secrets from environment variables where not set in config."""
    mappings = [
        ("scheduler", "api_key", "HERALD_SCHEDULER_API_KEY"),
        ("qstash", "token", "QSTASH_TOKEN"),
        ("messaging", "token", "HERALD_MESSAGING_TOKEN"),
        ("sentry", "dsn", "SENTRY_DSN"),
    ]
    for parent_key, secret_key, env_var in mappings:
        section = config.get(parent_key)
        if section is None:
            # Only materialize a section when the env var actually provides it
            if not os.environ.get(env_var):
                continue
            section = config[parent_key] = {}
        _set_secret_from_env(section, secret_key, env_var)

    return config


def load_config(path: Path | None = None) -> HeraldConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations
            and falls back to defaults plus environment secrets.

    Returns:
        Validated HeraldConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ValueError: If config file is invalid.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)

    raw_config = _resolve_env_secrets(raw_config)

    return HeraldConfig.model_validate(raw_config)


def get_default_config() -> HeraldConfig:
    """Get a default configuration for development/testing."""
    return HeraldConfig()
