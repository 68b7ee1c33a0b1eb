from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit


DEFAULT_HUB_NAME = "DurableFunctionsHub"
DEFAULT_CONNECTION_NAME = "AzureWebJobsStorage"
DEFAULT_ROUTE_PREFIX = "/runtime/webhooks/durabletask"


class ConfigError(RuntimeError):
    pass


def _as_str(value: Any, *, key: str) -> str:
    if value is None:
        raise ConfigError(f"Missing required config key: {key}")
    return str(value)


def _as_optional_str(value: Any, *, key: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"Invalid string for {key}: {value!r}")
    s = value.strip()
    return s or None


def _as_url(value: Any, *, key: str) -> str | None:
    s = _as_optional_str(value, key=key)
    if s is None:
        return None
    parts = urlsplit(s)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ConfigError(f"Invalid {key}: must be an absolute http(s) URL, got {s!r}")
    return s


def _as_str_list(value: Any, *, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(o.strip() for o in value.split(",") if o.strip())
    if isinstance(value, list):
        return tuple(_as_str(v, key=key).strip() for v in value if str(v).strip())
    raise ConfigError(f"Invalid list for {key}: {value!r}")


@dataclass(frozen=True)
class WebhookConfig:
    """Where management links point and which task hub / connection they name.

    Read once at startup and shared read-only by every request.
    """

    notification_url: str | None = None
    hub_name: str | None = None
    connection_name: str | None = None

    @property
    def route_prefix(self) -> str:
        if not self.notification_url:
            return DEFAULT_ROUTE_PREFIX
        return urlsplit(self.notification_url).path.rstrip("/")


@dataclass(frozen=True)
class ServerConfig:
    cors_origins: tuple[str, ...] = ()


@dataclass(frozen=True)
class AppConfig:
    webhooks: WebhookConfig
    server: ServerConfig


def default_config_path() -> Path:
    return Path(os.getenv("DURABLE_HTTP_CONFIG_PATH", "config/default.toml")).expanduser().resolve()


def load_app_config(path: Path | None = None) -> AppConfig:
    """Load config from TOML, then apply `DURABLE_HTTP_*` environment overrides.

    A missing file is only an error when the path was given explicitly; otherwise
    built-in defaults apply (useful for tests and local runs).
    """
    cfg_path = path or default_config_path()
    raw: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            import tomllib  # py3.11+
        except Exception as e:
            raise ConfigError("tomllib is required (Python 3.11+).") from e
        try:
            raw = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {cfg_path}: {e}") from e
    elif path is not None:
        raise ConfigError(f"Config file not found: {cfg_path}")

    webhooks = dict(raw.get("webhooks", {}))
    server = dict(raw.get("server", {}))

    for env_key, cfg_key in (
        ("DURABLE_HTTP_NOTIFICATION_URL", "notification_url"),
        ("DURABLE_HTTP_HUB_NAME", "hub_name"),
        ("DURABLE_HTTP_CONNECTION_NAME", "connection_name"),
    ):
        env_value = os.getenv(env_key)
        if env_value is not None and env_value.strip():
            webhooks[cfg_key] = env_value

    cors_env = os.getenv("DURABLE_HTTP_CORS_ORIGINS")
    if cors_env is not None and cors_env.strip():
        server["cors_origins"] = cors_env

    return AppConfig(
        webhooks=WebhookConfig(
            notification_url=_as_url(webhooks.get("notification_url"), key="webhooks.notification_url"),
            hub_name=_as_optional_str(webhooks.get("hub_name"), key="webhooks.hub_name"),
            connection_name=_as_optional_str(
                webhooks.get("connection_name"), key="webhooks.connection_name"
            ),
        ),
        server=ServerConfig(
            cors_origins=_as_str_list(server.get("cors_origins"), key="server.cors_origins"),
        ),
    )
