"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``PUSHRELAY_``, nested via ``__``)
2. YAML config file (``config_path`` field or ``PUSHRELAY_CONFIG_PATH`` env var)
3. Defaults defined here

Components never read the environment themselves: the engine hands each of
them the sub-config it needs.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class StoreEngine(enum.StrEnum):
    """Token store backends."""

    MEMORY = "memory"
    SQL = "sql"


class PushBackend(enum.StrEnum):
    """Push transport backends."""

    FIREBASE = "firebase"
    LOGGING = "logging"


class SuccessPolicy(enum.StrEnum):
    """How per-device outcomes fold into a recipient-level outcome."""

    ANY = "any"
    ALL = "all"


class PruneMode(enum.StrEnum):
    """What happens to a token the transport reports as unregistered."""

    DELETE = "delete"
    DEACTIVATE = "deactivate"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000


class DatabaseConfig(BaseSettings):
    """Database settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./push_relay.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class StoreConfig(BaseSettings):
    """Token store selection."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_STORE__",
        case_sensitive=False,
    )

    engine: StoreEngine = Field(
        default=StoreEngine.SQL,
        description="Token store backend: memory or sql",
    )


class PushConfig(BaseSettings):
    """Push transport selection."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_PUSH__",
        case_sensitive=False,
    )

    backend: PushBackend = PushBackend.FIREBASE
    app_name: str = "push-relay"
    dry_run: bool = False


class FirebaseConfig(BaseSettings):
    """Firebase Admin credentials.

    Exactly one credential source is used, in this order: ``credential_path``,
    ``credentials_json``, then application-default credentials.
    """

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_FIREBASE__",
        case_sensitive=False,
    )

    credential_path: str = ""
    credentials_json: str = ""
    project_id: str = ""


class DispatchConfig(BaseSettings):
    """Dispatch pipeline tuning."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_DISPATCH__",
        case_sensitive=False,
    )

    max_concurrency: int = Field(default=10, ge=1)
    timeout_seconds: float | None = Field(default=None, gt=0)
    success_policy: SuccessPolicy = SuccessPolicy.ANY
    prune_mode: PruneMode = PruneMode.DELETE
    default_priority: str = "normal"
    default_time_to_live: int = Field(default=86400, ge=0)
    silent_event_types: list[str] = Field(default_factory=list)


class WebhookAuthConfig(BaseSettings):
    """Shared-token settings for inbound webhook sources."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_WEBHOOKS__",
        case_sensitive=False,
    )

    default_secret: str = ""
    secrets: dict[str, str] = Field(default_factory=dict)
    allow_unauthenticated: bool = Field(
        default=False,
        description="Accept requests for sources with no configured secret",
    )

    def secret_for(self, source: str) -> str:
        """Return the secret configured for *source*, or the default one."""
        return self.secrets.get(source, self.default_secret)


class HTTPConfig(BaseSettings):
    """Request hardening for the HTTP API."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_HTTP__",
        case_sensitive=False,
    )

    rate_limit_enabled: bool = True
    rate_limit_max: int = Field(default=100, ge=1)
    rate_limit_window_seconds: float = Field(default=900.0, gt=0)
    rate_limit_path_prefix: str = "/api/"
    max_body_bytes: int = Field(default=1_048_576, ge=1)


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``PUSHRELAY_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="PUSHRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    firebase: FirebaseConfig = Field(default_factory=FirebaseConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    webhooks: WebhookAuthConfig = Field(default_factory=WebhookAuthConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
