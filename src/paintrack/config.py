"""Application configuration loading and validation.

Reads an optional ``paintrack.toml``, resolves ``${VAR}`` references from the
environment, applies environment overrides and returns a validated
:class:`AppConfig`.

Example::

    [storage]
    database_url = "${DATABASE_URL}"
    max_pool_size = 5

    [storage.reconnect]
    base_delay_seconds = 1.0
    max_delay_seconds = 60.0
    max_attempts = 10

    [sessions]
    max_age_days = 30
    prune_interval_seconds = 3600

    [logging]
    level = "INFO"
    format = "json"
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_PATH_ENV = "PAINTRACK_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"

# Matches ${VAR_NAME} with alphanumeric and underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class ReconnectConfig:
    """Backoff settings for the storage reconnection scheduler.

    Attempt *n* waits ``min(max_delay_seconds, base_delay_seconds * 2**n)``
    plus up to ``jitter`` of that value. After ``max_attempts`` failures the
    scheduler gives up for the rest of the process lifetime.
    """

    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0
    max_attempts: int = 10
    jitter: float = 0.3


@dataclass
class StorageConfig:
    database_url: str | None = None
    min_pool_size: int = 1
    max_pool_size: int = 5
    connect_timeout_seconds: float = 10.0
    idle_timeout_seconds: float = 30.0
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)


@dataclass
class SessionConfig:
    cookie_name: str = "paintrack.sid"
    max_age_days: int = 30
    prune_interval_seconds: float = 3600.0

    @property
    def max_age_seconds(self) -> int:
        return self.max_age_days * 24 * 60 * 60


@dataclass
class LoggingConfig:
    """Logging configuration from the [logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_file: str | None = None


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 5000
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])


@dataclass
class AppConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings. Non-string leaf values are returned
    unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a TOML table")
    return value


def _positive_number(section: dict[str, Any], key: str, default: float, path: str) -> float:
    try:
        value = float(section.get(key, default))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {path}.{key}: {section.get(key)!r}") from exc
    if value <= 0:
        raise ConfigError(f"Invalid {path}.{key}: {value!r}. Must be positive.")
    return value


def _positive_int(section: dict[str, Any], key: str, default: int, path: str) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        raise ConfigError(f"Invalid {path}.{key}: {raw!r}. Must be a positive integer.")
    return raw


def _parse_reconnect(storage_section: dict[str, Any]) -> ReconnectConfig:
    section = _section(storage_section, "reconnect")
    path = "storage.reconnect"
    base = _positive_number(section, "base_delay_seconds", 1.0, path)
    max_delay = _positive_number(section, "max_delay_seconds", 60.0, path)
    if max_delay < base:
        raise ConfigError(
            f"Invalid {path}: max_delay_seconds ({max_delay}) is less than "
            f"base_delay_seconds ({base})"
        )
    try:
        jitter = float(section.get("jitter", 0.3))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {path}.jitter: {section.get('jitter')!r}") from exc
    if not 0 <= jitter <= 1:
        raise ConfigError(f"Invalid {path}.jitter: {jitter!r}. Expected a value in [0, 1].")
    return ReconnectConfig(
        base_delay_seconds=base,
        max_delay_seconds=max_delay,
        max_attempts=_positive_int(section, "max_attempts", 10, path),
        jitter=jitter,
    )


def _parse_storage(data: dict[str, Any]) -> StorageConfig:
    section = _section(data, "storage")
    database_url = section.get("database_url")
    if isinstance(database_url, str) and not database_url.strip():
        database_url = None

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        database_url = env_url

    min_pool = _positive_int(section, "min_pool_size", 1, "storage")
    max_pool = _positive_int(section, "max_pool_size", 5, "storage")
    if min_pool > max_pool:
        raise ConfigError(
            f"Invalid storage pool size: min_pool_size ({min_pool}) > max_pool_size ({max_pool})"
        )
    return StorageConfig(
        database_url=database_url,
        min_pool_size=min_pool,
        max_pool_size=max_pool,
        connect_timeout_seconds=_positive_number(
            section, "connect_timeout_seconds", 10.0, "storage"
        ),
        idle_timeout_seconds=_positive_number(section, "idle_timeout_seconds", 30.0, "storage"),
        reconnect=_parse_reconnect(section),
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logging")
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise ConfigError(f"Invalid logging.format: {fmt!r}. Expected 'text' or 'json'.")
    return LoggingConfig(level=level, format=fmt, log_file=section.get("log_file"))


def _parse_server(data: dict[str, Any]) -> ServerConfig:
    section = _section(data, "server")
    origins = section.get("cors_origins", ["http://localhost:5173"])
    if not isinstance(origins, list) or not all(isinstance(o, str) for o in origins):
        raise ConfigError("server.cors_origins must be a list of strings")
    return ServerConfig(
        host=str(section.get("host", "127.0.0.1")),
        port=_positive_int(section, "port", 5000, "server"),
        cors_origins=origins,
    )


def _parse_sessions(data: dict[str, Any]) -> SessionConfig:
    section = _section(data, "sessions")
    cookie_name = section.get("cookie_name", "paintrack.sid")
    if not isinstance(cookie_name, str) or not cookie_name.strip():
        raise ConfigError("sessions.cookie_name must be a non-empty string")
    return SessionConfig(
        cookie_name=cookie_name,
        max_age_days=_positive_int(section, "max_age_days", 30, "sessions"),
        prune_interval_seconds=_positive_number(
            section, "prune_interval_seconds", 3600.0, "sessions"
        ),
    )


def parse_config(data: dict[str, Any]) -> AppConfig:
    """Validate an already-parsed TOML document."""
    data = resolve_env_vars(data)
    return AppConfig(
        storage=_parse_storage(data),
        sessions=_parse_sessions(data),
        logging=_parse_logging(data),
        server=_parse_server(data),
    )


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from *path*, ``$PAINTRACK_CONFIG``, or defaults.

    Raises
    ------
    ConfigError
        If an explicitly named file is missing or contains invalid TOML.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if not env_path:
            return parse_config({})
        path = Path(env_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    return parse_config(data)
