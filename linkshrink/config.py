"""Application configuration loaded from a YAML file with defaults."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

CONFIG_DIR = "configs"
CONFIG_NAMES = ("config.yaml", "config.yml")

DEFAULT_PORT = 8080
DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_DATABASE_NAME = "url_shortener.db"
DEFAULT_BUFFER_SIZE = 1000
DEFAULT_WORKER_COUNT = 5
DEFAULT_INTERVAL_MINUTES = 5


class ConfigError(Exception):
    """Raised when the configuration file is malformed or holds invalid values."""


@dataclass
class ServerConfig:
    """HTTP server settings."""

    port: int = DEFAULT_PORT
    base_url: str = DEFAULT_BASE_URL


@dataclass
class DatabaseConfig:
    """SQLite database settings."""

    name: str = DEFAULT_DATABASE_NAME


@dataclass
class AnalyticsConfig:
    """Settings for asynchronous click recording."""

    buffer_size: int = DEFAULT_BUFFER_SIZE
    worker_count: int = DEFAULT_WORKER_COUNT


@dataclass
class MonitorConfig:
    """Settings for the periodic URL monitor."""

    interval_minutes: int = DEFAULT_INTERVAL_MINUTES


@dataclass
class Config:
    """Complete application configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)


def _lower_keys(mapping: dict, where: str) -> dict[str, Any]:
    result = {}
    for key, value in mapping.items():
        if not isinstance(key, str):
            raise ConfigError(f"invalid key {key!r} in {where}")
        result[key.lower()] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"section '{name}' must be a mapping, got {type(value).__name__}")
    return _lower_keys(value, f"section '{name}'")


def _as_int(section: dict[str, Any], key: str, default: int, where: str) -> int:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text, 0)
        except ValueError:
            pass
    raise ConfigError(f"'{where}.{key}' must be an integer, got {value!r}")


def _as_str(section: dict[str, Any], key: str, default: str, where: str) -> str:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        raise ConfigError(f"'{where}.{key}' must be a string, got {type(value).__name__}")
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _read_raw(config_dir: Path) -> dict[str, Any]:
    for name in CONFIG_NAMES:
        path = config_dir / name
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise ConfigError(f"cannot read configuration file {path}: {exc}") from exc
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"configuration file {path} is corrupt or malformed: {exc}") from exc
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"configuration file {path} must hold a mapping at top level")
        log.info("Configuration file loaded: %s", path)
        return _lower_keys(raw, str(path))
    log.warning(
        "No configuration file found in '%s', using default values", config_dir
    )
    return {}


def load_config(config_dir: str | Path = CONFIG_DIR) -> Config:
    """Load the configuration from ``config_dir/config.yaml``.

    A missing file yields the defaults; a malformed file or an invalid
    port raises :class:`ConfigError`. Non-positive analytics and monitor
    values fall back to their defaults.
    """
    raw = _read_raw(Path(config_dir))

    server = _section(raw, "server")
    database = _section(raw, "database")
    analytics = _section(raw, "analytics")
    monitor = _section(raw, "monitor")

    cfg = Config(
        server=ServerConfig(
            port=_as_int(server, "port", DEFAULT_PORT, "server"),
            base_url=_as_str(server, "base_url", DEFAULT_BASE_URL, "server"),
        ),
        database=DatabaseConfig(
            name=_as_str(database, "name", DEFAULT_DATABASE_NAME, "database"),
        ),
        analytics=AnalyticsConfig(
            buffer_size=_as_int(analytics, "buffer_size", DEFAULT_BUFFER_SIZE, "analytics"),
            worker_count=_as_int(analytics, "worker_count", DEFAULT_WORKER_COUNT, "analytics"),
        ),
        monitor=MonitorConfig(
            interval_minutes=_as_int(
                monitor, "interval_minutes", DEFAULT_INTERVAL_MINUTES, "monitor"
            ),
        ),
    )

    if not 0 < cfg.server.port <= 65535:
        raise ConfigError(
            f"invalid server port ({cfg.server.port}); it must be between 1 and 65535"
        )

    if cfg.analytics.buffer_size <= 0:
        log.warning(
            "Invalid analytics buffer size (%d), using default (%d)",
            cfg.analytics.buffer_size,
            DEFAULT_BUFFER_SIZE,
        )
        cfg.analytics.buffer_size = DEFAULT_BUFFER_SIZE

    if cfg.analytics.worker_count <= 0:
        log.warning(
            "Invalid worker count (%d), using default (%d)",
            cfg.analytics.worker_count,
            DEFAULT_WORKER_COUNT,
        )
        cfg.analytics.worker_count = DEFAULT_WORKER_COUNT

    if cfg.monitor.interval_minutes <= 0:
        log.warning(
            "Invalid monitor interval (%d), using default (%d minutes)",
            cfg.monitor.interval_minutes,
            DEFAULT_INTERVAL_MINUTES,
        )
        cfg.monitor.interval_minutes = DEFAULT_INTERVAL_MINUTES

    log.info("Configuration loaded")
    log.info("  server: port=%d base_url=%s", cfg.server.port, cfg.server.base_url)
    log.info("  database: %s", cfg.database.name)
    log.info(
        "  analytics: buffer_size=%d worker_count=%d",
        cfg.analytics.buffer_size,
        cfg.analytics.worker_count,
    )
    log.info("  monitor: interval=%d minutes", cfg.monitor.interval_minutes)
    return cfg