"""
Application settings.

Settings is immutable for the lifetime of a session. get_settings() reads the
environment (and .env) once per call and fails fast with ConfigError when the
stream endpoint is missing or a numeric value does not parse.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mempool_sentinel.config.env import (
    env_float,
    env_int,
    env_str,
    get_database_url,
    get_stream_endpoint,
    load_sentinel_env,
)
from mempool_sentinel.core.exceptions import ConfigError

DEFAULT_POLL_INTERVAL_SEC = 3.0
DEFAULT_RECONNECT_DELAY_SEC = 5.0
DEFAULT_RECONNECT_MAX_DELAY_SEC = 60.0
DEFAULT_CALL_TIMEOUT_SEC = 10.0
DEFAULT_MAX_PENDING_AGE_SEC = 600.0
DEFAULT_RETIRED_HASH_CAPACITY = 50_000
DEFAULT_CSV_PATH = "transactions.csv"
DEFAULT_SNAPSHOT_DIR = "responses"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for the supervisor, sinks and API server."""

    stream_endpoint: str
    poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC
    reconnect_delay_sec: float = DEFAULT_RECONNECT_DELAY_SEC
    reconnect_backoff_factor: float = 1.0
    reconnect_max_delay_sec: float = DEFAULT_RECONNECT_MAX_DELAY_SEC
    max_restarts: int | None = None
    call_timeout_sec: float = DEFAULT_CALL_TIMEOUT_SEC
    max_pending_age_sec: float = DEFAULT_MAX_PENDING_AGE_SEC
    """Pending entries older than this are abandoned; 0 disables eviction."""
    retired_hash_capacity: int = DEFAULT_RETIRED_HASH_CAPACITY
    csv_path: Path = Path(DEFAULT_CSV_PATH)
    snapshot_dir: Path = Path(DEFAULT_SNAPSHOT_DIR)
    database_url: str = "sqlite:///sentinel.db"
    storage_api_url: str | None = None
    """When set, records are POSTed to this storage API instead of the local database."""
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def __post_init__(self) -> None:
        if self.poll_interval_sec <= 0:
            raise ConfigError("poll_interval_sec must be positive")
        if self.call_timeout_sec <= 0:
            raise ConfigError("call_timeout_sec must be positive")
        if self.reconnect_delay_sec < 0:
            raise ConfigError("reconnect_delay_sec must be >= 0")
        if self.reconnect_backoff_factor < 1.0:
            raise ConfigError("reconnect_backoff_factor must be >= 1.0")
        if self.max_pending_age_sec < 0:
            raise ConfigError("max_pending_age_sec must be >= 0")
        if self.retired_hash_capacity < 1:
            raise ConfigError("retired_hash_capacity must be >= 1")

    @property
    def max_pending_age_ms(self) -> int | None:
        if self.max_pending_age_sec <= 0:
            return None
        return int(self.max_pending_age_sec * 1000)


def get_settings() -> Settings:
    """
    Build Settings from the environment.

    Raises:
        ConfigError: stream endpoint absent or any value malformed.
    """
    load_sentinel_env()
    return Settings(
        stream_endpoint=get_stream_endpoint(),
        poll_interval_sec=env_float("POLL_INTERVAL_SEC", DEFAULT_POLL_INTERVAL_SEC),
        reconnect_delay_sec=env_float("RECONNECT_DELAY_SEC", DEFAULT_RECONNECT_DELAY_SEC),
        reconnect_backoff_factor=env_float("RECONNECT_BACKOFF_FACTOR", 1.0),
        reconnect_max_delay_sec=env_float("RECONNECT_MAX_DELAY_SEC", DEFAULT_RECONNECT_MAX_DELAY_SEC),
        max_restarts=env_int("MAX_RESTARTS", None),
        call_timeout_sec=env_float("CALL_TIMEOUT_SEC", DEFAULT_CALL_TIMEOUT_SEC),
        max_pending_age_sec=env_float("MAX_PENDING_AGE_SEC", DEFAULT_MAX_PENDING_AGE_SEC),
        retired_hash_capacity=env_int("RETIRED_HASH_CAPACITY", DEFAULT_RETIRED_HASH_CAPACITY),
        csv_path=Path(env_str("CSV_PATH", DEFAULT_CSV_PATH)),
        snapshot_dir=Path(env_str("SNAPSHOT_DIR", DEFAULT_SNAPSHOT_DIR)),
        database_url=get_database_url(),
        storage_api_url=env_str("STORAGE_API_URL"),
        api_host=env_str("API_HOST", "0.0.0.0"),
        api_port=env_int("API_PORT", 8000),
    )
