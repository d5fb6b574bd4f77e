"""
Environment variable loading and parsing for Mempool Sentinel.

- STREAM_ENDPOINT: node WebSocket URL (legacy name WEB_SOCKET_URL also accepted)
- Numeric knobs (POLL_INTERVAL_SEC, RECONNECT_DELAY_SEC, ...) parsed with clear errors.
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from mempool_sentinel.core.exceptions import ConfigError

# Project root: config is mempool_sentinel/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"


def load_sentinel_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env vars."""
    load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str | None = None) -> str | None:
    """Return a stripped env value; empty strings count as unset."""
    raw = (os.getenv(name) or "").strip()
    return raw if raw else default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def env_int(name: str, default: int | None) -> int | None:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def get_stream_endpoint() -> str:
    """
    Resolve the node WebSocket endpoint.
    Order: STREAM_ENDPOINT > WEB_SOCKET_URL. Raises ConfigError when neither is set.
    """
    load_sentinel_env()
    url = env_str("STREAM_ENDPOINT") or env_str("WEB_SOCKET_URL")
    if not url:
        raise ConfigError("STREAM_ENDPOINT (or WEB_SOCKET_URL) must be set to the node WebSocket URL")
    if not url.startswith(("ws://", "wss://")):
        raise ConfigError(f"stream endpoint must be a ws:// or wss:// URL, got {url!r}")
    return url


def get_database_url() -> str:
    """Return SENTINEL_DB_URL or DATABASE_URL if set; else SQLite at DB_PATH (default sentinel.db)."""
    load_sentinel_env()
    url = env_str("SENTINEL_DB_URL") or env_str("DATABASE_URL")
    if url:
        return url
    path = env_str("DB_PATH", "sentinel.db")
    return f"sqlite:///{path}"


def mask_url(url: str) -> str:
    """Hide API keys embedded in provider URLs before logging."""
    for marker in ("api-key=", "apikey=", "/v2/", "/v3/"):
        if marker in url:
            return url.split(marker)[0] + marker + "***"
    return url
