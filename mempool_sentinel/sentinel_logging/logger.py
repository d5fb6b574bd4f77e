"""
Structured logging for the sentinel.

Every line is one JSON object keyed by `event_type` (snake_case event name),
plus `level`, `timestamp` (UTC ISO 8601), `logger`, and whatever context is
bound: `session` for everything a mempool session does, `tx_hash` inside the
resolution of one transaction.

Context travels through structlog.contextvars: a task spawned inside
session_context(), such as the router reader, inherits the session id.
Executor threads do not.

LOG_LEVEL (default INFO) and LOG_FORMAT (json | console) are read when
configure_logging() runs; importing this module configures once.

No mempool_sentinel imports here: every other module imports this one.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.contextvars import bound_contextvars

# emitted first, in this order
_LEADING_KEYS = ("timestamp", "level", "event_type", "session", "tx_hash")


def _rename_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict["event_type"] = event_dict.pop("event", None)
    return event_dict


def _order_keys(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    ordered = {k: event_dict.pop(k) for k in _LEADING_KEYS if k in event_dict}
    ordered.update(event_dict)
    return ordered


def _renderer(fmt: str) -> Any:
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            event_key="event_type",
        )
    return structlog.processors.JSONRenderer(sort_keys=False)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog. Arguments override LOG_LEVEL / LOG_FORMAT."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.format_exc_info,
            _rename_event,
            _order_keys,
            _renderer(fmt),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger; call with an event name and keyword fields:

        logger = get_logger(__name__)
        logger.info("tx_resolved", block_number=16, mempool_time_ms=3012)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_transaction(tx_hash: str) -> structlog.BoundLogger:
    """Logger for one transaction's resolution; adds tx_hash to every line."""
    return get_logger("mempool_sentinel.tx").bind(tx_hash=tx_hash)


@contextmanager
def session_context(session_id: int) -> Iterator[None]:
    """Bind session=<id> for all logging in the current task and tasks it spawns."""
    with bound_contextvars(session=session_id):
        yield
