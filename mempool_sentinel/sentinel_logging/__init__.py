"""
Structured logging for Mempool Sentinel.

JSON logs keyed by event_type, with session and tx_hash context where bound.
"""

from mempool_sentinel.sentinel_logging.logger import (
    bind_transaction,
    configure_logging,
    get_logger,
    session_context,
)

__all__ = ["bind_transaction", "configure_logging", "get_logger", "session_context"]
