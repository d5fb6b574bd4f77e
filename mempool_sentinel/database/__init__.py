"""
Database layer: resolved transaction store.

SQLite by default; any SQLAlchemy URL (PostgreSQL in production) via SENTINEL_DB_URL.
"""

from mempool_sentinel.database.database import (
    configure_database,
    count_transactions,
    filter_transactions,
    get_transaction_by_hash,
    get_transaction_by_id,
    init_db,
    insert_transaction,
    list_transactions,
)
from mempool_sentinel.database.models import MAX_BIGINT, TransactionRow

__all__ = [
    "MAX_BIGINT",
    "TransactionRow",
    "configure_database",
    "count_transactions",
    "filter_transactions",
    "get_transaction_by_hash",
    "get_transaction_by_id",
    "init_db",
    "insert_transaction",
    "list_transactions",
]
