"""
Mempool correlation engine.

Tracks pending transaction hashes pushed by the node, resolves them on each
tick (lookup, recipient classification, decode), and hands finished records
to the sinks.
"""

from mempool_sentinel.mempool.classifier import classify_code
from mempool_sentinel.mempool.models import (
    ContractType,
    PendingEntry,
    RpcTransaction,
    TransactionRecord,
)
from mempool_sentinel.mempool.pending import PendingSet

__all__ = [
    "ContractType",
    "PendingEntry",
    "PendingSet",
    "RpcTransaction",
    "TransactionRecord",
    "classify_code",
]
