"""
Core utilities: shared exception taxonomy used across stream, mempool and sinks.
"""

from mempool_sentinel.core.exceptions import (
    CallTimeout,
    ConfigError,
    DecodeError,
    ProtocolError,
    RpcError,
    SentinelError,
    SinkError,
    StreamClosed,
    TransportError,
)

__all__ = [
    "CallTimeout",
    "ConfigError",
    "DecodeError",
    "ProtocolError",
    "RpcError",
    "SentinelError",
    "SinkError",
    "StreamClosed",
    "TransportError",
]
