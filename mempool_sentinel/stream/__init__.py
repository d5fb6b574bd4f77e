"""
Upstream stream package: WebSocket transport and JSON-RPC message routing.
"""

from mempool_sentinel.stream.router import MessageRouter
from mempool_sentinel.stream.rpc import FrameKind, SubscriptionPush, classify_frame
from mempool_sentinel.stream.transport import StreamSession, connect_stream

__all__ = [
    "FrameKind",
    "MessageRouter",
    "StreamSession",
    "SubscriptionPush",
    "classify_frame",
    "connect_stream",
]
