"""
Application-level exceptions.

Only TransportError and its subclasses end a mempool session; protocol,
decode and sink failures are absorbed per transaction and retried on the
next tick. ConfigError is raised at startup and terminates the process.
"""

from __future__ import annotations


class SentinelError(Exception):
    """Base class for all Mempool Sentinel errors."""


class ConfigError(SentinelError):
    """Missing or invalid configuration."""


class TransportError(SentinelError):
    """Connect, send or receive failure on the upstream stream."""


class StreamClosed(TransportError):
    """The node closed the connection (close frame or abrupt disconnect)."""


class CallTimeout(TransportError):
    """A JSON-RPC call got no response within the call timeout."""

    def __init__(self, method: str, request_id: int, timeout_sec: float) -> None:
        super().__init__(f"{method} (id={request_id}) got no response within {timeout_sec}s")
        self.method = method
        self.request_id = request_id
        self.timeout_sec = timeout_sec


class ProtocolError(SentinelError):
    """Malformed frame, unexpected result shape or missing field."""


class RpcError(ProtocolError):
    """The node answered a call with a JSON-RPC error object."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        super().__init__(f"{method} failed: {message} (code={code})")
        self.method = method
        self.code = code
        self.message = message


class DecodeError(SentinelError):
    """A hex-encoded quantity could not be decoded."""

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"field {field!r} is not a 0x-prefixed hex quantity: {value!r}")
        self.field = field
        self.value = value


class SinkError(SentinelError):
    """A record sink failed to write a record."""

    def __init__(self, sink: str, message: str) -> None:
        super().__init__(f"{sink}: {message}")
        self.sink = sink
