"""
Stream transport: the duplex WebSocket connection to the node.

connect_stream() opens the socket; StreamSession exposes send/receive/close
and converts every websockets failure into TransportError (StreamClosed for
close notifications) so callers never see library exceptions.
"""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from mempool_sentinel.config.env import mask_url
from mempool_sentinel.core.exceptions import StreamClosed, TransportError
from mempool_sentinel.sentinel_logging import get_logger

logger = get_logger(__name__)

DEFAULT_WS_PING_INTERVAL = 20.0
DEFAULT_WS_PING_TIMEOUT = 20.0
DEFAULT_OPEN_TIMEOUT = 10.0
_WS_CLOSE_TIMEOUT = 5.0
# eth_subscribe pushes can be large on busy nodes; lift the 1 MiB default
_WS_MAX_FRAME_BYTES = 16 * 1024 * 1024


def _describe_close(e: ConnectionClosed) -> str:
    frame = e.rcvd or e.sent
    if frame is None:
        return "connection closed abnormally"
    return f"connection closed (code={frame.code}, reason={frame.reason or '-'})"


class StreamSession:
    """One open WebSocket connection. Not reusable after close."""

    def __init__(self, ws: ClientConnection, endpoint: str) -> None:
        self._ws = ws
        self._endpoint = endpoint
        self._closed = False

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def send(self, text: str) -> None:
        if self._closed:
            raise StreamClosed("send on closed stream")
        try:
            await self._ws.send(text)
        except ConnectionClosed as e:
            self._closed = True
            raise StreamClosed(_describe_close(e)) from e
        except WebSocketException as e:
            raise TransportError(f"send failed: {e}") from e

    async def receive(self) -> str:
        """Return the next inbound text frame in network order."""
        if self._closed:
            raise StreamClosed("receive on closed stream")
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as e:
            self._closed = True
            raise StreamClosed(_describe_close(e)) from e
        except (WebSocketException, OSError) as e:
            raise TransportError(f"receive failed: {e}") from e
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except (WebSocketException, OSError) as e:
            logger.debug("stream_close_error", error=str(e))


async def connect_stream(
    endpoint: str,
    *,
    ping_interval: float | None = DEFAULT_WS_PING_INTERVAL,
    ping_timeout: float | None = DEFAULT_WS_PING_TIMEOUT,
    open_timeout: float = DEFAULT_OPEN_TIMEOUT,
) -> StreamSession:
    """
    Open a WebSocket to the node.

    Raises:
        TransportError: DNS, TCP, TLS or handshake failure, or open timeout.
    """
    logger.info("stream_connecting", url=mask_url(endpoint))
    try:
        ws = await websockets.connect(
            endpoint,
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            open_timeout=open_timeout,
            close_timeout=_WS_CLOSE_TIMEOUT,
            max_size=_WS_MAX_FRAME_BYTES,
        )
    except (OSError, asyncio.TimeoutError, WebSocketException) as e:
        raise TransportError(f"connect to {mask_url(endpoint)} failed: {e}") from e
    logger.info("stream_connected", url=mask_url(endpoint))
    return StreamSession(ws, endpoint)
