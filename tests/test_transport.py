"""
Tests for StreamSession / connect_stream error mapping.
"""

from __future__ import annotations

import pytest
from websockets.exceptions import ConnectionClosed
from websockets.frames import Close

from mempool_sentinel.core.exceptions import StreamClosed, TransportError
from mempool_sentinel.stream.transport import StreamSession, connect_stream


class _FakeWebSocket:
    def __init__(self, inbound=None, error=None):
        self.inbound = list(inbound or [])
        self.error = error
        self.sent = []
        self.closed = False

    async def send(self, text):
        if self.error is not None:
            raise self.error
        self.sent.append(text)

    async def recv(self):
        if self.error is not None:
            raise self.error
        return self.inbound.pop(0)

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_session_passes_text_and_decodes_bytes():
    ws = _FakeWebSocket(inbound=['{"id": 1}', b'{"id": 2}'])
    session = StreamSession(ws, "ws://node.test")
    await session.send('{"id": 1}')
    assert await session.receive() == '{"id": 1}'
    assert await session.receive() == '{"id": 2}'
    await session.close()
    assert ws.sent == ['{"id": 1}']
    assert ws.closed


@pytest.mark.asyncio
async def test_close_frame_becomes_stream_closed():
    ws = _FakeWebSocket(error=ConnectionClosed(Close(1001, "going away"), None))
    session = StreamSession(ws, "ws://node.test")
    with pytest.raises(StreamClosed, match="1001"):
        await session.receive()
    with pytest.raises(StreamClosed):
        await session.send("{}")


@pytest.mark.asyncio
async def test_abrupt_disconnect_becomes_stream_closed():
    ws = _FakeWebSocket(error=ConnectionClosed(None, None))
    with pytest.raises(StreamClosed, match="abnormally"):
        await StreamSession(ws, "ws://node.test").receive()


@pytest.mark.asyncio
async def test_socket_error_becomes_transport_error():
    ws = _FakeWebSocket(error=ConnectionResetError("reset"))
    with pytest.raises(TransportError):
        await StreamSession(ws, "ws://node.test").receive()


@pytest.mark.asyncio
async def test_connect_refused_is_transport_error():
    # nothing listens on port 1
    with pytest.raises(TransportError, match="connect to"):
        await connect_stream("ws://127.0.0.1:1", open_timeout=2)
