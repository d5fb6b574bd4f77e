"""
Message router: one reader, many calls, one subscription feed.

A single reader task owns StreamSession.receive(). Every inbound frame is
classified: call responses resolve the future registered under their JSON-RPC
id (arrival order is irrelevant), subscription pushes are appended to a FIFO
buffer that the coordination loop drains with next_push(). A push that lands
between a call and its response is therefore queued, never mistaken for the
response.

When the reader stops (close frame, socket error, cancellation) every
outstanding call fails and next_push() raises. Each raise is a new
exception chained from the reader failure.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from typing import Any, Protocol

from mempool_sentinel.core.exceptions import (
    CallTimeout,
    ProtocolError,
    RpcError,
    StreamClosed,
    TransportError,
)
from mempool_sentinel.sentinel_logging import get_logger
from mempool_sentinel.stream.rpc import (
    METHOD_SUBSCRIBE,
    NEW_PENDING_TRANSACTIONS,
    FrameKind,
    RpcResponse,
    SubscriptionPush,
    build_request,
    classify_frame,
    parse_frame,
    to_push,
    to_response,
)

logger = get_logger(__name__)

DEFAULT_CALL_TIMEOUT_SEC = 10.0


class Stream(Protocol):
    async def send(self, text: str) -> None: ...

    async def receive(self) -> str: ...

    async def close(self) -> None: ...


class MessageRouter:
    """
    Multiplexes JSON-RPC calls and subscription pushes over one stream.

    Usage:
        async with MessageRouter(stream) as router:
            await router.subscribe()
            push = await router.next_push()
            tx = await router.call("eth_getTransactionByHash", [push.result])
    """

    def __init__(self, stream: Stream, *, call_timeout_sec: float = DEFAULT_CALL_TIMEOUT_SEC) -> None:
        if call_timeout_sec <= 0:
            raise ValueError("call_timeout_sec must be positive")
        self._stream = stream
        self._call_timeout = call_timeout_sec
        self._ids = itertools.count(1)
        self._outstanding: dict[int, tuple[str, asyncio.Future[RpcResponse]]] = {}
        self._pushes: deque[SubscriptionPush] = deque()
        self._push_ready = asyncio.Event()
        self._reader: asyncio.Task[None] | None = None
        self._failure: TransportError | None = None
        self._subscription_id: str | None = None

    async def __aenter__(self) -> "MessageRouter":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def subscription_id(self) -> str | None:
        return self._subscription_id

    @property
    def outstanding_calls(self) -> int:
        return len(self._outstanding)

    @property
    def buffered_pushes(self) -> int:
        return len(self._pushes)

    def start(self) -> None:
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_loop(), name="router-reader")

    async def close(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if self._failure is None:
            self._fail(StreamClosed("router closed"))
        await self._stream.close()

    async def call(self, method: str, params: list[Any]) -> Any:
        """
        Send one request and wait for the response carrying the same id.

        Raises:
            RpcError: the node returned a JSON-RPC error object.
            CallTimeout: no response within call_timeout_sec.
            TransportError: the stream failed before the response arrived.
        """
        if self._failure is not None:
            raise self._failure_error()
        request_id = next(self._ids)
        fut: asyncio.Future[RpcResponse] = asyncio.get_running_loop().create_future()
        self._outstanding[request_id] = (method, fut)
        try:
            await self._stream.send(build_request(request_id, method, params))
            try:
                response = await asyncio.wait_for(fut, timeout=self._call_timeout)
            except asyncio.TimeoutError as e:
                raise CallTimeout(method, request_id, self._call_timeout) from e
        finally:
            self._outstanding.pop(request_id, None)
        if response.error is not None:
            raise RpcError(
                method,
                response.error.get("code"),
                str(response.error.get("message", response.error)),
            )
        return response.result

    async def subscribe(self, kind: str = NEW_PENDING_TRANSACTIONS) -> str:
        """eth_subscribe to `kind`; pushes for any other subscription id are ignored afterwards."""
        result = await self.call(METHOD_SUBSCRIBE, [kind])
        if not isinstance(result, str) or not result:
            raise ProtocolError(f"eth_subscribe returned no subscription id: {result!r}")
        self._subscription_id = result
        logger.info("router_subscribed", kind=kind, subscription_id=result)
        return result

    async def next_push(self) -> SubscriptionPush:
        """Return the next buffered push for the active subscription; raise once the reader has failed."""
        while True:
            while self._pushes:
                push = self._pushes.popleft()
                if self._subscription_id is not None and push.subscription != self._subscription_id:
                    logger.debug(
                        "router_foreign_subscription_push",
                        subscription_id=push.subscription,
                    )
                    continue
                return push
            if self._failure is not None:
                raise self._failure_error()
            self._push_ready.clear()
            await self._push_ready.wait()

    def route(self, raw: str) -> FrameKind:
        """Classify one inbound frame and deliver it. Never raises for bad frames."""
        try:
            msg = parse_frame(raw)
        except ProtocolError as e:
            logger.warning("router_malformed_frame", error=str(e), frame=raw[:200])
            return FrameKind.UNKNOWN
        kind = classify_frame(msg)
        if kind is FrameKind.PUSH:
            self._pushes.append(to_push(msg))
            self._push_ready.set()
        elif kind is FrameKind.RESPONSE:
            try:
                response = to_response(msg)
            except ProtocolError as e:
                logger.warning("router_malformed_response", error=str(e))
                return FrameKind.UNKNOWN
            entry = self._outstanding.get(response.request_id)
            if entry is None:
                logger.warning("router_unmatched_response", request_id=response.request_id)
                return kind
            _, fut = entry
            if not fut.done():
                fut.set_result(response)
        else:
            logger.debug("router_unknown_frame", frame=raw[:200])
        return kind

    async def _read_loop(self) -> None:
        try:
            while True:
                raw = await self._stream.receive()
                self.route(raw)
        except TransportError as e:
            logger.warning("router_reader_stopped", error=str(e))
            self._fail(e)
        except asyncio.CancelledError:
            self._fail(StreamClosed("router reader cancelled"))
            raise
        except Exception as e:
            logger.exception("router_reader_crashed", error=str(e))
            self._fail(TransportError(f"router reader crashed: {e}"))

    def _fail(self, error: TransportError) -> None:
        if self._failure is None:
            self._failure = error
        for _, fut in self._outstanding.values():
            if not fut.done():
                fut.set_exception(self._failure_error())
        self._push_ready.set()

    def _failure_error(self) -> TransportError:
        """A new exception per raise, chained from the stored failure."""
        failure = self._failure
        cls = StreamClosed if isinstance(failure, StreamClosed) else TransportError
        error = cls(str(failure))
        error.__cause__ = failure
        return error
