"""
Mempool session: one connection, one subscription, one coordination loop.

The loop races two event sources: the router's next subscription push and
the poll ticker. Exactly one event is handled to completion before the next;
ticks never overlap and missed ticks are skipped rather than bursted. While a
tick waits on call responses, the router's reader keeps buffering pushes,
which are ingested once the tick returns.

Any TransportError (close frame, socket error, call timeout) ends the
session; the supervisor decides whether and when to start a new one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from mempool_sentinel.config.settings import Settings
from mempool_sentinel.mempool.pending import PendingSet
from mempool_sentinel.mempool.pipeline import ResolutionPipeline, TickSummary
from mempool_sentinel.sentinel_logging import get_logger, session_context
from mempool_sentinel.sinks.base import SinkAdapter
from mempool_sentinel.stream.router import MessageRouter, Stream
from mempool_sentinel.stream.rpc import NEW_PENDING_TRANSACTIONS, SubscriptionPush
from mempool_sentinel.stream.transport import connect_stream

logger = get_logger(__name__)

Connector = Callable[[str], Awaitable[Stream]]


@dataclass
class SessionStats:
    pushes: int = 0
    ignored_pushes: int = 0
    ticks: int = 0
    resolved: int = 0
    abandoned: int = 0


def _push_tx_hash(result: Any) -> str | None:
    """newPendingTransactions pushes a hash; some nodes push the full tx object instead."""
    if isinstance(result, str) and result:
        return result
    if isinstance(result, dict) and isinstance(result.get("hash"), str):
        return result["hash"]
    return None


class MempoolSession:
    """Runs until the transport fails or stop_event is set. Not restartable."""

    def __init__(
        self,
        settings: Settings,
        sinks: SinkAdapter,
        *,
        pending: PendingSet | None = None,
        connect: Connector = connect_stream,
        stop_event: asyncio.Event | None = None,
        session_id: int = 1,
    ) -> None:
        self._settings = settings
        self._sinks = sinks
        if pending is None:
            pending = PendingSet(
                max_age_ms=settings.max_pending_age_ms,
                retired_capacity=settings.retired_hash_capacity,
            )
        self._pending = pending
        self._connect = connect
        self._stop = stop_event if stop_event is not None else asyncio.Event()
        self._session_id = session_id
        self.stats = SessionStats()
        self.subscribed = False

    @property
    def pending(self) -> PendingSet:
        return self._pending

    async def run(self) -> None:
        # every log line from this task (and the router reader it spawns) carries session=
        with session_context(self._session_id):
            stream = await self._connect(self._settings.stream_endpoint)
            async with MessageRouter(stream, call_timeout_sec=self._settings.call_timeout_sec) as router:
                subscription_id = await router.subscribe(NEW_PENDING_TRANSACTIONS)
                self.subscribed = True
                logger.info(
                    "session_subscribed",
                    subscription_id=subscription_id,
                    poll_interval_sec=self._settings.poll_interval_sec,
                )
                await self._coordinate(router, ResolutionPipeline(router, self._sinks))
            logger.info("session_stopped", pending=len(self._pending))

    async def _coordinate(self, router: MessageRouter, pipeline: ResolutionPipeline) -> None:
        loop = asyncio.get_running_loop()
        interval = self._settings.poll_interval_sec
        next_tick = loop.time() + interval
        while not self._stop.is_set():
            remaining = next_tick - loop.time()
            if remaining <= 0:
                await self._tick(router, pipeline)
                next_tick += interval
                if next_tick <= loop.time():
                    next_tick = loop.time() + interval
                continue
            try:
                push = await asyncio.wait_for(router.next_push(), timeout=remaining)
            except asyncio.TimeoutError:
                continue
            self._ingest(push)

    def _ingest(self, push: SubscriptionPush) -> None:
        self.stats.pushes += 1
        tx_hash = _push_tx_hash(push.result)
        if tx_hash is None:
            self.stats.ignored_pushes += 1
            logger.warning("session_push_unexpected_payload", payload_type=type(push.result).__name__)
            return
        if self._pending.add(tx_hash):
            logger.debug("tx_pending_added", tx_hash=tx_hash, pending=len(self._pending))
            return
        self.stats.ignored_pushes += 1
        if self._pending.is_retired(tx_hash):
            logger.debug("tx_push_ignored_retired", tx_hash=tx_hash)

    async def _tick(self, router: MessageRouter, pipeline: ResolutionPipeline) -> TickSummary:
        self.stats.ticks += 1
        summary = await pipeline.run_tick(self._pending)
        self.stats.resolved += summary.resolved
        self.stats.abandoned += summary.abandoned
        logger.info(
            "mempool_tick",
            tick=self.stats.ticks,
            pending=len(self._pending),
            checked=summary.checked,
            resolved=summary.resolved,
            still_pending=summary.pending,
            failed=summary.failed,
            abandoned=summary.abandoned,
            sink_failures=summary.sink_failures,
            buffered_pushes=router.buffered_pushes,
            duration_ms=summary.duration_ms,
        )
        return summary
