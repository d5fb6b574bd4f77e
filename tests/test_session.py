"""
Tests for MempoolSession: subscribe, ingest pushes, resolve on the ticker.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeClock, FakeStream, RecordingSink, mined_tx, push_frame, wait_until
from mempool_sentinel.core.exceptions import StreamClosed
from mempool_sentinel.mempool.models import ContractType
from mempool_sentinel.mempool.pending import PendingSet
from mempool_sentinel.mempool.session import MempoolSession, _push_tx_hash
from mempool_sentinel.sinks.base import SinkAdapter


def _connector(stream):
    async def connect(endpoint):
        return stream

    return connect


@pytest.mark.asyncio
async def test_session_resolves_pushed_transaction(settings, node):
    node.after_subscribe = [push_frame("0xabc")]
    node.transactions["0xabc"] = mined_tx("0xabc")
    stream = FakeStream(node)
    sink = RecordingSink()
    stop = asyncio.Event()
    session = MempoolSession(settings, SinkAdapter([sink]), connect=_connector(stream), stop_event=stop)

    task = asyncio.create_task(session.run())
    await wait_until(lambda: len(sink.records) == 1)

    # a late push for the same hash is ignored
    stream.push("0xabc")
    await wait_until(lambda: session.stats.pushes == 2)
    await wait_until(lambda: session.stats.ticks >= 2)
    stop.set()
    await asyncio.wait_for(task, timeout=2)

    assert session.subscribed
    assert session.stats.resolved == 1
    assert session.stats.ignored_pushes == 1
    assert len(sink.records) == 1
    assert sink.records[0].block_number == 16
    assert sink.records[0].contract_type is ContractType.EXTERNALLY_OWNED_ACCOUNT
    assert stream.closed


@pytest.mark.asyncio
async def test_unmined_transaction_stays_pending_across_ticks(settings, node):
    node.after_subscribe = [push_frame("0xabc")]
    stream = FakeStream(node)
    stop = asyncio.Event()
    session = MempoolSession(settings, SinkAdapter([RecordingSink()]), connect=_connector(stream), stop_event=stop)

    task = asyncio.create_task(session.run())
    await wait_until(lambda: session.stats.ticks >= 3)
    stop.set()
    await asyncio.wait_for(task, timeout=2)

    assert "0xabc" in session.pending
    assert len(node.calls_for("eth_getTransactionByHash")) >= 3


@pytest.mark.asyncio
async def test_stream_drop_ends_session_with_transport_error(settings, node):
    node.after_subscribe = [push_frame("0xabc"), StreamClosed("node restarted")]
    stream = FakeStream(node)
    session = MempoolSession(settings, SinkAdapter([RecordingSink()]), connect=_connector(stream))

    with pytest.raises(StreamClosed, match="node restarted"):
        await asyncio.wait_for(session.run(), timeout=2)

    assert session.subscribed
    assert session.stats.pushes == 1
    assert stream.closed


@pytest.mark.asyncio
async def test_full_transaction_object_push(settings, node):
    """Some nodes push full transaction objects instead of hashes."""
    node.after_subscribe = [push_frame({"hash": "0xabc", "nonce": "0x1"}), push_frame(42)]
    stream = FakeStream(node)
    stop = asyncio.Event()
    session = MempoolSession(settings, SinkAdapter([RecordingSink()]), connect=_connector(stream), stop_event=stop)

    task = asyncio.create_task(session.run())
    await wait_until(lambda: session.stats.pushes == 2)
    stop.set()
    await asyncio.wait_for(task, timeout=2)

    assert "0xabc" in session.pending
    assert session.stats.ignored_pushes == 1


def test_push_tx_hash():
    assert _push_tx_hash("0xabc") == "0xabc"
    assert _push_tx_hash({"hash": "0xabc"}) == "0xabc"
    assert _push_tx_hash("") is None
    assert _push_tx_hash(None) is None
    assert _push_tx_hash({"nonce": "0x1"}) is None


def test_injected_empty_pending_set_is_kept(settings):
    injected = PendingSet(clock=FakeClock(1234))
    session = MempoolSession(settings, SinkAdapter([RecordingSink()]), pending=injected)
    assert session.pending is injected


@pytest.mark.asyncio
async def test_mempool_time_uses_injected_clock(settings, node):
    clock = FakeClock(1_000)
    node.after_subscribe = [push_frame("0xabc")]
    stream = FakeStream(node)
    sink = RecordingSink()
    stop = asyncio.Event()
    session = MempoolSession(
        settings,
        SinkAdapter([sink]),
        pending=PendingSet(clock=clock),
        connect=_connector(stream),
        stop_event=stop,
    )

    task = asyncio.create_task(session.run())
    await wait_until(lambda: session.stats.pushes == 1)
    clock.advance(3_000)
    node.transactions["0xabc"] = mined_tx("0xabc")
    await wait_until(lambda: len(sink.records) == 1)
    stop.set()
    await asyncio.wait_for(task, timeout=2)

    assert sink.records[0].mempool_time_ms == 3_000
