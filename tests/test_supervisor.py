"""
Tests for Supervisor and RetryPolicy: restart after transport failures,
fresh pending state per session, restart cap, and stop().
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeNode, FakeStream, RecordingSink, mined_tx, push_frame, wait_until
from mempool_sentinel.agent_worker.supervisor import RetryPolicy, Supervisor
from mempool_sentinel.core.exceptions import StreamClosed, TransportError
from mempool_sentinel.sinks.base import SinkAdapter


def test_retry_policy_fixed_delay_by_default():
    policy = RetryPolicy()
    assert policy.delay_for(1) == 5.0
    assert policy.delay_for(10) == 5.0
    assert policy.allows(10_000)


def test_retry_policy_backoff_is_capped():
    policy = RetryPolicy(delay_sec=1.0, backoff_factor=2.0, max_delay_sec=5.0, max_restarts=3)
    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]
    assert policy.allows(3)
    assert not policy.allows(4)


def test_retry_policy_from_settings(settings):
    policy = RetryPolicy.from_settings(settings)
    assert policy.delay_sec == settings.reconnect_delay_sec
    assert policy.max_restarts is None


@pytest.mark.asyncio
async def test_gives_up_after_max_restarts(settings):
    attempts = []

    async def connect(endpoint):
        attempts.append(endpoint)
        raise TransportError("connection refused")

    supervisor = Supervisor(
        settings,
        SinkAdapter([RecordingSink()]),
        policy=RetryPolicy(delay_sec=0.01, max_restarts=2),
        connect=connect,
    )
    await asyncio.wait_for(supervisor.run(), timeout=3)

    assert len(attempts) == 3
    assert supervisor.state.exhausted
    assert supervisor.state.sessions_started == 3
    assert supervisor.state.consecutive_failures == 3
    assert "connection refused" in supervisor.state.last_error


@pytest.mark.asyncio
async def test_reconnect_starts_with_empty_pending_set(settings):
    """The stream drops mid-tick: nothing is persisted and the pending hash is not carried over."""
    first = FakeNode()
    first.after_subscribe = [push_frame("0xabc")]

    def drop_on_lookup(msg):
        if msg["method"] == "eth_getTransactionByHash":
            return [StreamClosed("node restarted")]
        return first(msg)

    second = FakeNode()
    second.transactions["0xabc"] = mined_tx("0xabc")
    first_stream = FakeStream(drop_on_lookup)
    streams = [first_stream, FakeStream(second)]
    sink = RecordingSink()

    async def connect(endpoint):
        return streams.pop(0)

    supervisor = Supervisor(
        settings,
        SinkAdapter([sink]),
        policy=RetryPolicy(delay_sec=0.01),
        connect=connect,
    )
    task = asyncio.create_task(supervisor.run())
    await wait_until(lambda: supervisor.state.sessions_started == 2)
    await wait_until(
        lambda: supervisor.current_session is not None and supervisor.current_session.stats.ticks >= 2
    )
    supervisor.stop()
    await asyncio.wait_for(task, timeout=2)

    assert [m["method"] for m in first_stream.sent] == ["eth_subscribe", "eth_getTransactionByHash"]
    assert "node restarted" in supervisor.state.last_error
    assert supervisor.state.restarts == 1
    assert supervisor.state.consecutive_failures == 1
    assert not supervisor.state.exhausted
    assert sink.records == []
    assert second.calls_for("eth_getTransactionByHash") == []


@pytest.mark.asyncio
async def test_stop_ends_running_session(settings, node):
    node.after_subscribe = [push_frame("0xabc")]
    node.transactions["0xabc"] = mined_tx("0xabc")
    sink = RecordingSink()

    async def connect(endpoint):
        return FakeStream(node)

    supervisor = Supervisor(settings, SinkAdapter([sink]), connect=connect)
    task = asyncio.create_task(supervisor.run())
    await wait_until(lambda: len(sink.records) == 1)
    supervisor.stop()
    await asyncio.wait_for(task, timeout=2)

    assert supervisor.state.sessions_started == 1
    assert supervisor.state.restarts == 0
    assert supervisor.state.resolved_total == 1
