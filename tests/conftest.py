"""
Pytest fixtures for Mempool Sentinel tests.

Network is replaced by FakeStream (an in-memory Stream) answered by FakeNode;
the transaction store uses a temporary SQLite DB.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import pytest

from mempool_sentinel.config.settings import Settings
from mempool_sentinel.core.exceptions import SinkError, StreamClosed
from mempool_sentinel.mempool.models import ContractType, TransactionRecord
from mempool_sentinel.sinks.base import RecordSink

SUBSCRIPTION_ID = "0xcd0c3e8af590364c09d0fa6a1210faf5"


class FakeClock:
    """Injectable millisecond clock for PendingSet."""

    def __init__(self, now_ms: int = 0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


def push_frame(tx_hash: Any, subscription: str = SUBSCRIPTION_ID) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {"subscription": subscription, "result": tx_hash},
    }


def mined_tx(
    tx_hash: str,
    *,
    block_number: str = "0x10",
    to: str | None = "0x2222222222222222222222222222222222222222",
    gas_price: str = "0x4a817c800",
    block_hash: Any = "0x" + "ab" * 32,
) -> dict[str, Any]:
    return {
        "hash": tx_hash,
        "blockHash": block_hash,
        "blockNumber": block_number,
        "from": "0x1111111111111111111111111111111111111111",
        "to": to,
        "value": "0xde0b6b3a7640000",
        "gas": "0x5208",
        "gasPrice": gas_price,
        "input": "0x",
        "nonce": "0x2a",
    }


class FakeNode:
    """
    Answers JSON-RPC requests the way an Ethereum node would.

    transactions: hash -> eth_getTransactionByHash result (missing -> null)
    code: address -> eth_getCode result (missing -> "0x")
    errors: method -> JSON-RPC error object
    silent: methods that never get a response
    after_subscribe: frames (or exceptions) delivered right after the subscribe response
    """

    def __init__(self, subscription_id: str = SUBSCRIPTION_ID) -> None:
        self.subscription_id = subscription_id
        self.transactions: dict[str, Any] = {}
        self.code: dict[str, Any] = {}
        self.errors: dict[str, dict[str, Any]] = {}
        self.silent: set[str] = set()
        self.after_subscribe: list[Any] = []
        self.calls: list[tuple[str, list[Any]]] = []

    def calls_for(self, method: str) -> list[list[Any]]:
        return [params for m, params in self.calls if m == method]

    def __call__(self, msg: dict[str, Any]) -> list[Any]:
        method = msg["method"]
        params = msg.get("params", [])
        self.calls.append((method, params))
        if method in self.silent:
            return []
        if method in self.errors:
            return [{"jsonrpc": "2.0", "id": msg["id"], "error": self.errors[method]}]
        if method == "eth_subscribe":
            reply = {"jsonrpc": "2.0", "id": msg["id"], "result": self.subscription_id}
            return [reply, *self.after_subscribe]
        if method == "eth_getTransactionByHash":
            result = self.transactions.get(params[0])
        elif method == "eth_getCode":
            result = self.code.get(params[0], "0x")
        else:
            result = None
        return [{"jsonrpc": "2.0", "id": msg["id"], "result": result}]


class FakeStream:
    """In-memory Stream: fed frames come back from receive() in order; an exception item is raised."""

    def __init__(self, responder: Callable[[dict[str, Any]], list[Any]] | None = None) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()
        self._responder = responder

    def feed(self, item: Any) -> None:
        if isinstance(item, (dict, list)):
            item = json.dumps(item)
        self._inbound.put_nowait(item)

    def push(self, tx_hash: Any, subscription: str = SUBSCRIPTION_ID) -> None:
        self.feed(push_frame(tx_hash, subscription))

    def drop(self, reason: str = "connection reset by test") -> None:
        self._inbound.put_nowait(StreamClosed(reason))

    async def send(self, text: str) -> None:
        if self.closed:
            raise StreamClosed("send on closed stream")
        msg = json.loads(text)
        self.sent.append(msg)
        if self._responder is not None:
            for item in self._responder(msg):
                self.feed(item)

    async def receive(self) -> str:
        if self.closed:
            raise StreamClosed("receive on closed stream")
        item = await self._inbound.get()
        if isinstance(item, BaseException):
            self.closed = True
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class RecordingSink(RecordSink):
    name = "recording"

    def __init__(self) -> None:
        self.records: list[TransactionRecord] = []

    def write(self, record: TransactionRecord) -> None:
        self.records.append(record)


class FailingSink(RecordSink):
    name = "failing"

    def __init__(self) -> None:
        self.attempts = 0

    def write(self, record: TransactionRecord) -> None:
        self.attempts += 1
        raise SinkError(self.name, "disk full")


async def wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Poll predicate on the running loop; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def make_record(tx_hash: str = "0xabc", **overrides: Any) -> TransactionRecord:
    fields: dict[str, Any] = {
        "tx_hash": tx_hash,
        "block_hash": "0x" + "ab" * 32,
        "block_number": 16,
        "from_address": "0x1111111111111111111111111111111111111111",
        "to_address": "0x2222222222222222222222222222222222222222",
        "value": 10**18,
        "gas": 21000,
        "gas_price": 20_000_000_000,
        "input": "0x",
        "nonce": 42,
        "mempool_time_ms": 3000,
        "contract_type": ContractType.EXTERNALLY_OWNED_ACCOUNT,
    }
    fields.update(overrides)
    return TransactionRecord(**fields)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def settings(tmp_path):
    """Fast-ticking settings with every file output under tmp_path."""
    return Settings(
        stream_endpoint="ws://node.test:8546",
        poll_interval_sec=0.05,
        reconnect_delay_sec=0.01,
        call_timeout_sec=1.0,
        csv_path=tmp_path / "transactions.csv",
        snapshot_dir=tmp_path / "responses",
        database_url=f"sqlite:///{tmp_path / 'sentinel.db'}",
    )


@pytest.fixture
def store(tmp_path, monkeypatch):
    """
    Point the transaction store at a temporary SQLite DB and init tables.
    Resets engine cache so each test gets a fresh DB.
    """
    monkeypatch.delenv("SENTINEL_DB_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    import mempool_sentinel.database.database as db

    db.configure_database(f"sqlite:///{tmp_path / 'store.db'}")
    db.init_db()
    yield db
    db.reset_engine_for_test()


@pytest.fixture
def client(store):
    """FastAPI TestClient. Depends on store so the temp DB is set before app runs."""
    from fastapi.testclient import TestClient

    from mempool_sentinel.api_server.server import app

    return TestClient(app)
