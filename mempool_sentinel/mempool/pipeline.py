"""
Resolution pipeline: turn pending hashes into records.

Per transaction, each tick: eth_getTransactionByHash -> (mined?) eth_getCode
on the recipient -> decode -> sinks -> evict. Protocol and decode failures
leave the transaction pending for the next tick; only TransportError escapes
run_tick() and ends the session.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from mempool_sentinel.core.exceptions import DecodeError, ProtocolError
from mempool_sentinel.mempool.classifier import classify_code
from mempool_sentinel.mempool.models import ContractType, PendingEntry, RpcTransaction
from mempool_sentinel.mempool.pending import PendingSet
from mempool_sentinel.sentinel_logging import bind_transaction, get_logger
from mempool_sentinel.sinks.base import SinkAdapter
from mempool_sentinel.stream.rpc import METHOD_GET_CODE, METHOD_GET_TRANSACTION

logger = get_logger(__name__)


class RpcCaller(Protocol):
    async def call(self, method: str, params: list[Any]) -> Any: ...


class TxOutcome(str, Enum):
    RESOLVED = "resolved"
    PENDING = "pending"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass
class TickSummary:
    checked: int = 0
    resolved: int = 0
    pending: int = 0
    failed: int = 0
    abandoned: int = 0
    sink_failures: int = 0
    duration_ms: int = 0

    def count(self, outcome: TxOutcome) -> None:
        if outcome is TxOutcome.RESOLVED:
            self.resolved += 1
        elif outcome is TxOutcome.PENDING:
            self.pending += 1
        elif outcome is TxOutcome.FAILED:
            self.failed += 1


class ResolutionPipeline:
    """Resolves pending transactions sequentially over one RPC caller."""

    def __init__(self, rpc: RpcCaller, sinks: SinkAdapter) -> None:
        self._rpc = rpc
        self._sinks = sinks
        self._sink_failures = 0

    async def run_tick(self, pending: PendingSet) -> TickSummary:
        """Process a snapshot of the pending set, then abandon entries past max age."""
        started = time.monotonic()
        summary = TickSummary()
        self._sink_failures = 0
        for entry in pending.snapshot():
            if entry.tx_hash not in pending:
                continue
            summary.checked += 1
            summary.count(await self.resolve(entry, pending))
        for entry in pending.evict_expired():
            summary.abandoned += 1
            logger.warning(
                "tx_abandoned",
                tx_hash=entry.tx_hash,
                outcome=TxOutcome.ABANDONED.value,
                age_ms=entry.age_ms(pending.now_ms()),
                max_age_ms=pending.max_age_ms,
            )
        summary.sink_failures = self._sink_failures
        summary.duration_ms = int((time.monotonic() - started) * 1000)
        return summary

    async def resolve(self, entry: PendingEntry, pending: PendingSet) -> TxOutcome:
        log = bind_transaction(entry.tx_hash)
        try:
            result = await self._rpc.call(METHOD_GET_TRANSACTION, [entry.tx_hash])
            tx = RpcTransaction.from_rpc_result(entry.tx_hash, result)
            if tx is None or not tx.is_mined:
                return TxOutcome.PENDING
            contract_type = await self._classify_recipient(tx)
            record = tx.to_record(
                mempool_time_ms=entry.age_ms(pending.now_ms()),
                contract_type=contract_type,
            )
        except (ProtocolError, DecodeError) as e:
            log.warning("tx_resolution_failed", error_kind=type(e).__name__, error=str(e))
            return TxOutcome.FAILED

        report = await self._sinks.persist(record)
        if not report.ok:
            self._sink_failures += len(report.failed)
        pending.resolve(entry.tx_hash)
        log.info(
            "tx_resolved",
            block_number=record.block_number,
            gas_price=record.gas_price,
            mempool_time_ms=record.mempool_time_ms,
            contract_type=record.contract_type.value,
            sinks_written=report.written,
            sinks_failed=sorted(report.failed),
        )
        return TxOutcome.RESOLVED

    async def _classify_recipient(self, tx: RpcTransaction) -> ContractType:
        # contract creation: no recipient to look up
        if tx.to_address is None:
            return classify_code(None)
        code = await self._rpc.call(METHOD_GET_CODE, [tx.to_address, "latest"])
        contract_type = classify_code(code)
        if contract_type is ContractType.SPECIAL_CASE_CONTRACT:
            logger.warning(
                "classification_special_case",
                tx_hash=tx.hash,
                to_address=tx.to_address,
                code_type=type(code).__name__,
            )
        return contract_type
