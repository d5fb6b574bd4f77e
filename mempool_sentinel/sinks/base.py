"""
Sink adapter: fan one resolved record out to every configured sink.

Each sink is best-effort and idempotent by tx_hash. A failing sink is logged
and reported; it never blocks the others and never raises into the
resolution pipeline.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from mempool_sentinel.core.exceptions import SinkError
from mempool_sentinel.mempool.models import TransactionRecord
from mempool_sentinel.sentinel_logging import get_logger

logger = get_logger(__name__)


class RecordSink(ABC):
    """One downstream writer. write() is blocking; the adapter runs it in an executor."""

    name: str = "sink"

    @abstractmethod
    def write(self, record: TransactionRecord) -> None:
        """Persist the record. Must be idempotent by tx_hash. Raises SinkError on failure."""
        ...

    def close(self) -> None:
        """Release resources. Default: nothing to release."""


@dataclass
class SinkReport:
    tx_hash: str
    written: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class SinkAdapter:
    """Writes a record to each sink in order; at-least-once, never aborts on partial failure."""

    def __init__(self, sinks: list[RecordSink]) -> None:
        self._sinks = list(sinks)

    @property
    def sinks(self) -> list[RecordSink]:
        return list(self._sinks)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._sinks]

    async def persist(self, record: TransactionRecord) -> SinkReport:
        report = SinkReport(tx_hash=record.tx_hash)
        loop = asyncio.get_running_loop()
        for sink in self._sinks:
            try:
                await loop.run_in_executor(None, sink.write, record)
            except SinkError as e:
                report.failed[sink.name] = str(e)
                logger.warning("sink_write_failed", sink=sink.name, tx_hash=record.tx_hash, error=str(e))
                continue
            except Exception as e:
                report.failed[sink.name] = str(e)
                logger.exception("sink_write_crashed", sink=sink.name, tx_hash=record.tx_hash, error=str(e))
                continue
            report.written.append(sink.name)
        return report

    def close(self) -> None:
        for sink in self._sinks:
            try:
                sink.close()
            except Exception as e:
                logger.warning("sink_close_failed", sink=sink.name, error=str(e))
