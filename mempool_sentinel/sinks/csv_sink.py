"""
Tabular log sink: one CSV row per resolved transaction.

Columns: transaction_hash, mempool_time_ms, gas_price, block_number, contract_type.
The header is written once, when the file is created. Hashes already in the
file (from this or an earlier run) are loaded at open and never appended again.
"""

from __future__ import annotations

import csv
import threading
from pathlib import Path

from mempool_sentinel.core.exceptions import SinkError
from mempool_sentinel.mempool.models import TransactionRecord
from mempool_sentinel.sentinel_logging import get_logger
from mempool_sentinel.sinks.base import RecordSink

logger = get_logger(__name__)

CSV_HEADER = ["transaction_hash", "mempool_time_ms", "gas_price", "block_number", "contract_type"]


class CsvRecordSink(RecordSink):
    name = "csv"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._written: set[str] = set()
        self._open()

    @property
    def path(self) -> Path:
        return self._path

    def _open(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if self._path.exists() and self._path.stat().st_size > 0:
            with open(self._path, newline="") as f:
                reader = csv.reader(f)
                next(reader, None)
                for row in reader:
                    if row:
                        self._written.add(row[0])
            logger.info("csv_sink_resumed", path=str(self._path), existing_rows=len(self._written))
            return
        with open(self._path, "w", newline="") as f:
            csv.writer(f).writerow(CSV_HEADER)
        logger.info("csv_sink_created", path=str(self._path))

    def write(self, record: TransactionRecord) -> None:
        with self._lock:
            if record.tx_hash in self._written:
                logger.debug("csv_sink_duplicate_skipped", tx_hash=record.tx_hash)
                return
            block_number = "" if record.block_number is None else str(record.block_number)
            try:
                with open(self._path, "a", newline="") as f:
                    csv.writer(f).writerow(
                        [
                            record.tx_hash,
                            record.mempool_time_ms,
                            record.gas_price,
                            block_number,
                            record.contract_type.value,
                        ]
                    )
            except OSError as e:
                raise SinkError(self.name, f"append to {self._path} failed: {e}") from e
            self._written.add(record.tx_hash)
