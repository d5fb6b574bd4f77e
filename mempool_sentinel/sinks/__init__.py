"""
Record sinks: CSV log, per-hash JSON snapshots, and the transaction store.
"""

from __future__ import annotations

from mempool_sentinel.config.settings import Settings
from mempool_sentinel.sinks.base import RecordSink, SinkAdapter, SinkReport
from mempool_sentinel.sinks.csv_sink import CsvRecordSink
from mempool_sentinel.sinks.snapshot_sink import SnapshotFileSink
from mempool_sentinel.sinks.storage_sink import DatabaseStorageSink, HttpStorageSink


def build_sink_adapter(settings: Settings) -> SinkAdapter:
    """CSV, snapshot, then storage (remote API when STORAGE_API_URL is set, else local DB)."""
    storage: RecordSink
    if settings.storage_api_url:
        storage = HttpStorageSink(settings.storage_api_url)
    else:
        storage = DatabaseStorageSink()
    return SinkAdapter(
        [
            CsvRecordSink(settings.csv_path),
            SnapshotFileSink(settings.snapshot_dir),
            storage,
        ]
    )


__all__ = [
    "CsvRecordSink",
    "DatabaseStorageSink",
    "HttpStorageSink",
    "RecordSink",
    "SinkAdapter",
    "SinkReport",
    "SnapshotFileSink",
    "build_sink_adapter",
]
