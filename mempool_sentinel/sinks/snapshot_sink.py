"""
Snapshot file sink: the full record as JSON, one file per hash.

Files are named <tx_hash>.json and replaced atomically, so rewriting the same
hash after a restart is harmless.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path

from mempool_sentinel.core.exceptions import SinkError
from mempool_sentinel.mempool.models import TransactionRecord
from mempool_sentinel.sinks.base import RecordSink

# tx hashes become file names: only 0x + hex is accepted
_SAFE_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{1,128}$")


class SnapshotFileSink(RecordSink):
    name = "snapshot"

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, tx_hash: str) -> Path:
        if not _SAFE_HASH_RE.match(tx_hash):
            raise SinkError(self.name, f"refusing unsafe file name for hash {tx_hash!r}")
        return self._dir / f"{tx_hash}.json"

    def write(self, record: TransactionRecord) -> None:
        target = self.path_for(record.tx_hash)
        payload = json.dumps(record.to_dict())
        try:
            fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(payload)
                os.replace(tmp, target)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise SinkError(self.name, f"write {target} failed: {e}") from e
