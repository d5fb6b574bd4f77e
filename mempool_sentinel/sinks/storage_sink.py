"""
Storage sinks: persist records to the transaction store.

DatabaseStorageSink writes through the in-process SQLAlchemy store.
HttpStorageSink POSTs to a remote storage API (POST /transactions); a 409
means the hash is already stored and counts as success.
"""

from __future__ import annotations

import httpx
from sqlalchemy.exc import SQLAlchemyError

from mempool_sentinel.core.exceptions import SinkError
from mempool_sentinel.database import init_db, insert_transaction
from mempool_sentinel.mempool.models import TransactionRecord
from mempool_sentinel.sentinel_logging import get_logger
from mempool_sentinel.sinks.base import RecordSink

logger = get_logger(__name__)

DEFAULT_HTTP_TIMEOUT_SEC = 10.0


class DatabaseStorageSink(RecordSink):
    name = "storage"

    def __init__(self, *, create_tables: bool = True) -> None:
        if create_tables:
            init_db()

    def write(self, record: TransactionRecord) -> None:
        try:
            stored, created = insert_transaction(record)
        except (SQLAlchemyError, ValueError) as e:
            raise SinkError(self.name, f"insert failed: {e}") from e
        if not created:
            logger.debug("storage_sink_duplicate", tx_hash=record.tx_hash, id=stored["id"])


class HttpStorageSink(RecordSink):
    name = "storage_api"

    def __init__(
        self,
        base_url: str,
        *,
        timeout_sec: float = DEFAULT_HTTP_TIMEOUT_SEC,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        self._url = base_url.rstrip("/") + "/transactions"
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_sec))

    def write(self, record: TransactionRecord) -> None:
        try:
            resp = self._client.post(self._url, json=record.to_dict())
        except httpx.HTTPError as e:
            raise SinkError(self.name, f"POST {self._url} failed: {e}") from e
        if resp.status_code == 409:
            logger.debug("storage_api_duplicate", tx_hash=record.tx_hash)
            return
        if resp.status_code >= 400:
            raise SinkError(self.name, f"POST {self._url} returned {resp.status_code}: {resp.text[:200]}")

    def close(self) -> None:
        self._client.close()
