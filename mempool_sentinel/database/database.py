"""
Transaction store: SQLAlchemy-backed, idempotent by transaction hash.

Uses SENTINEL_DB_URL / DATABASE_URL when set (any SQLAlchemy URL, e.g.
PostgreSQL); otherwise SQLite at DB_PATH. configure_database() overrides the
URL explicitly (used by the bootstrap and tests). Same public API for the
storage sink and the FastAPI server.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from mempool_sentinel.config.env import get_database_url
from mempool_sentinel.database.models import MAX_BIGINT, Base, TransactionRow
from mempool_sentinel.mempool.models import TransactionRecord
from mempool_sentinel.sentinel_logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 500

_url_override: str | None = None
_engine = None
_SessionLocal: sessionmaker | None = None


def _database_url() -> str:
    return _url_override or get_database_url()


def _redact(url: str) -> str:
    return url.split("?")[0].split("@")[-1]


def configure_database(url: str) -> None:
    """Point the store at `url`; drops any cached engine."""
    global _url_override
    _url_override = url
    reset_engine_for_test()


def _get_engine():
    """Create or return cached engine."""
    global _engine
    if _engine is None:
        url = _database_url()
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        logger.info("transaction_store_engine", url=_redact(url))
    return _engine


def _get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
    return _SessionLocal


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Context manager for a single session. Commits on success, rolls back on error."""
    factory = _get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create tables if they do not exist. Safe to call on every startup."""
    try:
        Base.metadata.create_all(bind=_get_engine())
        logger.info("transaction_store_init_db", url=_redact(_database_url()))
    except Exception as e:
        logger.exception("transaction_store_init_db_failed", error=str(e))
        raise


def _row_from_record(record: TransactionRecord) -> TransactionRow:
    for field in ("gas_price", "block_number", "mempool_time_ms"):
        value = getattr(record, field)
        if value is not None and value > MAX_BIGINT:
            raise ValueError(f"{field}={value} exceeds the BIGINT column range")
    return TransactionRow(
        tx_hash=record.tx_hash,
        block_hash=record.block_hash,
        block_number=record.block_number,
        from_sender=record.from_address,
        to_receiver=record.to_address,
        tx_value=str(record.value),
        gas=str(record.gas),
        gas_price=record.gas_price,
        input=record.input,
        nonce=str(record.nonce),
        mempool_time_ms=record.mempool_time_ms,
        contract_type=record.contract_type.value,
    )


def insert_transaction(record: TransactionRecord) -> tuple[dict[str, Any], bool]:
    """
    Insert one record. Returns (stored_row, created).

    A duplicate hash is not an error: the existing row is returned with
    created=False so replays after a restart stay idempotent.
    """
    try:
        with _session_scope() as session:
            row = _row_from_record(record)
            session.add(row)
            session.flush()
            stored = row.to_dict()
        logger.debug("transaction_stored", tx_hash=record.tx_hash, id=stored["id"])
        return stored, True
    except IntegrityError:
        existing = get_transaction_by_hash(record.tx_hash)
        if existing is None:
            raise
        logger.info("transaction_already_stored", tx_hash=record.tx_hash, id=existing["id"])
        return existing, False


def get_transaction_by_id(row_id: int) -> dict[str, Any] | None:
    with _session_scope() as session:
        row = session.get(TransactionRow, row_id)
        return row.to_dict() if row else None


def get_transaction_by_hash(tx_hash: str) -> dict[str, Any] | None:
    tx_hash = (tx_hash or "").strip()
    if not tx_hash:
        return None
    with _session_scope() as session:
        row = session.query(TransactionRow).filter(TransactionRow.tx_hash == tx_hash).first()
        return row.to_dict() if row else None


def list_transactions(*, limit: int = DEFAULT_LIST_LIMIT) -> list[dict[str, Any]]:
    """Return stored transactions, oldest first."""
    with _session_scope() as session:
        rows = session.query(TransactionRow).order_by(TransactionRow.id).limit(limit).all()
        return [r.to_dict() for r in rows]


def filter_transactions(
    *,
    gas_price_min: int | None = None,
    gas_price_max: int | None = None,
    contract_type: str | None = None,
    block_number_min: int | None = None,
    block_number_max: int | None = None,
    mempool_time_min: int | None = None,
    mempool_time_max: int | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[dict[str, Any]]:
    """Return transactions matching every given bound (inclusive)."""
    with _session_scope() as session:
        q = session.query(TransactionRow)
        if gas_price_min is not None:
            q = q.filter(TransactionRow.gas_price >= gas_price_min)
        if gas_price_max is not None:
            q = q.filter(TransactionRow.gas_price <= gas_price_max)
        if contract_type:
            q = q.filter(TransactionRow.contract_type == contract_type.strip())
        if block_number_min is not None:
            q = q.filter(TransactionRow.block_number >= block_number_min)
        if block_number_max is not None:
            q = q.filter(TransactionRow.block_number <= block_number_max)
        if mempool_time_min is not None:
            q = q.filter(TransactionRow.mempool_time_ms >= mempool_time_min)
        if mempool_time_max is not None:
            q = q.filter(TransactionRow.mempool_time_ms <= mempool_time_max)
        rows = q.order_by(TransactionRow.id).limit(limit).all()
        return [r.to_dict() for r in rows]


def count_transactions() -> int:
    with _session_scope() as session:
        return session.query(TransactionRow).count()


def reset_engine_for_test() -> None:
    """Dispose and clear the cached engine and session factory."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
