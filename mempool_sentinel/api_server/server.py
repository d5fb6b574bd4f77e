"""
FastAPI server: storage API over the transaction store.

POST /transactions inserts a resolved record (409 when the hash is already
stored); the GET routes read rows back by id, hash, or filter. Config via env
(SENTINEL_DB_URL / DATABASE_URL / DB_PATH).
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from mempool_sentinel import __version__
from mempool_sentinel.database import (
    MAX_BIGINT,
    count_transactions,
    filter_transactions,
    get_transaction_by_hash,
    get_transaction_by_id,
    init_db,
    insert_transaction,
    list_transactions,
)
from mempool_sentinel.mempool.models import ContractType, TransactionRecord
from mempool_sentinel.sentinel_logging import get_logger

logger = get_logger(__name__)

MAX_LIST_LIMIT = 5000


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------

class TransactionIn(BaseModel):
    """POST /transactions body: one resolved transaction."""

    tx_hash: str = Field(..., min_length=3, max_length=80, description="Transaction hash (0x-hex)")
    block_hash: str | None = Field(None, max_length=80)
    block_number: int | None = Field(None, ge=0, le=MAX_BIGINT)
    from_address: str = Field(..., min_length=3, max_length=64)
    to_address: str | None = Field(None, max_length=64, description="Null for contract creation")
    value: int = Field(..., ge=0, description="Wei")
    gas: int = Field(..., ge=0)
    gas_price: int = Field(..., ge=0, le=MAX_BIGINT, description="Wei per gas")
    input: str = "0x"
    nonce: int = Field(..., ge=0)
    mempool_time_ms: int = Field(..., ge=0, le=MAX_BIGINT, description="First push to observed inclusion")
    contract_type: ContractType

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            tx_hash=self.tx_hash.strip(),
            block_hash=self.block_hash,
            block_number=self.block_number,
            from_address=self.from_address,
            to_address=self.to_address,
            value=self.value,
            gas=self.gas,
            gas_price=self.gas_price,
            input=self.input,
            nonce=self.nonce,
            mempool_time_ms=self.mempool_time_ms,
            contract_type=self.contract_type,
        )


class TransactionOut(BaseModel):
    """Stored transaction row."""

    id: int
    tx_hash: str
    block_hash: str | None = None
    block_number: int | None = None
    from_address: str
    to_address: str | None = None
    value: int
    gas: int
    gas_price: int
    input: str
    nonce: int
    mempool_time_ms: int
    contract_type: ContractType
    created_at: int


# -----------------------------------------------------------------------------
# Lifespan
# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables before serving."""
    init_db()
    logger.info("api_started", stored=count_transactions())
    yield
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Mempool Sentinel API",
    description="Storage API for resolved Ethereum transactions and their mempool timing.",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health")
def health() -> dict[str, str]:
    """Liveness probe: API is up."""
    return {"status": "ok"}


@app.post("/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(body: TransactionIn):
    """
    Store one transaction. Returns 201 with the stored row, or 409 with a
    duplicate_transaction error when the hash is already stored.
    """
    stored, created = insert_transaction(body.to_record())
    if not created:
        return JSONResponse(
            status_code=409,
            content={
                "error": "duplicate_transaction",
                "message": f"transaction {body.tx_hash} already stored",
                "id": stored["id"],
            },
        )
    logger.info("api_transaction_created", tx_hash=stored["tx_hash"], id=stored["id"])
    return stored


@app.get("/transactions", response_model=list[TransactionOut])
def get_transactions(limit: int = Query(500, ge=1, le=MAX_LIST_LIMIT)):
    return list_transactions(limit=limit)


@app.get("/transactions/filter", response_model=list[TransactionOut])
def get_transactions_filtered(
    gas_price_min: int | None = Query(None, ge=0),
    gas_price_max: int | None = Query(None, ge=0),
    contract_type: ContractType | None = None,
    block_number_min: int | None = Query(None, ge=0),
    block_number_max: int | None = Query(None, ge=0),
    mempool_time_min: int | None = Query(None, ge=0),
    mempool_time_max: int | None = Query(None, ge=0),
    limit: int = Query(500, ge=1, le=MAX_LIST_LIMIT),
):
    """Every given bound is inclusive; omitted bounds do not filter."""
    return filter_transactions(
        gas_price_min=gas_price_min,
        gas_price_max=gas_price_max,
        contract_type=contract_type.value if contract_type else None,
        block_number_min=block_number_min,
        block_number_max=block_number_max,
        mempool_time_min=mempool_time_min,
        mempool_time_max=mempool_time_max,
        limit=limit,
    )


@app.get("/transactions/hash/{tx_hash}", response_model=TransactionOut)
def get_transaction_for_hash(tx_hash: str):
    row = get_transaction_by_hash(tx_hash)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No transaction stored for hash {tx_hash[:18]}...")
    return row


@app.get("/transactions/{row_id}", response_model=TransactionOut)
def get_transaction(row_id: int):
    row = get_transaction_by_id(row_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No transaction with id {row_id}")
    return row
