"""
SQLAlchemy models for resolved transactions.

One row per transaction hash (unique). value, gas and nonce are unbounded
quantities and are stored as decimal strings. gas_price, block_number and
mempool_time_ms stay BIGINT so range filters compare numerically; values
above MAX_BIGINT are rejected on insert.
"""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import BigInteger, Column, Integer, String, Text
from sqlalchemy.orm import declarative_base

MAX_BIGINT = 2**63 - 1

Base = declarative_base()


class TransactionRow(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tx_hash = Column(String(80), unique=True, nullable=False, index=True)
    block_hash = Column(String(80), nullable=True)
    block_number = Column(BigInteger, nullable=True, index=True)
    from_sender = Column(String(64), nullable=False)
    to_receiver = Column(String(64), nullable=True, index=True)
    tx_value = Column(String(80), nullable=False)
    gas = Column(String(80), nullable=False)
    gas_price = Column(BigInteger, nullable=False, index=True)
    input = Column(Text, nullable=False)
    nonce = Column(String(80), nullable=False)
    mempool_time_ms = Column(BigInteger, nullable=False, index=True)
    contract_type = Column(String(32), nullable=False, index=True)
    created_at = Column(Integer, nullable=False, default=lambda: int(time.time()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tx_hash": self.tx_hash,
            "block_hash": self.block_hash,
            "block_number": self.block_number,
            "from_address": self.from_sender,
            "to_address": self.to_receiver,
            "value": int(self.tx_value),
            "gas": int(self.gas),
            "gas_price": self.gas_price,
            "input": self.input,
            "nonce": int(self.nonce),
            "mempool_time_ms": self.mempool_time_ms,
            "contract_type": self.contract_type,
            "created_at": self.created_at,
        }
