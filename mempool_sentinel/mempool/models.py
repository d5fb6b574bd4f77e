"""
Data models for the mempool engine.

RpcTransaction is the typed view of an eth_getTransactionByHash result:
presence checks happen in from_rpc_result(), hex decoding in to_record().
TransactionRecord is the immutable output written once per hash.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from mempool_sentinel.core.exceptions import ProtocolError
from mempool_sentinel.mempool.hexcodec import decode_optional_quantity, decode_quantity


class ContractType(str, Enum):
    """Recipient account type derived from eth_getCode."""

    EXTERNALLY_OWNED_ACCOUNT = "ExternallyOwnedAccount"
    CONTRACT_ACCOUNT = "ContractAccount"
    SPECIAL_CASE_CONTRACT = "SpecialCaseContract"


@dataclass(frozen=True)
class PendingEntry:
    tx_hash: str
    first_seen_at_ms: int
    """Monotonic milliseconds when the hash was first pushed."""

    def age_ms(self, now_ms: int) -> int:
        return max(0, now_ms - self.first_seen_at_ms)


@dataclass(frozen=True)
class TransactionRecord:
    """Resolved transaction as written to every sink."""

    tx_hash: str
    block_hash: str | None
    block_number: int | None
    from_address: str
    to_address: str | None
    value: int
    gas: int
    gas_price: int
    input: str
    nonce: int
    mempool_time_ms: int
    contract_type: ContractType

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["contract_type"] = self.contract_type.value
        return data


def _optional_str(result: dict[str, Any], key: str) -> str | None:
    value = result.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ProtocolError(f"transaction field {key!r} is not a string: {value!r}")
    return value


@dataclass(frozen=True)
class RpcTransaction:
    """
    eth_getTransactionByHash result with every field still hex-encoded.

    block_hash is kept as Any: a non-string block hash (null for pending
    transactions, or anything unexpected) simply means "not mined yet".
    """

    hash: str
    block_hash: Any
    block_number: str | None
    from_address: str | None
    to_address: str | None
    value: str | None
    gas: str | None
    gas_price: str | None
    input: str | None
    nonce: str | None

    @property
    def is_mined(self) -> bool:
        return isinstance(self.block_hash, str)

    @classmethod
    def from_rpc_result(cls, tx_hash: str, result: Any) -> "RpcTransaction | None":
        """
        Build from a call result. Returns None when the node does not know the
        transaction (result null). Raises ProtocolError for non-object results.
        """
        if result is None:
            return None
        if not isinstance(result, dict):
            raise ProtocolError(f"eth_getTransactionByHash result is not an object: {type(result).__name__}")
        return cls(
            hash=tx_hash,
            block_hash=result.get("blockHash"),
            block_number=_optional_str(result, "blockNumber"),
            from_address=_optional_str(result, "from"),
            to_address=_optional_str(result, "to"),
            value=_optional_str(result, "value"),
            gas=_optional_str(result, "gas"),
            gas_price=_optional_str(result, "gasPrice"),
            input=_optional_str(result, "input"),
            nonce=_optional_str(result, "nonce"),
        )

    def to_record(
        self,
        *,
        mempool_time_ms: int,
        contract_type: ContractType,
    ) -> TransactionRecord:
        """
        Decode a mined transaction into a record.

        Raises:
            ProtocolError: the transaction is not mined or `from` is missing.
            DecodeError: any quantity is not valid 0x-hex.
        """
        if not self.is_mined:
            raise ProtocolError(f"transaction {self.hash} is not mined")
        if self.from_address is None:
            raise ProtocolError(f"transaction {self.hash} has no sender")
        return TransactionRecord(
            tx_hash=self.hash,
            block_hash=self.block_hash,
            block_number=decode_optional_quantity(self.block_number, "blockNumber"),
            from_address=self.from_address,
            to_address=self.to_address,
            value=decode_quantity(self.value, "value"),
            gas=decode_quantity(self.gas, "gas"),
            gas_price=decode_quantity(self.gas_price, "gasPrice"),
            input=self.input or "0x",
            nonce=decode_quantity(self.nonce, "nonce"),
            mempool_time_ms=mempool_time_ms,
            contract_type=contract_type,
        )
