"""
Recipient classifier: eth_getCode result to ContractType.

Pure function, no I/O. Unexpected shapes become SpecialCaseContract and the
caller decides whether to log; nothing here raises.
"""

from __future__ import annotations

from typing import Any

from mempool_sentinel.mempool.models import ContractType


def classify_code(code: Any) -> ContractType:
    """
    Ordered checks:
      null                               -> ExternallyOwnedAccount
      string starting with { or [        -> SpecialCaseContract
      string, every leading 0x stripped,
        empty or "0"                     -> ExternallyOwnedAccount
      any other string                   -> ContractAccount
      JSON object                        -> SpecialCaseContract
      anything else                      -> ExternallyOwnedAccount
    """
    if code is None:
        return ContractType.EXTERNALLY_OWNED_ACCOUNT
    if isinstance(code, str):
        trimmed = code.strip()
        if trimmed.startswith(("{", "[")):
            return ContractType.SPECIAL_CASE_CONTRACT
        body = trimmed
        while body.startswith("0x"):
            body = body[2:]
        if body == "" or body == "0":
            return ContractType.EXTERNALLY_OWNED_ACCOUNT
        return ContractType.CONTRACT_ACCOUNT
    if isinstance(code, dict):
        return ContractType.SPECIAL_CASE_CONTRACT
    return ContractType.EXTERNALLY_OWNED_ACCOUNT
