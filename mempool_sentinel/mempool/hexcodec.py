"""Hex quantity decoding for Ethereum JSON-RPC fields."""

from __future__ import annotations

import re
from typing import Any

from mempool_sentinel.core.exceptions import DecodeError

_QUANTITY_RE = re.compile(r"^0x[0-9a-fA-F]+$")


def decode_quantity(value: Any, field: str) -> int:
    """
    Decode a 0x-prefixed hex quantity to an unsigned int.

    Anything else ("0x", "12", "0xzz", None, 16) raises DecodeError so a
    malformed field never turns into a zero in the output.
    """
    if not isinstance(value, str) or not _QUANTITY_RE.match(value):
        raise DecodeError(field, value)
    return int(value[2:], 16)


def decode_optional_quantity(value: Any, field: str) -> int | None:
    if value is None:
        return None
    return decode_quantity(value, field)
