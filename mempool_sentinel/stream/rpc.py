"""
JSON-RPC 2.0 frame helpers for the Ethereum pub/sub API.

Builds request bodies and classifies inbound frames. Pure functions; the
router owns ids and correlation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mempool_sentinel.core.exceptions import ProtocolError

SUBSCRIPTION_METHOD = "eth_subscription"
NEW_PENDING_TRANSACTIONS = "newPendingTransactions"

METHOD_SUBSCRIBE = "eth_subscribe"
METHOD_UNSUBSCRIBE = "eth_unsubscribe"
METHOD_GET_TRANSACTION = "eth_getTransactionByHash"
METHOD_GET_CODE = "eth_getCode"


class FrameKind(str, Enum):
    PUSH = "push"
    RESPONSE = "response"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SubscriptionPush:
    """One eth_subscription notification: subscription id plus its result payload."""

    subscription: str
    result: Any


@dataclass(frozen=True)
class RpcResponse:
    """A call response: id plus either result or error (never both)."""

    request_id: int
    result: Any = None
    error: dict[str, Any] | None = None


def build_request(request_id: int, method: str, params: list[Any]) -> str:
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }
    )


def classify_frame(msg: Any) -> FrameKind:
    """
    Push: method == eth_subscription with params.subscription and params.result.
    Response: has id and no method. Everything else is unknown.
    """
    if not isinstance(msg, dict):
        return FrameKind.UNKNOWN
    method = msg.get("method")
    if method is not None:
        params = msg.get("params")
        if (
            method == SUBSCRIPTION_METHOD
            and isinstance(params, dict)
            and "subscription" in params
            and "result" in params
        ):
            return FrameKind.PUSH
        return FrameKind.UNKNOWN
    if msg.get("id") is not None:
        return FrameKind.RESPONSE
    return FrameKind.UNKNOWN


def parse_frame(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ProtocolError(f"frame is not valid JSON: {e}") from e


def to_push(msg: dict[str, Any]) -> SubscriptionPush:
    params = msg["params"]
    return SubscriptionPush(subscription=str(params["subscription"]), result=params["result"])


def to_response(msg: dict[str, Any]) -> RpcResponse:
    raw_id = msg["id"]
    try:
        request_id = int(raw_id)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"response id is not an integer: {raw_id!r}") from e
    error = msg.get("error")
    if error is not None and not isinstance(error, dict):
        error = {"code": None, "message": str(error)}
    return RpcResponse(request_id=request_id, result=msg.get("result"), error=error)
