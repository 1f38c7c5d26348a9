"""JSON-RPC request and response shapes for ABCI queries."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_U32_LIMIT = 2**32


@dataclass(frozen=True)
class RpcParams:
    """Parameters of an ABCI query."""

    path: str
    data: str


@dataclass(frozen=True)
class RpcRequest:
    """A JSON-RPC request body."""

    jsonrpc: str
    id: int
    method: str
    params: RpcParams

    def to_dict(self) -> dict[str, Any]:
        """Return the request as a JSON-serialisable mapping."""
        return {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
            "params": {"path": self.params.path, "data": self.params.data},
        }


@dataclass(frozen=True)
class ResponseBase:
    """The ResponseBase part of an ABCI query result."""

    error: Any
    data: str
    log: str


@dataclass(frozen=True)
class RpcResponse:
    """A decoded JSON-RPC response to an ABCI query."""

    jsonrpc: str
    id: int
    response_base: ResponseBase


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"invalid JSON-RPC response: {where} is not an object")
    return value


def _string(container: Mapping[str, Any], key: str, where: str) -> str:
    try:
        value = container[key]
    except KeyError:
        raise ValueError(f"invalid JSON-RPC response: missing field {where}.{key}") from None
    if not isinstance(value, str):
        raise ValueError(f"invalid JSON-RPC response: {where}.{key} is not a string")
    return value


def _u32(container: Mapping[str, Any], key: str) -> int:
    try:
        value = container[key]
    except KeyError:
        raise ValueError(f"invalid JSON-RPC response: missing field {key}") from None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < _U32_LIMIT:
        raise ValueError(f"invalid JSON-RPC response: {key} is not an unsigned 32-bit integer")
    return value


def parse_response(payload: Mapping[str, Any] | str | bytes | bytearray) -> RpcResponse:
    """Decode a JSON-RPC response given as text, bytes or an already parsed mapping.

    Raises ValueError when the payload is not valid JSON or lacks a required field.
    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ValueError(f"invalid JSON-RPC response: {exc}") from exc
    root = _mapping(payload, "response")
    jsonrpc = _string(root, "jsonrpc", "response")
    request_id = _u32(root, "id")
    if "result" not in root:
        raise ValueError("invalid JSON-RPC response: missing field result")
    result = _mapping(root["result"], "result")
    if "response" not in result:
        raise ValueError("invalid JSON-RPC response: missing field result.response")
    response = _mapping(result["response"], "result.response")
    if "ResponseBase" not in response:
        raise ValueError("invalid JSON-RPC response: missing field ResponseBase")
    base = _mapping(response["ResponseBase"], "ResponseBase")
    return RpcResponse(
        jsonrpc=jsonrpc,
        id=request_id,
        response_base=ResponseBase(
            error=base.get("Error"),
            data=_string(base, "Data", "ResponseBase"),
            log=_string(base, "Log", "ResponseBase"),
        ),
    )