"""
JSON-RPC errors for the sidecar gateway.

This module provides:
- Canonical JSON-RPC 2.0 error codes (parse/invalid request/method not found/invalid params/internal).
- Bridge-specific server error codes in the reserved -32000..-32099 range.
- `RpcError` carrying (code, message, data).
- `to_error()` turning any exception, including `sidecar.errors.SidecarError`,
  into an `RpcError`, plus an HTTP status hint for the REST routes.

Usage (from gateway/jsonrpc.py):
    from .errors import to_error, error_response

    try:
        result = handle(method, params)
        return {"jsonrpc": "2.0", "id": req_id, "result": result}
    except Exception as e:
        return error_response(req_id, to_error(e))

Notes:
- `data` is small and safe to expose; tracebacks never leave the process.
- Custom codes are stable across releases; append new ones at the end.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Union

from sidecar.errors import SidecarError, SidecarErrorCode, http_status_for


# ───────────────────────────────────────────────────────────────────────────────
# JSON-RPC 2.0 codes
# ───────────────────────────────────────────────────────────────────────────────

class JsonRpcCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# ───────────────────────────────────────────────────────────────────────────────
# Sidecar server codes (-32000..-32099)
# ───────────────────────────────────────────────────────────────────────────────

class SidecarRpcCode(IntEnum):
    SERVER_ERROR = -32000
    TEMPORARILY_UNAVAILABLE = -32002
    NOT_FOUND = -32004

    INVALID_TX = -32010
    SUBMISSION_FAILED = -32011
    DECODE_FAILED = -32012
    PROTOCOL_INCONSISTENCY = -32013
    STORAGE_ERROR = -32014


_SIDECAR_TO_RPC: Dict[str, int] = {
    SidecarErrorCode.INPUT.value: SidecarRpcCode.INVALID_TX,
    SidecarErrorCode.DECODE.value: SidecarRpcCode.DECODE_FAILED,
    SidecarErrorCode.SUBMISSION.value: SidecarRpcCode.SUBMISSION_FAILED,
    SidecarErrorCode.PROTOCOL_INCONSISTENCY.value: SidecarRpcCode.PROTOCOL_INCONSISTENCY,
    SidecarErrorCode.DB.value: SidecarRpcCode.STORAGE_ERROR,
    SidecarErrorCode.CHAIN_UNAVAILABLE.value: SidecarRpcCode.TEMPORARILY_UNAVAILABLE,
}


# ───────────────────────────────────────────────────────────────────────────────
# Error dataclass & concrete types
# ───────────────────────────────────────────────────────────────────────────────

@dataclass(eq=False)
class RpcError(Exception):
    code: int
    message: str
    data: Optional[Mapping[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": int(self.code), "message": str(self.message)}
        if self.data:
            err["data"] = dict(self.data)
        return err

    def __str__(self) -> str:  # pragma: no cover
        return f"[{self.code}] {self.message} ({self.data})"


class ParseError(RpcError):
    def __init__(self, detail: str = "Parse error", **data: Any) -> None:
        super().__init__(JsonRpcCode.PARSE_ERROR, detail, data or None)

class InvalidRequest(RpcError):
    def __init__(self, detail: str = "Invalid request", **data: Any) -> None:
        super().__init__(JsonRpcCode.INVALID_REQUEST, detail, data or None)

class MethodNotFound(RpcError):
    def __init__(self, method: str) -> None:
        super().__init__(JsonRpcCode.METHOD_NOT_FOUND, "Method not found", {"method": method})

class InvalidParams(RpcError):
    def __init__(self, detail: str = "Invalid params", **data: Any) -> None:
        super().__init__(JsonRpcCode.INVALID_PARAMS, detail, data or None)

class InternalError(RpcError):
    def __init__(self, detail: str = "Internal error", **data: Any) -> None:
        super().__init__(JsonRpcCode.INTERNAL_ERROR, detail, data or None)

class NotFound(RpcError):
    def __init__(self, what: str = "resource", **data: Any) -> None:
        super().__init__(SidecarRpcCode.NOT_FOUND, f"{what} not found", data or None)


# ───────────────────────────────────────────────────────────────────────────────
# Helpers
# ───────────────────────────────────────────────────────────────────────────────

def error_response(req_id: Optional[Union[str, int]], err: RpcError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": err.to_dict()}


def from_sidecar_error(err: SidecarError) -> RpcError:
    code = _SIDECAR_TO_RPC.get(str(getattr(err.code, "value", err.code)), SidecarRpcCode.SERVER_ERROR)
    d = err.to_dict()
    data = {"sidecarCode": d["code"], "retryable": d["retryable"], **(d["data"] or {})}
    return RpcError(int(code), err.message, data)


def to_error(exc: BaseException) -> RpcError:
    """
    Convert any exception into an RpcError.
    - RpcError passes through.
    - SidecarError maps onto the bridge codes above.
    - ValueError/TypeError become InvalidParams.
    - Anything else is an InternalError with a terse reason.
    """
    if isinstance(exc, RpcError):
        return exc
    if isinstance(exc, SidecarError):
        return from_sidecar_error(exc)
    if isinstance(exc, (ValueError, TypeError)):
        return InvalidParams(str(exc))
    return InternalError(reason=exc.__class__.__name__)


def http_status_hint(exc: BaseException) -> int:
    """HTTP status for the REST routes."""
    if isinstance(exc, SidecarError):
        return http_status_for(exc)
    if isinstance(exc, RpcError):
        if exc.code in (JsonRpcCode.PARSE_ERROR, JsonRpcCode.INVALID_REQUEST, JsonRpcCode.INVALID_PARAMS):
            return 400
        if exc.code in (JsonRpcCode.METHOD_NOT_FOUND, SidecarRpcCode.NOT_FOUND):
            return 404
        if exc.code == SidecarRpcCode.TEMPORARILY_UNAVAILABLE:
            return 503
    return 500


__all__ = [
    "JsonRpcCode",
    "SidecarRpcCode",
    "RpcError",
    "ParseError",
    "InvalidRequest",
    "MethodNotFound",
    "InvalidParams",
    "InternalError",
    "NotFound",
    "error_response",
    "from_sidecar_error",
    "to_error",
    "http_status_hint",
]
