"""
Horizon sidecar: sidecar.errors
-------------------------------

A small, consistent error system for the bridging core.

Design goals
------------
- One root `SidecarError` with machine-friendly `code` and optional `data`.
- Four contract failures from the bridge taxonomy:
    InputError                 malformed client-supplied encoding
    DecodeError                malformed native-chain data
    SubmissionError            native chain rejected/failed the submit call
    ProtocolInconsistencyError event stream broke one-terminal-event-per-extrinsic
- A few ambient failures (config, db, chain availability).
- Safe JSON representation (`to_dict`) suitable for logs and RPC bridges.
- `retryable` is a *hint* for the outer layer; nothing in the core retries.

This module uses only stdlib to avoid boot-time dependency cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

# ---------------------------------------------------------------------------
# Error codes & root class
# ---------------------------------------------------------------------------


class SidecarErrorCode(str, Enum):
    CONFIG = "SIDECAR/CONFIG"

    # Contract taxonomy
    INPUT = "SIDECAR/INPUT"
    DECODE = "SIDECAR/DECODE"
    SUBMISSION = "SIDECAR/SUBMISSION"
    PROTOCOL_INCONSISTENCY = "SIDECAR/PROTOCOL_INCONSISTENCY"

    # Storage / collaborators
    DB = "SIDECAR/DB"
    CHAIN_UNAVAILABLE = "SIDECAR/CHAIN_UNAVAILABLE"


@dataclass(eq=False)
class SidecarError(Exception):
    """
    Root error for sidecar components.

    Attributes
    ----------
    code: str
        Machine-stable error code (see SidecarErrorCode).
    message: str
        Human hint suitable for logs; avoid leaking secrets.
    data: dict
        Optional machine data (hashes, field names, sizes). JSON-serializable.
    retryable: bool
        Whether the operation may succeed on retry without changing inputs.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{_code_str(self.code)}: {self.message}")

    # ---------------- Public API ----------------

    def with_context(self, **ctx: Any) -> "SidecarError":
        """Return a *copy* of this error with extra context merged."""
        clone = _clone(self)
        clone.data = {**self.data, **_jsonmap(ctx)}
        return clone

    def with_cause(self, exc: BaseException) -> "SidecarError":
        """Attach/replace the causal exception (returns a copy)."""
        clone = _clone(self)
        clone.data = dict(self.data)
        clone.cause = exc
        clone.__cause__ = exc
        return clone

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs/RPC bridges."""
        out = {
            "code": _code_str(self.code),
            "message": self.message,
            "data": _coerce_json(self.data),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        parts = [f"{_code_str(self.code)}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Contract taxonomy
# ---------------------------------------------------------------------------


class InputError(SidecarError):
    """Malformed client-supplied encoding (base64, hex, hash). Never retried."""

    def __init__(self, message: str = "invalid input", **data: Any) -> None:
        super().__init__(
            code=SidecarErrorCode.INPUT, message=message, data=_jsonmap(data)
        )


class DecodeError(SidecarError):
    """
    Native-chain data (or an ABI-bound payload) that cannot be mapped to the
    expected schema. `field` names the offending field when known.
    """

    def __init__(
        self, message: str = "decode failed", *, field: Optional[str] = None, **data: Any
    ) -> None:
        d = dict(data)
        if field is not None:
            d["field"] = field
        super().__init__(code=SidecarErrorCode.DECODE, message=message, data=_jsonmap(d))

    @property
    def field(self) -> Optional[str]:
        return self.data.get("field")


class SubmissionError(SidecarError):
    """Native chain rejected or failed the submit call. Surfaced without retry."""

    def __init__(self, message: str = "submission failed", **data: Any) -> None:
        super().__init__(
            code=SidecarErrorCode.SUBMISSION,
            message=message,
            data=_jsonmap(data),
            retryable=True,
        )


class ProtocolInconsistencyError(SidecarError):
    """
    The native chain's events for one extrinsic did not contain exactly one
    terminal (success/failure) marker. Fatal to that single resolution.
    """

    def __init__(self, height: int, index: int, found: int, **data: Any) -> None:
        super().__init__(
            code=SidecarErrorCode.PROTOCOL_INCONSISTENCY,
            message=f"expected exactly one terminal event for extrinsic {index} "
            f"at height {height}, found {found}",
            data=_jsonmap({"height": height, "index": index, "found": found, **data}),
        )

    @property
    def found(self) -> int:
        return int(self.data["found"])


# ---------------------------------------------------------------------------
# Ambient failures
# ---------------------------------------------------------------------------


class ConfigError(SidecarError):
    def __init__(self, message: str = "invalid configuration", **data: Any) -> None:
        super().__init__(
            code=SidecarErrorCode.CONFIG, message=message, data=_jsonmap(data)
        )


class DatabaseError(SidecarError):
    def __init__(
        self, message: str = "database error", retryable: bool = True, **data: Any
    ) -> None:
        super().__init__(
            code=SidecarErrorCode.DB,
            message=message,
            data=_jsonmap(data),
            retryable=retryable,
        )


class ChainUnavailable(SidecarError):
    def __init__(self, message: str = "native chain unavailable", **data: Any) -> None:
        super().__init__(
            code=SidecarErrorCode.CHAIN_UNAVAILABLE,
            message=message,
            data=_jsonmap(data),
            retryable=True,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clone(err: SidecarError) -> SidecarError:
    # Subclasses have bespoke __init__ signatures; bypass them.
    clone = err.__class__.__new__(err.__class__)
    clone.__dict__.update(err.__dict__)
    Exception.__init__(clone, *err.args)
    return clone


def _code_str(code: Any) -> str:
    return code.value if isinstance(code, Enum) else str(code)


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


# ---------------------------------------------------------------------------
# Minimal mapping to HTTP (opt-in)
# ---------------------------------------------------------------------------

HTTP_MAP = {
    SidecarErrorCode.CONFIG: 500,
    SidecarErrorCode.INPUT: 400,
    SidecarErrorCode.DECODE: 502,
    SidecarErrorCode.SUBMISSION: 502,
    SidecarErrorCode.PROTOCOL_INCONSISTENCY: 500,
    SidecarErrorCode.DB: 500,
    SidecarErrorCode.CHAIN_UNAVAILABLE: 503,
}


def http_status_for(err: SidecarError) -> int:
    """Best-effort HTTP status mapping for bridges (RPC/REST)."""
    try:
        return HTTP_MAP.get(SidecarErrorCode(_code_str(err.code)), 500)
    except ValueError:
        return 500


__all__ = [
    "SidecarErrorCode",
    "SidecarError",
    "InputError",
    "DecodeError",
    "SubmissionError",
    "ProtocolInconsistencyError",
    "ConfigError",
    "DatabaseError",
    "ChainUnavailable",
    "http_status_for",
    "HTTP_MAP",
]
