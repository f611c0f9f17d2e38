from __future__ import annotations

"""
Native chain client
===================

`ChainClient` is the fixed interface the services depend on: one named method
per native call.

    submit(wire_hex)                -> opaque identifier (hex string)
    simulate(wire_hex)              -> {"gas_info": {...}, "events": [...]}
    events_at(block_hash)           -> [ChainEvent]
    decode_tx_fee_metadata(raw_tx)  -> FeeMetadata(gas_limit)

`HttpChainClient` serves `submit` and `simulate` over JSON-RPC 2.0 with httpx,
choosing the wire method names (``cosm_broadcastTx`` / ``cosmos_broadcastTx``
…) from the active `ProtocolProfile`. Reading block events requires the
runtime's metadata to decode storage, so it is delegated to an injected
`EventsSource`; `decode_tx_fee_metadata` is local protobuf decoding.

No retries and no internal timeouts beyond the transport timeout: the caller
owns that policy.

Example:
    client = HttpChainClient("http://127.0.0.1:9944", profile=get_profile("cosmos"))
    ident = client.submit("0x0a02…")
"""

from itertools import count
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

import httpx

from ..encoding.protobuf import FeeMetadata, decode_tx_fee_metadata
from ..errors import ChainUnavailable, DecodeError, SubmissionError
from ..types.chain import ChainEvent
from ..version import __version__
from .profiles import ProtocolProfile

EventsSource = Callable[[str], Iterable[Any]]


@runtime_checkable
class ChainClient(Protocol):
    def submit(self, wire_hex: str) -> str: ...

    def simulate(self, wire_hex: str) -> Mapping[str, Any]: ...

    def events_at(self, block_hash: str) -> List[ChainEvent]: ...

    def decode_tx_fee_metadata(self, raw_tx: bytes) -> FeeMetadata: ...


def to_chain_event(rec: Any) -> ChainEvent:
    """
    Normalize an event record to `ChainEvent`. Accepts a ChainEvent, or the
    JSON form ``{"event": {"section", "method", "data"}, "phase": ...}``.
    """
    if isinstance(rec, ChainEvent):
        return rec
    if not isinstance(rec, Mapping) or not isinstance(rec.get("event"), Mapping):
        raise DecodeError("expected an event record with an 'event' object", field="events")
    ev = rec["event"]
    try:
        section, method = str(ev["section"]), str(ev["method"])
    except KeyError as e:
        raise DecodeError(f"event record missing {e.args[0]!r}", field="events") from None
    return ChainEvent(section=section, method=method, data=ev.get("data", ()), phase=rec.get("phase"))


class HttpChainClient:
    """JSON-RPC 2.0 client for the native node (sync, httpx)."""

    def __init__(
        self,
        url: str,
        *,
        profile: ProtocolProfile,
        timeout: float = 30.0,
        events_source: Optional[EventsSource] = None,
        transport: Optional[httpx.BaseTransport] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.url = url
        self.profile = profile
        self._events_source = events_source
        self._ids = count(1)
        merged: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"horizon-sidecar/{__version__}",
        }
        if headers:
            merged.update(dict(headers))
        self._client = httpx.Client(timeout=timeout, headers=merged, transport=transport)

    # --- context manager ---

    def __enter__(self) -> "HttpChainClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # --- ChainClient ---

    def submit(self, wire_hex: str) -> str:
        method = self.profile.rpc_method("broadcastTx")
        try:
            result = self._call(method, [wire_hex])
        except _RpcFailure as f:
            cause = f.cause or f
            raise SubmissionError(
                f"native chain rejected transaction: {f.message}", method=method, **f.data
            ).with_cause(cause) from cause
        if not isinstance(result, str) or not result:
            raise DecodeError("submission identifier must be a non-empty string", field=f"{method}.result")
        return result

    def simulate(self, wire_hex: str) -> Mapping[str, Any]:
        method = self.profile.rpc_method("simulate")
        try:
            result = self._call(method, [wire_hex])
        except _RpcFailure as f:
            cause = f.cause or f
            if f.transport:
                raise ChainUnavailable(
                    f"native simulate unreachable: {f.message}", method=method
                ).with_cause(cause) from cause
            raise SubmissionError(
                f"native chain rejected simulation: {f.message}", method=method, **f.data
            ).with_cause(cause) from cause
        if not isinstance(result, Mapping):
            raise DecodeError("simulate result must be an object", field=f"{method}.result")
        return result

    def events_at(self, block_hash: str) -> List[ChainEvent]:
        if self._events_source is None:
            raise ChainUnavailable("no events source configured", block_hash=block_hash)
        return [to_chain_event(r) for r in self._events_source(block_hash)]

    def decode_tx_fee_metadata(self, raw_tx: bytes) -> FeeMetadata:
        return decode_tx_fee_metadata(raw_tx)

    # --- internals ---

    def _call(self, method: str, params: Sequence[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            r = self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise _RpcFailure(f"transport error: {e}", transport=True, cause=e) from e
        try:
            resp = r.json()
        except ValueError as e:
            raise _RpcFailure(
                f"non-JSON response (HTTP {r.status_code})", transport=r.status_code >= 500, cause=e
            ) from e
        if not isinstance(resp, dict):
            raise DecodeError("JSON-RPC response must be an object", field=method)
        if resp.get("error") is not None:
            err = resp["error"] if isinstance(resp["error"], Mapping) else {}
            raise _RpcFailure(
                str(err.get("message", "unknown error")),
                data={"rpc_code": err.get("code"), "rpc_data": err.get("data")},
            )
        if "result" not in resp:
            raise DecodeError("JSON-RPC response has neither result nor error", field=method)
        return resp["result"]


class _RpcFailure(Exception):
    def __init__(
        self,
        message: str,
        *,
        transport: bool = False,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.transport = transport
        self.data = data or {}
        self.cause = cause


__all__ = ["ChainClient", "HttpChainClient", "EventsSource", "to_chain_event"]
