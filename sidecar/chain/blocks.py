from __future__ import annotations

"""
Finalized block reader
======================

Reads decoded blocks from a Substrate API Sidecar style REST service
(``GET /blocks/head``, ``GET /blocks/{number|hash}``), which already applies
the runtime metadata: extrinsics come back as ``{"method": {"pallet",
"method"}, "args", "events"}`` and each event as ``{"method": {...}, "data"}``.

`BlockApiClient` provides both halves the bridge needs from it:

    blocks = BlockApiClient("http://127.0.0.1:8080")
    head = blocks.finalized_head()            # BlockHeader
    block = blocks.block_at(head.number)      # FinalizedBlock
    blocks.events_at(head.hash)               # EventsSource for HttpChainClient

`events_at` flattens the per-extrinsic event lists back into one block-wide
list whose phase is ``{"applyExtrinsic": i}`` (``"initialization"`` /
``"finalization"`` for the hooks), the shape `sidecar.chain.events` reads.

The last block fetched is cached by hash, so following a block and then
resolving its extrinsics costs one request.
"""

import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import httpx

from ..errors import ChainUnavailable, DecodeError
from ..types.chain import BlockHeader, Extrinsic, FinalizedBlock
from ..version import __version__
from .events import as_uint


def _method(obj: Any, field: str) -> Tuple[str, str]:
    m = obj.get("method") if isinstance(obj, Mapping) else None
    if not isinstance(m, Mapping) or "pallet" not in m or "method" not in m:
        raise DecodeError("expected method {pallet, method}", field=field)
    return str(m["pallet"]), str(m["method"])


def _event_records(events: Any, phase: Any, field: str) -> List[Dict[str, Any]]:
    if events is None:
        return []
    if not isinstance(events, list):
        raise DecodeError("expected a list of events", field=field)
    out = []
    for i, ev in enumerate(events):
        section, method = _method(ev, f"{field}[{i}].method")
        out.append({"event": {"section": section, "method": method, "data": ev.get("data") or []}, "phase": phase})
    return out


def _header(body: Mapping[str, Any]) -> BlockHeader:
    if "number" not in body or not isinstance(body.get("hash"), str):
        raise DecodeError("block has no number/hash", field="block")
    return BlockHeader(number=as_uint(body["number"], "block.number"), hash=body["hash"])


class BlockApiClient:
    """Sync httpx client for finalized blocks and their decoded events."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json", "User-Agent": f"horizon-sidecar/{__version__}"},
        )
        self._lock = threading.Lock()
        self._last: Optional[Tuple[str, Dict[str, Any]]] = None

    def __enter__(self) -> "BlockApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # --- queries ---

    def finalized_head(self) -> BlockHeader:
        return _header(self._get("/blocks/head", params={"finalized": "true"}))

    def block_at(self, at: Union[int, str]) -> FinalizedBlock:
        body = self._block(str(at))
        exts = []
        for i, x in enumerate(body.get("extrinsics") or []):
            section, method = _method(x, f"extrinsics[{i}].method")
            exts.append(Extrinsic(index=i, section=section, method=method, args=x.get("args")))
        return FinalizedBlock(header=_header(body), extrinsics=tuple(exts))

    def events_at(self, block_hash: str) -> List[Dict[str, Any]]:
        body = self._block(block_hash)
        records = _event_records(
            (body.get("onInitialize") or {}).get("events"), "initialization", "onInitialize.events"
        )
        for i, x in enumerate(body.get("extrinsics") or []):
            records.extend(_event_records(x.get("events"), {"applyExtrinsic": i}, f"extrinsics[{i}].events"))
        records.extend(
            _event_records((body.get("onFinalize") or {}).get("events"), "finalization", "onFinalize.events")
        )
        return records

    # --- internals ---

    def _block(self, at: str) -> Dict[str, Any]:
        with self._lock:
            if self._last is not None and at in (self._last[0], str(self._last[1].get("number"))):
                return self._last[1]
        body = self._get(f"/blocks/{at}")
        _header(body)
        with self._lock:
            self._last = (body["hash"], body)
        return body

    def _get(self, path: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        try:
            r = self._client.get(path, params=params)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise ChainUnavailable(f"block API request failed: {e}", path=path).with_cause(e) from e
        try:
            body = r.json()
        except ValueError as e:
            raise DecodeError("block API returned non-JSON", field=path).with_cause(e) from e
        if not isinstance(body, dict):
            raise DecodeError("block API response must be an object", field=path)
        return body


__all__ = ["BlockApiClient"]
