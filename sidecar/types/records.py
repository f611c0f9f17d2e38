from __future__ import annotations

"""
sidecar/types/records.py
========================

Records produced and persisted by the bridge, with their Cosmos wire shapes.

- OriginRecord   : the client's base64 tx as received, keyed by tx hash.
- ResultRecord   : resolved outcome of one extrinsic (height, index, code, gas…).
- BroadcastAck   : immediate acknowledgment returned by a broadcast.
- SimulationResult, SearchResult : service responses.
- AbciEvent / EventAttribute : Cosmos-style events (UTF-8 strings).

`ResultRecord.to_wire()` is the compatibility contract with Cosmos clients:

    {
      "hash": "<UPPERCASE HEX>",
      "height": "<decimal string>",
      "index": <int>,
      "tx_result": {"code", "data", "log", "info", "gas_wanted", "gas_used", "events", "codespace"},
      "tx": "<base64>"
    }

Hashes are held internally in their lowercase store-key form.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


def _non_negative(name: str, v: int) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise TypeError(f"{name} must be int, got {type(v).__name__}")
    if v < 0:
        raise ValueError(f"{name} must be non-negative, got {v}")
    return v


@dataclass(frozen=True)
class EventAttribute:
    key: str
    value: str

    def to_wire(self) -> Dict[str, Any]:
        return {"key": self.key, "value": self.value}


@dataclass(frozen=True)
class AbciEvent:
    type: str
    attributes: Tuple[EventAttribute, ...] = field(default_factory=tuple)

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "attributes": [a.to_wire() for a in self.attributes]}

    @staticmethod
    def from_wire(o: Mapping[str, Any]) -> "AbciEvent":
        return AbciEvent(
            type=str(o["type"]),
            attributes=tuple(
                EventAttribute(key=str(a["key"]), value=str(a["value"]))
                for a in o.get("attributes", [])
            ),
        )


@dataclass(frozen=True)
class OriginRecord:
    """The client-submitted transaction, base64 as received. Never mutated."""

    hash: str
    tx_base64: str


@dataclass(frozen=True)
class ResultRecord:
    hash: str
    height: int
    index: int
    code: int
    codespace: str
    gas_wanted: int
    gas_used: int
    tx: str
    events: Tuple[AbciEvent, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("height", "index", "code", "gas_wanted", "gas_used"):
            _non_negative(name, getattr(self, name))

    @property
    def ok(self) -> bool:
        return self.code == 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "hash": self.hash.upper(),
            "height": str(self.height),
            "index": self.index,
            "tx_result": {
                "code": self.code,
                "data": "",
                "log": "",
                "info": "",
                "gas_wanted": str(self.gas_wanted),
                "gas_used": str(self.gas_used),
                "events": [e.to_wire() for e in self.events],
                "codespace": self.codespace,
            },
            "tx": self.tx,
        }

    @staticmethod
    def from_wire(o: Mapping[str, Any]) -> "ResultRecord":
        r = o["tx_result"]
        return ResultRecord(
            hash=str(o["hash"]).lower(),
            height=int(o["height"]),
            index=int(o["index"]),
            code=int(r["code"]),
            codespace=str(r.get("codespace", "")),
            gas_wanted=int(r.get("gas_wanted", 0)),
            gas_used=int(r.get("gas_used", 0)),
            tx=str(o.get("tx") or ""),
            events=tuple(AbciEvent.from_wire(e) for e in r.get("events", [])),
        )


@dataclass(frozen=True)
class BroadcastAck:
    """
    Acknowledgment of an accepted broadcast. Height, gas, logs and events are
    unknown until the result is resolved, so they are zero/empty here.
    """

    txhash: str

    def to_wire(self) -> Dict[str, Any]:
        return {
            "height": "0",
            "txhash": self.txhash.upper(),
            "codespace": "",
            "code": 0,
            "data": "",
            "raw_log": "",
            "logs": [],
            "info": "",
            "gas_wanted": "0",
            "gas_used": "0",
            "tx": None,
            "timestamp": "",
            "events": [],
        }


@dataclass(frozen=True)
class GasInfo:
    gas_wanted: int
    gas_used: int

    def to_wire(self) -> Dict[str, str]:
        return {"gas_wanted": str(self.gas_wanted), "gas_used": str(self.gas_used)}


@dataclass(frozen=True)
class SimulationResult:
    gas_info: GasInfo
    events: Tuple[AbciEvent, ...] = field(default_factory=tuple)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "gas_info": self.gas_info.to_wire(),
            "result": {
                "data": "",
                "log": "",
                "events": [e.to_wire() for e in self.events],
                "msg_responses": [],
            },
        }


@dataclass(frozen=True)
class SearchResult:
    results: List[ResultRecord] = field(default_factory=list)

    @property
    def total_count(self) -> int:
        return len(self.results)

    def first(self) -> Optional[ResultRecord]:
        return self.results[0] if self.results else None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "txs": [r.to_wire() for r in self.results],
            "total_count": self.total_count,
        }


__all__ = [
    "EventAttribute",
    "AbciEvent",
    "OriginRecord",
    "ResultRecord",
    "BroadcastAck",
    "GasInfo",
    "SimulationResult",
    "SearchResult",
]
