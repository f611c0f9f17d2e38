from __future__ import annotations

"""
Native event interpretation
===========================

Turns the loosely-typed event stream of a finalized block into a terminal
outcome for one extrinsic:

1) `terminal_events(events, index, profile)` keeps only the success/failure
   markers of `profile` whose phase is ``applyExtrinsic == index``.
2) `classify(event, profile)` decodes the chosen event into an `Outcome`
   (code, codespace, gas, Cosmos events).

Payload shapes accepted (as produced by a JSON decoding of runtime events):

- phase            : {"applyExtrinsic": n} | '{"applyExtrinsic": n}' | "finalization"
- weight           : {"refTime": n} | {"ref_time": n} | n
- dispatch error   : b"\\x03\\x05\\x0a…" | "0x03050a…" |
                     {"module": {"index": 5, "error": "0x0a000000"}}
- numeric fields   : int | "123" | "0x7b"
- hex-encoded text : "0x7472616e73666572" (Cosmos event type/key/value)

Anything else raises `DecodeError` naming the offending field.
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..codec import (FAILED_ZERO_INDEX_CODE, MODULE_ERROR_ABI_V1, ModuleErrorLayout,
                     decode_module_error, from_hex)
from ..errors import DecodeError
from ..types.chain import ChainEvent
from ..types.records import AbciEvent, EventAttribute

if TYPE_CHECKING:  # pragma: no cover
    from .profiles import ProtocolProfile


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def as_uint(value: Any, field: str) -> int:
    """Non-negative integer from int, decimal string, or 0x-hex string."""
    if isinstance(value, bool):
        raise DecodeError("expected an integer, got bool", field=field)
    if isinstance(value, int):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        try:
            n = int(s, 16) if s.lower().startswith("0x") else int(s, 10)
        except ValueError:
            raise DecodeError("expected an integer string", field=field, value=value) from None
    else:
        raise DecodeError("expected an integer", field=field, got=type(value).__name__)
    if n < 0:
        raise DecodeError("expected a non-negative integer", field=field, value=n)
    return n


def hex_text(value: Any, field: str) -> str:
    """Decode a hex-encoded UTF-8 string."""
    if not isinstance(value, str):
        raise DecodeError("expected a hex string", field=field, got=type(value).__name__)
    raw = from_hex(value, field=field)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise DecodeError("hex payload is not valid UTF-8", field=field) from None


def weight_of(dispatch_info: Any, field: str = "dispatch_info") -> int:
    """`weight.refTime` of a dispatch-info payload."""
    if not isinstance(dispatch_info, Mapping):
        raise DecodeError("expected a dispatch info object", field=field)
    if "weight" not in dispatch_info:
        raise DecodeError("dispatch info has no weight", field=f"{field}.weight")
    weight = dispatch_info["weight"]
    if isinstance(weight, Mapping):
        for k in ("refTime", "ref_time"):
            if k in weight:
                return as_uint(weight[k], f"{field}.weight.{k}")
        raise DecodeError("weight has no refTime", field=f"{field}.weight")
    return as_uint(weight, f"{field}.weight")


def translate_events(items: Any, field: str = "events") -> Tuple[AbciEvent, ...]:
    """Hex-encoded native events → UTF-8 Cosmos events."""
    if not isinstance(items, (list, tuple)):
        raise DecodeError("expected a list of events", field=field)
    out: List[AbciEvent] = []
    for i, ev in enumerate(items):
        where = f"{field}[{i}]"
        if not isinstance(ev, Mapping):
            raise DecodeError("expected an event object", field=where)
        attrs_raw = ev.get("attributes", [])
        if not isinstance(attrs_raw, (list, tuple)):
            raise DecodeError("expected a list of attributes", field=f"{where}.attributes")
        attrs = []
        for j, a in enumerate(attrs_raw):
            aw = f"{where}.attributes[{j}]"
            if not isinstance(a, Mapping):
                raise DecodeError("expected an attribute object", field=aw)
            attrs.append(
                EventAttribute(
                    key=hex_text(a.get("key"), f"{aw}.key"),
                    value=hex_text(a.get("value"), f"{aw}.value"),
                )
            )
        out.append(AbciEvent(type=hex_text(ev.get("type"), f"{where}.type"), attributes=tuple(attrs)))
    return tuple(out)


# ---------------------------------------------------------------------------
# Phase & module error
# ---------------------------------------------------------------------------

def phase_index(phase: Any) -> Optional[int]:
    """Extrinsic index of an ApplyExtrinsic phase, None for other phases."""
    if isinstance(phase, str):
        s = phase.strip()
        if not s.startswith("{"):
            return None
        try:
            phase = json.loads(s)
        except json.JSONDecodeError:
            raise DecodeError("phase is not valid JSON", field="phase") from None
    if not isinstance(phase, Mapping):
        return None
    for k in ("applyExtrinsic", "ApplyExtrinsic", "apply_extrinsic"):
        if k in phase:
            return as_uint(phase[k], "phase.applyExtrinsic")
    return None


def module_error_bytes(err: Any, field: str = "dispatch_error") -> bytes:
    """
    Packed module-error bytes from a dispatch error.

    The structured form ``{"module": {"index": i, "error": "0x0a000000"}}`` is
    packed as ``[3, i, *error]``: 3 is the Module variant of DispatchError.
    """
    if isinstance(err, (bytes, bytearray, memoryview)):
        return bytes(err)
    if isinstance(err, str):
        return from_hex(err, field=field)
    if isinstance(err, Mapping):
        inner = err.get("module", err.get("Module"))
        if isinstance(inner, Mapping):
            index = as_uint(inner.get("index"), f"{field}.module.index")
            if index > 0xFF:
                raise DecodeError("module index exceeds one byte", field=f"{field}.module.index")
            code = inner.get("error")
            if isinstance(code, int) and not isinstance(code, bool):
                if not 0 <= code <= 0xFF:
                    raise DecodeError("module error code exceeds one byte", field=f"{field}.module.error")
                code_bytes = bytes([code])
            elif isinstance(code, str):
                code_bytes = from_hex(code, field=f"{field}.module.error")
            elif isinstance(code, (list, tuple)):
                try:
                    code_bytes = bytes(code)
                except (TypeError, ValueError):
                    raise DecodeError("module error is not a byte list", field=f"{field}.module.error") from None
            else:
                raise DecodeError("module error missing", field=f"{field}.module.error")
            return bytes([3, index]) + code_bytes
    raise DecodeError("dispatch error is not a module error", field=field, value=_short(err))


def _short(v: Any) -> str:
    s = repr(v)
    return s if len(s) <= 80 else s[:77] + "..."


# ---------------------------------------------------------------------------
# Terminal event selection & classification
# ---------------------------------------------------------------------------

def _event_data(ev: ChainEvent) -> Sequence[Any]:
    data = ev.data
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            raise DecodeError("event data is not valid JSON", field=f"{ev.name}.data") from None
    if isinstance(data, Mapping):
        return list(data.values())
    if not isinstance(data, (list, tuple)):
        raise DecodeError("expected an event data list", field=f"{ev.name}.data")
    return data


def terminal_events(
    events: Iterable[ChainEvent], index: int, profile: "ProtocolProfile"
) -> List[ChainEvent]:
    markers = (profile.success_marker, profile.failure_marker)
    return [
        ev for ev in events
        if ev.name in markers and phase_index(ev.phase) == index
    ]


@dataclass(frozen=True)
class Outcome:
    code: int
    codespace: str
    gas_wanted: Optional[int]
    gas_used: int
    events: Tuple[AbciEvent, ...] = ()

    @property
    def ok(self) -> bool:
        return self.code == 0


def classify(
    event: ChainEvent,
    profile: "ProtocolProfile",
    layout: ModuleErrorLayout = MODULE_ERROR_ABI_V1,
) -> Outcome:
    data = _event_data(event)
    if event.name == profile.success_marker:
        gas_wanted, gas_used, evs = profile.success_decoder(data)
        return Outcome(code=0, codespace="", gas_wanted=gas_wanted, gas_used=gas_used, events=evs)

    if event.name != profile.failure_marker:
        raise ValueError(f"{event.name} is not a terminal event for profile {profile.tag}")
    if len(data) != 2:
        raise DecodeError(
            "failure payload must be (dispatch_error, dispatch_info)",
            field=f"{event.name}.data",
            length=len(data),
        )
    err = decode_module_error(module_error_bytes(data[0]), layout)
    return Outcome(
        code=err.code or FAILED_ZERO_INDEX_CODE,
        codespace=profile.codespace_name(err.codespace),
        gas_wanted=None,
        gas_used=weight_of(data[1]),
    )


__all__ = [
    "as_uint",
    "hex_text",
    "weight_of",
    "translate_events",
    "phase_index",
    "module_error_bytes",
    "terminal_events",
    "Outcome",
    "classify",
]
