"""
Protocol profiles: the native chain's evolving RPC/event vocabulary.

A profile names everything that changed between native releases (RPC
namespace, terminal event markers, the success payload layout, the call that
carries Cosmos transactions). The resolver and the chain client take a
profile instead of hardcoding those strings, so a new native release is a new
registered profile rather than a code change.

    >>> get_profile("cosmos").success_marker
    'cosmos::Executed'
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from ..errors import ConfigError, DecodeError
from ..types.records import AbciEvent
from .events import as_uint, translate_events, weight_of

SuccessPayload = Tuple[Optional[int], int, Tuple[AbciEvent, ...]]
SuccessDecoder = Callable[[Sequence[Any]], SuccessPayload]


def decode_dispatch_info_success(data: Sequence[Any]) -> SuccessPayload:
    """Legacy `system::ExtrinsicSuccess` payload: ``[dispatchInfo]``."""
    if len(data) < 1:
        raise DecodeError("success payload is empty", field="ExtrinsicSuccess.data")
    return None, weight_of(data[0]), ()


def decode_executed_success(data: Sequence[Any]) -> SuccessPayload:
    """`cosmos::Executed` payload: ``[gasWanted, gasUsed, events]``."""
    if len(data) != 3:
        raise DecodeError(
            "Executed payload must be (gas_wanted, gas_used, events)",
            field="Executed.data",
            length=len(data),
        )
    gas_wanted = as_uint(data[0], "Executed.gas_wanted")
    gas_used = as_uint(data[1], "Executed.gas_used")
    return gas_wanted, gas_used, translate_events(data[2], "Executed.events")


@dataclass(frozen=True)
class ProtocolProfile:
    tag: str
    rpc_namespace: str
    success_marker: str
    failure_marker: str
    success_decoder: SuccessDecoder
    transact_call: str = "cosmos::transact"
    codespaces: Mapping[int, str] = field(default_factory=dict)

    def rpc_method(self, name: str) -> str:
        return f"{self.rpc_namespace}_{name}"

    def codespace_name(self, module_index: int) -> str:
        return self.codespaces.get(module_index, str(module_index))


COSM = ProtocolProfile(
    tag="cosm",
    rpc_namespace="cosm",
    success_marker="system::ExtrinsicSuccess",
    failure_marker="system::ExtrinsicFailed",
    success_decoder=decode_dispatch_info_success,
)

COSMOS = ProtocolProfile(
    tag="cosmos",
    rpc_namespace="cosmos",
    success_marker="cosmos::Executed",
    failure_marker="system::ExtrinsicFailed",
    success_decoder=decode_executed_success,
)

_REGISTRY: Dict[str, ProtocolProfile] = {p.tag: p for p in (COSM, COSMOS)}
_LOCK = threading.Lock()


def get_profile(tag: str) -> ProtocolProfile:
    key = (tag or "").strip().lower()
    with _LOCK:
        profile = _REGISTRY.get(key)
        known = sorted(_REGISTRY)
    if profile is None:
        raise ConfigError("unknown protocol profile", tag=tag, known=known)
    return profile


def register_profile(profile: ProtocolProfile, *, replace: bool = False) -> None:
    key = profile.tag.strip().lower()
    with _LOCK:
        if key in _REGISTRY and not replace:
            raise ConfigError("protocol profile already registered", tag=profile.tag)
        _REGISTRY[key] = profile


def profile_tags() -> Tuple[str, ...]:
    with _LOCK:
        return tuple(sorted(_REGISTRY))


__all__ = [
    "ProtocolProfile",
    "SuccessDecoder",
    "COSM",
    "COSMOS",
    "decode_dispatch_info_success",
    "decode_executed_success",
    "get_profile",
    "register_profile",
    "profile_tags",
]
