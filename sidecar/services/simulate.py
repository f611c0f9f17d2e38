from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from ..chain.client import ChainClient
from ..chain.events import as_uint, translate_events
from ..codec import client_tx_bytes, to_hex
from ..errors import DecodeError
from ..logging import LoggingSink, ObservabilitySink
from ..types.records import GasInfo, SimulationResult


class SimulationBridge:
    """
    Forwards a candidate tx to the native dry run and translates the reply.

    The native reply is ``{"gas_info": {"gas_wanted", "gas_used"},
    "events": [{"type": hex, "attributes": [{"key": hex, "value": hex}]}]}``.
    Nothing is persisted.
    """

    def __init__(self, chain: ChainClient, *, sink: Optional[ObservabilitySink] = None) -> None:
        self._chain = chain
        self._sink = sink or LoggingSink()

    def simulate(self, tx_bytes_b64: str) -> SimulationResult:
        raw = client_tx_bytes(tx_bytes_b64)
        resp = self._chain.simulate(to_hex(raw, prefix=True))

        gas = resp.get("gas_info")
        if not isinstance(gas, Mapping):
            raise DecodeError("simulate response has no gas_info object", field="gas_info")
        if "events" not in resp:
            raise DecodeError("simulate response has no events", field="events")

        result = SimulationResult(
            gas_info=GasInfo(
                gas_wanted=as_uint(gas.get("gas_wanted"), "gas_info.gas_wanted"),
                gas_used=as_uint(gas.get("gas_used"), "gas_info.gas_used"),
            ),
            events=translate_events(resp["events"], "events"),
        )
        self._sink.emit(
            "simulate.completed",
            gas_wanted=result.gas_info.gas_wanted,
            gas_used=result.gas_info.gas_used,
            events=len(result.events),
        )
        return result


__all__ = ["SimulationBridge"]
