"""
Test utilities for the Horizon sidecar.

Usage in tests:
    from sidecar.tests import FakeChain, RecordingSink, new_sidecar, executed

    def test_broadcast():
        sc, chain, sink = new_sidecar()
        ack = sc.broadcast.broadcast_tx("ZHVtbXk=")
        assert chain.submitted == ["0x64756d6d79"]

`FakeChain` implements `sidecar.chain.client.ChainClient` in memory: it
records submissions and serves block events registered with `add_events`.
"""
from __future__ import annotations

import hashlib
import os
import typing as t

from cosmpy.protos.cosmos.tx.v1beta1.tx_pb2 import AuthInfo, Fee, TxRaw
from hypothesis import settings

from sidecar.app import Sidecar
from sidecar.codec import from_hex
from sidecar.db import ResultStore, open_kv
from sidecar.encoding.protobuf import FeeMetadata, decode_tx_fee_metadata
from sidecar.types.chain import BlockHeader, ChainEvent, FinalizedBlock

# Hypothesis defaults: no deadline (SQLite and threadpool timings vary on CI)
settings.register_profile("local", settings(max_examples=60, deadline=None))
settings.register_profile("ci", settings(max_examples=200, deadline=None))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))


class RecordingSink:
    """ObservabilitySink that keeps every emitted event."""

    def __init__(self) -> None:
        self.events: t.List[t.Tuple[str, t.Dict[str, t.Any]]] = []

    def emit(self, event: str, **fields: t.Any) -> None:
        self.events.append((event, fields))

    def names(self) -> t.List[str]:
        return [e for e, _ in self.events]

    def of(self, event: str) -> t.List[t.Dict[str, t.Any]]:
        return [f for e, f in self.events if e == event]


class FakeChain:
    def __init__(
        self,
        *,
        ident: t.Optional[str] = None,
        submit_error: t.Optional[BaseException] = None,
        simulate_response: t.Optional[t.Mapping[str, t.Any]] = None,
        gas_limit: t.Optional[int] = None,
    ) -> None:
        self.ident = ident
        self.submit_error = submit_error
        self.simulate_response = simulate_response
        self.gas_limit = gas_limit
        self.submitted: t.List[str] = []
        self.simulated: t.List[str] = []
        self.fee_lookups = 0
        self._events: t.Dict[str, t.List[ChainEvent]] = {}

    def add_events(self, block_hash: str, *events: ChainEvent) -> None:
        self._events.setdefault(block_hash, []).extend(events)

    # --- ChainClient ---

    def submit(self, wire_hex: str) -> str:
        self.submitted.append(wire_hex)
        if self.submit_error is not None:
            raise self.submit_error
        if self.ident is not None:
            return self.ident
        return "0x" + hashlib.sha256(from_hex(wire_hex)).hexdigest()

    def simulate(self, wire_hex: str) -> t.Mapping[str, t.Any]:
        self.simulated.append(wire_hex)
        return self.simulate_response or {}

    def events_at(self, block_hash: str) -> t.List[ChainEvent]:
        return list(self._events.get(block_hash, []))

    def decode_tx_fee_metadata(self, raw_tx: bytes) -> FeeMetadata:
        self.fee_lookups += 1
        if self.gas_limit is not None:
            return FeeMetadata(gas_limit=self.gas_limit)
        return decode_tx_fee_metadata(raw_tx)


class FakeBlocks:
    """BlockSource over blocks registered with `add_block`; the head is the highest."""

    def __init__(self) -> None:
        self.blocks: t.Dict[int, FinalizedBlock] = {}
        self.fetched: t.List[int] = []
        self.head_error: t.Optional[BaseException] = None
        self.head_calls = 0

    def add_block(self, number: int, *extrinsics: t.Mapping[str, t.Any]) -> FinalizedBlock:
        block = FinalizedBlock.from_dict(
            {"header": {"number": number, "hash": block_hash(number)}, "extrinsics": list(extrinsics)}
        )
        self.blocks[number] = block
        return block

    def finalized_head(self) -> BlockHeader:
        self.head_calls += 1
        if self.head_error is not None:
            raise self.head_error
        return self.blocks[max(self.blocks)].header

    def block_at(self, at: t.Union[int, str]) -> FinalizedBlock:
        self.fetched.append(int(at))
        return self.blocks[int(at)]


def block_hash(number: int) -> str:
    return "0x" + format(number, "064x")


def new_store() -> ResultStore:
    return ResultStore(open_kv("memory://"))


def new_sidecar(
    chain: t.Optional[FakeChain] = None, **kwargs: t.Any
) -> t.Tuple[Sidecar, FakeChain, RecordingSink]:
    chain = chain or FakeChain()
    sink = RecordingSink()
    sc = Sidecar(chain=chain, store=new_store(), sink=sink, **kwargs)
    return sc, chain, sink


# ---------------------------------------------------------------------------
# Event builders
# ---------------------------------------------------------------------------


def hexs(text: str) -> str:
    return "0x" + text.encode("utf-8").hex()


def apply_phase(index: int) -> t.Dict[str, int]:
    return {"applyExtrinsic": index}


def executed(index: int, gas_wanted: int, gas_used: int, events: t.Sequence[t.Any] = ()) -> ChainEvent:
    return ChainEvent("cosmos", "Executed", [gas_wanted, gas_used, list(events)], apply_phase(index))


def extrinsic_success(index: int, ref_time: int) -> ChainEvent:
    return ChainEvent(
        "system", "ExtrinsicSuccess", [{"weight": {"refTime": ref_time}, "class": "Normal"}], apply_phase(index)
    )


def extrinsic_failed(index: int, dispatch_error: t.Any, ref_time: int) -> ChainEvent:
    return ChainEvent(
        "system", "ExtrinsicFailed", [dispatch_error, {"weight": {"refTime": ref_time}}], apply_phase(index)
    )


def hex_event(type_: str, *attrs: t.Tuple[str, str]) -> t.Dict[str, t.Any]:
    """Native (hex-encoded) Cosmos event."""
    return {
        "type": hexs(type_),
        "attributes": [{"key": hexs(k), "value": hexs(v)} for k, v in attrs],
    }


# ---------------------------------------------------------------------------
# Transaction builders
# ---------------------------------------------------------------------------


def tx_raw(gas_limit: t.Optional[int], body: bytes = b"\x0a\x00") -> bytes:
    """A Cosmos TxRaw whose AuthInfo.fee declares `gas_limit` (no fee when None)."""
    auth_info = AuthInfo() if gas_limit is None else AuthInfo(fee=Fee(gas_limit=gas_limit))
    return TxRaw(
        body_bytes=body,
        auth_info_bytes=auth_info.SerializeToString(),
        signatures=[b"\x01" * 4],
    ).SerializeToString()


__all__ = [
    "FakeBlocks",
    "FakeChain",
    "block_hash",
    "RecordingSink",
    "new_sidecar",
    "new_store",
    "hexs",
    "apply_phase",
    "executed",
    "extrinsic_success",
    "extrinsic_failed",
    "hex_event",
    "tx_raw",
]
