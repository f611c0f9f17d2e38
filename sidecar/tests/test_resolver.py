from __future__ import annotations

import pytest

from sidecar.chain.profiles import COSM
from sidecar.codec import FAILED_ZERO_INDEX_CODE, to_base64, to_hash_hex
from sidecar.errors import DecodeError, ProtocolInconsistencyError
from sidecar.tests import (FakeChain, executed, extrinsic_failed,
                           extrinsic_success, hex_event, new_sidecar, tx_raw)
from sidecar.types.chain import BlockHeader, ChainEvent
from sidecar.types.records import AbciEvent, EventAttribute

BLOCK = "0x" + "bb" * 32
HEADER = BlockHeader(number=42, hash=BLOCK)
RAW = tx_raw(300_000)
TX_HASH = to_hash_hex(RAW)


def _broadcast_origin(sc):
    sc.broadcast.broadcast_tx(to_base64(RAW))


def test_success_carries_gas_and_translated_events():
    sc, chain, sink = new_sidecar()
    _broadcast_origin(sc)
    chain.add_events(
        BLOCK,
        executed(0, 999, 1),  # another extrinsic
        executed(2, 250_000, 180_000, [hex_event("transfer", ("amount", "10uatom"), ("sender", "cosmos1xyz"))]),
    )

    rec = sc.resolver.resolve_result(HEADER, 2, RAW)

    assert rec.hash == TX_HASH
    assert (rec.height, rec.index, rec.code, rec.codespace) == (42, 2, 0, "")
    assert (rec.gas_wanted, rec.gas_used) == (250_000, 180_000)
    assert rec.events == (
        AbciEvent("transfer", (EventAttribute("amount", "10uatom"), EventAttribute("sender", "cosmos1xyz"))),
    )
    assert rec.tx == to_base64(RAW)
    assert sc.store.get_result(TX_HASH) == rec
    assert chain.fee_lookups == 0
    assert "result.resolved" in sink.names()


def test_failure_decodes_module_error_and_falls_back_to_fee_gas_limit():
    sc, chain, _ = new_sidecar()
    _broadcast_origin(sc)
    chain.add_events(BLOCK, extrinsic_failed(0, "0x03050a000000", 77_000))

    rec = sc.resolver.resolve_result(HEADER, 0, "0x" + RAW.hex())

    assert rec.code == 10
    assert rec.codespace == "5"
    assert rec.gas_used == 77_000
    assert rec.gas_wanted == 300_000
    assert rec.events == ()
    assert rec.to_wire()["tx_result"]["code"] == 10


def test_failure_with_zero_error_index_is_never_success():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, extrinsic_failed(0, "0x030500000000", 7))

    rec = sc.resolver.resolve_result(HEADER, 0, RAW)

    assert rec.code == FAILED_ZERO_INDEX_CODE
    assert rec.codespace == "5"
    assert not rec.ok
    assert rec.to_wire()["tx_result"]["code"] != 0


def test_failure_with_structured_module_error():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, extrinsic_failed(1, {"module": {"index": 5, "error": "0x0a000000"}}, 10))
    rec = sc.resolver.resolve_result(HEADER, 1, RAW)
    assert (rec.codespace, rec.code) == ("5", 10)


def test_non_module_dispatch_error_is_decode_error():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, extrinsic_failed(0, {"badOrigin": None}, 10))
    with pytest.raises(DecodeError) as ei:
        sc.resolver.resolve_result(HEADER, 0, RAW)
    assert ei.value.field == "dispatch_error"


def test_missing_terminal_event_is_protocol_inconsistency():
    sc, chain, sink = new_sidecar()
    chain.add_events(BLOCK, executed(1, 1, 1))
    with pytest.raises(ProtocolInconsistencyError) as ei:
        sc.resolver.resolve_result(HEADER, 0, RAW)
    assert ei.value.found == 0
    assert not sc.store.has_result(TX_HASH)
    assert sink.of("result.protocol_inconsistency")[0]["found"] == 0


def test_two_terminal_events_is_protocol_inconsistency():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, executed(0, 1, 1), extrinsic_failed(0, "0x030100", 1))
    with pytest.raises(ProtocolInconsistencyError) as ei:
        sc.resolver.resolve_result(HEADER, 0, RAW)
    assert ei.value.found == 2


def test_events_outside_apply_phase_are_ignored():
    sc, chain, _ = new_sidecar()
    chain.add_events(
        BLOCK,
        ChainEvent("cosmos", "Executed", [1, 1, []], "finalization"),
        ChainEvent("balances", "Withdraw", [], {"applyExtrinsic": 0}),
        executed(0, 5, 4),
    )
    assert sc.resolver.resolve_result(HEADER, 0, RAW).gas_used == 4


def test_missing_origin_falls_back_to_raw_bytes():
    sc, chain, sink = new_sidecar()
    chain.add_events(BLOCK, executed(0, 5, 4))
    rec = sc.resolver.resolve_result(HEADER, 0, RAW)
    assert rec.tx == to_base64(RAW)
    assert sink.of("result.origin_missing") == [{"tx_hash": TX_HASH}]


def test_origin_base64_is_returned_verbatim():
    sc, chain, _ = new_sidecar()
    sc.store.put_origin(TX_HASH, "client-original")
    chain.add_events(BLOCK, executed(0, 5, 4))
    assert sc.resolver.resolve_result(HEADER, 0, RAW).tx == "client-original"


def test_resolution_is_idempotent():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, executed(0, 5, 4))
    first = sc.resolver.resolve_result(HEADER, 0, RAW)
    second = sc.resolver.resolve_result(HEADER, 0, RAW)
    assert first == second == sc.store.get_result(TX_HASH)


def test_legacy_profile_uses_dispatch_info_weight():
    sc, chain, _ = new_sidecar(FakeChain(gas_limit=123), profile=COSM)
    chain.add_events(BLOCK, extrinsic_success(0, 55_000))
    rec = sc.resolver.resolve_result(HEADER, 0, RAW)
    assert (rec.code, rec.gas_used, rec.gas_wanted) == (0, 55_000, 123)


def test_legacy_profile_ignores_executed_marker():
    sc, chain, _ = new_sidecar(profile=COSM)
    chain.add_events(BLOCK, executed(0, 5, 4))
    with pytest.raises(ProtocolInconsistencyError):
        sc.resolver.resolve_result(HEADER, 0, RAW)


def test_malformed_executed_payload():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, ChainEvent("cosmos", "Executed", [1, 2], {"applyExtrinsic": 0}))
    with pytest.raises(DecodeError):
        sc.resolver.resolve_result(HEADER, 0, RAW)
