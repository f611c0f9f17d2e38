from __future__ import annotations

import pytest

from sidecar.errors import DecodeError, InputError
from sidecar.tests import FakeChain, hex_event, new_sidecar


def test_simulation_translates_gas_and_events():
    chain = FakeChain(
        simulate_response={
            "gas_info": {"gas_wanted": "0x30d40", "gas_used": 150000},
            "events": [hex_event("message", ("action", "/cosmos.bank.v1beta1.MsgSend"))],
        }
    )
    sc, _, sink = new_sidecar(chain)
    res = sc.simulation.simulate("ZHVtbXk=")

    assert chain.simulated == ["0x64756d6d79"]
    assert (res.gas_info.gas_wanted, res.gas_info.gas_used) == (200000, 150000)
    wire = res.to_wire()
    assert wire["gas_info"] == {"gas_wanted": "200000", "gas_used": "150000"}
    assert wire["result"]["events"] == [
        {"type": "message", "attributes": [{"key": "action", "value": "/cosmos.bank.v1beta1.MsgSend"}]}
    ]
    assert sink.names() == ["simulate.completed"]


def test_simulation_persists_nothing():
    chain = FakeChain(simulate_response={"gas_info": {"gas_wanted": 1, "gas_used": 1}, "events": []})
    sc, _, _ = new_sidecar(chain)
    sc.simulation.simulate("ZHVtbXk=")
    assert list(sc.store.kv.iter_prefix(b"tx::")) == []


@pytest.mark.parametrize(
    "resp, field",
    [
        ({"events": []}, "gas_info"),
        ({"gas_info": 5, "events": []}, "gas_info"),
        ({"gas_info": {"gas_wanted": 1, "gas_used": 1}}, "events"),
        ({"gas_info": {"gas_wanted": "x", "gas_used": 1}, "events": []}, "gas_info.gas_wanted"),
        ({"gas_info": {"gas_wanted": 1, "gas_used": 1}, "events": [{"type": "zz"}]}, "events[0].type"),
    ],
)
def test_malformed_native_reply(resp, field):
    sc, _, _ = new_sidecar(FakeChain(simulate_response=resp))
    with pytest.raises(DecodeError) as ei:
        sc.simulation.simulate("ZHVtbXk=")
    assert ei.value.field == field


def test_bad_client_input_never_reaches_chain():
    sc, chain, _ = new_sidecar()
    with pytest.raises(InputError):
        sc.simulation.simulate("***")
    assert chain.simulated == []
