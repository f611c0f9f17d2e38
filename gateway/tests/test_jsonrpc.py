from __future__ import annotations

import hashlib

import pytest

from gateway.tests import new_test_client, rpc_call
from sidecar.codec import to_base64, to_hash_hex
from sidecar.tests import FakeChain, executed, hex_event, tx_raw
from sidecar.types.chain import BlockHeader

DUMMY_HASH = hashlib.sha256(b"dummy").hexdigest().upper()
BLOCK = "0x" + "fe" * 32


@pytest.mark.parametrize("path", ["/", "/rpc"])
def test_broadcast_tx_sync(path):
    client, chain, _ = new_test_client()
    res = rpc_call(client, "broadcast_tx_sync", {"tx": "ZHVtbXk="}, path=path)
    assert res["result"] == {"code": 0, "data": "", "log": "", "codespace": "", "hash": DUMMY_HASH}
    assert chain.submitted == ["0x64756d6d79"]


def test_positional_params():
    client, _, _ = new_test_client()
    res = rpc_call(client, "broadcast_tx_sync", ["ZHVtbXk="])
    assert res["result"]["hash"] == DUMMY_HASH


def test_tx_search_and_tx():
    raw = tx_raw(50)
    client, chain, sc = new_test_client()
    rpc_call(client, "broadcast_tx_sync", {"tx": to_base64(raw)})
    chain.add_events(BLOCK, executed(0, 50, 40, [hex_event("tx", ("fee", "1uatom"))]))
    sc.resolver.resolve_result(BlockHeader(8, BLOCK), 0, raw)
    h = to_hash_hex(raw)

    found = rpc_call(client, "tx_search", {"query": f"tx.hash='{h.upper()}'", "prove": False, "page": "1"})
    assert found["result"]["total_count"] == 1
    assert found["result"]["txs"][0]["hash"] == h.upper()
    assert found["result"]["txs"][0]["tx_result"]["events"][0]["attributes"] == [{"key": "fee", "value": "1uatom"}]

    single = rpc_call(client, "tx", {"hash": "0x" + h})
    assert single["result"]["height"] == "8"


def test_tx_search_miss_is_empty():
    client, _, _ = new_test_client()
    res = rpc_call(client, "tx_search", {"query": "tx.hash='" + "00" * 32 + "'"})
    assert res["result"] == {"txs": [], "total_count": 0}


def test_tx_miss_is_not_found():
    client, _, _ = new_test_client()
    res = rpc_call(client, "tx", {"hash": "00" * 32}, expect_error=True)
    assert res["error"]["code"] == -32004


def test_abci_simulate():
    chain = FakeChain(simulate_response={"gas_info": {"gas_wanted": 7, "gas_used": 6}, "events": []})
    client, _, _ = new_test_client(chain)
    res = rpc_call(client, "abci_simulate", ["ZHVtbXk="])
    assert res["result"]["gas_info"] == {"gas_wanted": "7", "gas_used": "6"}


def test_list_methods():
    client, _, _ = new_test_client()
    names = rpc_call(client, "rpc.listMethods")["result"]
    assert {"broadcast_tx_sync", "tx_search", "tx", "abci_simulate"} <= set(names)


def test_notification_returns_no_content():
    client, chain, _ = new_test_client()
    r = client.post("/rpc", json={"jsonrpc": "2.0", "method": "broadcast_tx_sync", "params": ["ZHVtbXk="]})
    assert r.status_code == 204
    assert len(chain.submitted) == 1


def test_batch_mixed_valid_invalid_and_garbage():
    client, _, _ = new_test_client()
    batch = [
        {"jsonrpc": "2.0", "method": "rpc.listMethods", "id": "a"},
        {"jsonrpc": "2.0", "method": "no.such.method", "id": "b"},
        "not a request",
    ]
    r = client.post("/rpc", json=batch)
    assert r.status_code == 200
    out = r.json()
    assert isinstance(out, list) and len(out) == 3
    by_id = {item["id"]: item for item in out}
    assert "result" in by_id["a"]
    assert by_id["b"]["error"]["code"] == -32601
    assert by_id[None]["error"]["code"] == -32600


def test_get_on_rpc_returns_hint():
    client, _, _ = new_test_client()
    r = client.get("/rpc")
    assert r.status_code == 405
    assert r.headers["allow"] == "POST"
    assert "hint" in r.json()
