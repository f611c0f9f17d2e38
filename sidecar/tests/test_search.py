from __future__ import annotations

import pytest

from sidecar.errors import InputError
from sidecar.services import parse_hash_query
from sidecar.tests import executed, new_sidecar, tx_raw
from sidecar.codec import to_hash_hex
from sidecar.types.chain import BlockHeader

BLOCK = "0x" + "cc" * 32
RAW = tx_raw(1000)
TX_HASH = to_hash_hex(RAW)


def _resolved():
    sc, chain, sink = new_sidecar()
    chain.add_events(BLOCK, executed(0, 1000, 900))
    sc.resolver.resolve_result(BlockHeader(7, BLOCK), 0, RAW)
    return sc, sink


@pytest.mark.parametrize("form", [TX_HASH, TX_HASH.upper(), "0x" + TX_HASH.upper(), "0X" + TX_HASH])
def test_lookup_is_case_and_marker_insensitive(form):
    sc, _ = _resolved()
    res = sc.search.search_by_hash(form)
    assert res.total_count == 1
    wire = res.to_wire()
    assert wire["total_count"] == 1
    tx = wire["txs"][0]
    assert tx["hash"] == TX_HASH.upper()
    assert tx["height"] == "7"
    assert tx["tx_result"]["gas_used"] == "900"


def test_unknown_hash_is_empty_not_error():
    sc, sink = _resolved()
    res = sc.search.search_by_hash("00" * 32)
    assert res.to_wire() == {"txs": [], "total_count": 0}
    assert res.first() is None
    assert sink.of("search.lookup")[-1]["found"] is False


def test_non_hex_hash_is_input_error():
    sc, _ = _resolved()
    with pytest.raises(InputError):
        sc.search.search_by_hash("not-a-hash")


@pytest.mark.parametrize(
    "query",
    [f"tx.hash='{TX_HASH}'", f'tx.hash="{TX_HASH}"', f"tx.hash = {TX_HASH}", f"  tx.hash='0x{TX_HASH}' "],
)
def test_query_forms(query):
    sc, _ = _resolved()
    assert sc.search.search_query(query).total_count == 1


@pytest.mark.parametrize("query", ["", "tx.height=5", "message.sender='x'", "tx.hash='a' AND tx.height=1"])
def test_unsupported_queries(query):
    with pytest.raises(InputError):
        parse_hash_query(query)
