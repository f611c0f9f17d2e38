from __future__ import annotations

import pytest

from sidecar.codec import to_hash_hex
from sidecar.errors import DecodeError, ProtocolInconsistencyError
from sidecar.services import BlockFollower, FinalizedTail
from sidecar.tests import FakeBlocks, block_hash, executed, extrinsic_failed, new_sidecar, tx_raw
from sidecar.types.chain import FinalizedBlock

BLOCK = "0x" + "dd" * 32
TX_A = tx_raw(100)
TX_B = tx_raw(200)


def _block(*extrinsics):
    return FinalizedBlock.from_dict(
        {"header": {"number": 9, "hash": BLOCK}, "extrinsics": list(extrinsics)}
    )


def test_resolves_only_transact_calls():
    sc, chain, sink = new_sidecar()
    chain.add_events(BLOCK, executed(1, 100, 90), extrinsic_failed(2, "0x030209", 40))
    block = _block(
        {"section": "timestamp", "method": "set", "args": {"now": 1}},
        {"section": "cosmos", "method": "transact", "args": {"tx": "0x" + TX_A.hex()}},
        {"section": "cosmos", "method": "transact", "args": ["0x" + TX_B.hex()]},
    )

    records = sc.follower.process_block(block)

    assert [r.hash for r in records] == [to_hash_hex(TX_A), to_hash_hex(TX_B)]
    assert records[1].code == 9 and records[1].codespace == "2"
    assert records[1].gas_wanted == 200
    assert sc.store.has_result(to_hash_hex(TX_A))
    assert sink.of("follower.skipped")[0]["call"] == "timestamp::set"
    assert sink.of("follower.block")[0] == {"height": 9, "resolved": 2, "inconsistencies": 0}


def test_inconsistency_does_not_block_other_extrinsics():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, executed(1, 200, 150))
    follower = BlockFollower(sc.resolver, raise_on_inconsistency=False, sink=sc.sink)
    block = _block(
        {"section": "cosmos", "method": "transact", "args": {"tx": TX_A.hex()}},
        {"section": "cosmos", "method": "transact", "args": {"tx": TX_B.hex()}},
    )

    records = follower.process_block(block)

    assert [r.hash for r in records] == [to_hash_hex(TX_B)]
    assert len(follower.inconsistencies) == 1
    assert follower.inconsistencies[0].data["index"] == 0


def test_first_inconsistency_is_raised_after_the_block():
    sc, chain, _ = new_sidecar()
    chain.add_events(BLOCK, executed(1, 200, 150))
    block = _block(
        {"section": "cosmos", "method": "transact", "args": {"tx": TX_A.hex()}},
        {"section": "cosmos", "method": "transact", "args": {"tx": TX_B.hex()}},
    )
    with pytest.raises(ProtocolInconsistencyError):
        sc.follower.process_block(block)
    assert sc.store.has_result(to_hash_hex(TX_B))


def test_transact_without_tx_argument():
    sc, _, _ = new_sidecar()
    with pytest.raises(DecodeError):
        sc.follower.process_block(_block({"section": "cosmos", "method": "transact", "args": {}}))


# ---------------------------------------------------------------------------
# FinalizedTail
# ---------------------------------------------------------------------------


def _transact(tx: bytes):
    return {"section": "cosmos", "method": "transact", "args": {"tx": "0x" + tx.hex()}}


def _chain_of(n: int) -> FakeBlocks:
    blocks = FakeBlocks()
    for number in range(1, n + 1):
        blocks.add_block(number)
    return blocks


def test_tail_starts_at_finalized_head_without_cursor():
    blocks = _chain_of(3)
    sc, _, _ = new_sidecar(blocks=blocks)

    assert sc.tail.last_height is None
    assert sc.tail.poll_once() == 1
    assert blocks.fetched == [3]
    assert sc.tail.last_height == 3
    assert sc.tail.poll_once() == 0


def test_tail_honours_start_height():
    blocks = _chain_of(3)
    sc, _, sink = new_sidecar(blocks=blocks, start_height=2)

    assert sc.tail.poll_once() == 2
    assert blocks.fetched == [2, 3]
    assert [f["height"] for f in sink.of("follower.block")] == [2, 3]


def test_tail_resumes_after_stored_cursor():
    blocks = _chain_of(4)
    sc, _, _ = new_sidecar(blocks=blocks, start_height=1)
    sc.store.put_cursor(FinalizedTail.CURSOR, 2)

    assert sc.tail.poll_once() == 2
    assert blocks.fetched == [3, 4]


def test_tail_caps_blocks_per_poll():
    blocks = _chain_of(5)
    sc, _, _ = new_sidecar(blocks=blocks, start_height=1, max_blocks_per_poll=2)

    assert sc.tail.poll_once() == 2
    assert sc.tail.last_height == 2
    assert sc.tail.poll_once() == 2
    assert sc.tail.poll_once() == 1
    assert sc.tail.last_height == 5


def test_tail_resolves_transactions_in_followed_blocks():
    blocks = FakeBlocks()
    blocks.add_block(1, _transact(TX_A))
    sc, chain, _ = new_sidecar(blocks=blocks, start_height=1)
    chain.add_events(block_hash(1), executed(0, 100, 80))

    assert sc.tail.poll_once() == 1
    rec = sc.store.get_result(to_hash_hex(TX_A))
    assert rec is not None and rec.height == 1 and rec.index == 0


def test_tail_consumes_block_with_inconsistent_outcomes():
    blocks = FakeBlocks()
    blocks.add_block(1, _transact(TX_A), _transact(TX_B))
    blocks.add_block(2)
    sc, chain, _ = new_sidecar(blocks=blocks, start_height=1)
    chain.add_events(block_hash(1), executed(1, 200, 150))

    assert sc.tail.poll_once() == 2
    assert sc.tail.last_height == 2
    assert sc.store.has_result(to_hash_hex(TX_B))
    assert not sc.store.has_result(to_hash_hex(TX_A))


def test_tail_keeps_cursor_when_a_block_fails_to_decode():
    blocks = FakeBlocks()
    blocks.add_block(1)
    blocks.add_block(2, {"section": "cosmos", "method": "transact", "args": {}})
    sc, _, _ = new_sidecar(blocks=blocks, start_height=1)

    with pytest.raises(DecodeError):
        sc.tail.poll_once()
    assert sc.tail.last_height == 1


def test_tail_requires_positive_batch():
    sc, _, _ = new_sidecar()
    with pytest.raises(ValueError):
        FinalizedTail(sc.follower, FakeBlocks(), sc.store, max_blocks_per_poll=0)
