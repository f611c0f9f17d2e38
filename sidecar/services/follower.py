from __future__ import annotations

"""
Block follower
==============

Drives the resolver from finalized blocks: every extrinsic whose call matches
the profile's `transact_call` (``cosmos::transact``) is resolved with the raw
tx taken from its ``tx`` argument (or first positional argument).

Feed blocks in with `process_block`:

    follower = BlockFollower(resolver)
    for block in finalized_blocks():
        follower.process_block(block)

or let `FinalizedTail` pull them in height order from a `BlockSource` (the
block API client), resuming from the cursor kept in the result store:

    tail = FinalizedTail(follower, BlockApiClient(url), store)
    tail.poll_once()   # catch up to the finalized head, at most one batch

A ProtocolInconsistencyError for one extrinsic does not stop the others in the
same block. With ``raise_on_inconsistency=True`` (default) the first such
error is re-raised once the whole block has been processed.
"""

import logging
from typing import List, Optional, Protocol, Union, runtime_checkable

from ..db.result_store import ResultStore
from ..errors import DecodeError, ProtocolInconsistencyError
from ..logging import LoggingSink, ObservabilitySink, bind, trace_scope
from ..types.chain import BlockHeader, Extrinsic, FinalizedBlock
from ..types.records import ResultRecord
from .resolver import ResultResolver


class BlockFollower:
    def __init__(
        self,
        resolver: ResultResolver,
        *,
        raise_on_inconsistency: bool = True,
        sink: Optional[ObservabilitySink] = None,
    ) -> None:
        self._resolver = resolver
        self._raise = raise_on_inconsistency
        self._sink = sink or LoggingSink()
        self.inconsistencies: List[ProtocolInconsistencyError] = []

    def _tx_arg(self, ext: Extrinsic):
        tx = ext.arg("tx")
        if tx is None:
            tx = ext.arg("tx_bytes")
        if tx is None:
            raise DecodeError("transact extrinsic carries no tx argument", field=f"extrinsics[{ext.index}].args")
        return tx

    def process_block(self, block: FinalizedBlock) -> List[ResultRecord]:
        call = self._resolver.profile.transact_call
        records: List[ResultRecord] = []
        errors: List[ProtocolInconsistencyError] = []

        with trace_scope():
            bind(component="follower", height=block.height)
            for ext in block.extrinsics:
                if ext.call != call:
                    self._sink.emit("follower.skipped", height=block.height, index=ext.index, call=ext.call)
                    continue
                try:
                    records.append(
                        self._resolver.resolve_result(block.header, ext.index, self._tx_arg(ext))
                    )
                except ProtocolInconsistencyError as e:
                    errors.append(e)

        self.inconsistencies.extend(errors)
        self._sink.emit(
            "follower.block",
            height=block.height,
            resolved=len(records),
            inconsistencies=len(errors),
        )
        if errors and self._raise:
            raise errors[0]
        return records


log = logging.getLogger("sidecar.follower")


@runtime_checkable
class BlockSource(Protocol):
    def finalized_head(self) -> BlockHeader: ...

    def block_at(self, at: Union[int, str]) -> FinalizedBlock: ...


class FinalizedTail:
    """
    Walks finalized heights from the stored cursor up to the finalized head.

    The cursor (last processed height) is written after each block, so a
    restart resumes at the next one. A block whose extrinsics break the
    one-terminal-event rule is still consumed: its other results are stored and
    the inconsistency is reported through the sink and the error log. Any other
    failure leaves the cursor in place and propagates to the caller.
    """

    CURSOR = "follower.height"

    def __init__(
        self,
        follower: BlockFollower,
        blocks: BlockSource,
        store: ResultStore,
        *,
        start_height: Optional[int] = None,
        max_blocks_per_poll: int = 100,
    ) -> None:
        if max_blocks_per_poll < 1:
            raise ValueError("max_blocks_per_poll must be >= 1")
        self._follower = follower
        self._blocks = blocks
        self._store = store
        self._start = start_height
        self.max_blocks_per_poll = max_blocks_per_poll

    @property
    def last_height(self) -> Optional[int]:
        return self._store.get_cursor(self.CURSOR)

    def poll_once(self) -> int:
        """Process up to `max_blocks_per_poll` finalized blocks; returns how many."""
        head = self._blocks.finalized_head()
        last = self.last_height
        if last is not None:
            cur = last + 1
        elif self._start is not None:
            cur = self._start
        else:
            cur = head.number

        done = 0
        while cur <= head.number and done < self.max_blocks_per_poll:
            block = self._blocks.block_at(cur)
            try:
                self._follower.process_block(block)
            except ProtocolInconsistencyError as e:
                log.error(
                    "block has inconsistent extrinsic outcomes",
                    extra={"height": cur, "index": e.data.get("index"), "found": e.data.get("found")},
                )
            self._store.put_cursor(self.CURSOR, cur)
            cur += 1
            done += 1
        return done


__all__ = ["BlockFollower", "BlockSource", "FinalizedTail"]
