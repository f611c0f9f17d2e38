from __future__ import annotations

"""
Result resolver
===============

Resolves the outcome of one extrinsic in a finalized block and persists it:

1) hash = SHA-256(raw tx)
2) events = chain.events_at(header.hash)
3) keep the profile's terminal markers whose phase is ``applyExtrinsic == index``
4) exactly one must remain; zero or several is a ProtocolInconsistencyError
5) classify → code / codespace / gas / events
6) gas wanted comes from the success payload when it carries one, else from
   the tx's declared fee gas limit
7) put_result(key, record) where key is `store.key_for(hash)`: the SHA-256, or
   the native identifier broadcast aliased it to

The record depends only on (header, index, raw tx) and chain state, so a
duplicate invocation rewrites an identical record.
"""

from typing import Optional, Union

from ..chain.client import ChainClient
from ..chain.events import classify, terminal_events
from ..chain.profiles import ProtocolProfile
from ..codec import MODULE_ERROR_ABI_V1, ModuleErrorLayout, raw_bytes, to_base64, to_hash_hex
from ..db.result_store import ResultStore
from ..errors import ProtocolInconsistencyError
from ..logging import LoggingSink, ObservabilitySink
from ..types.chain import BlockHeader
from ..types.records import ResultRecord


class ResultResolver:
    def __init__(
        self,
        chain: ChainClient,
        store: ResultStore,
        profile: ProtocolProfile,
        *,
        layout: ModuleErrorLayout = MODULE_ERROR_ABI_V1,
        sink: Optional[ObservabilitySink] = None,
    ) -> None:
        self._chain = chain
        self._store = store
        self._profile = profile
        self._layout = layout
        self._sink = sink or LoggingSink()

    @property
    def profile(self) -> ProtocolProfile:
        return self._profile

    def resolve_result(
        self, header: BlockHeader, index: int, raw_tx: Union[bytes, bytearray, str]
    ) -> ResultRecord:
        raw = raw_bytes(raw_tx, field="tx")
        tx_hash = to_hash_hex(raw)

        events = self._chain.events_at(header.hash)
        terminal = terminal_events(events, index, self._profile)
        if len(terminal) != 1:
            err = ProtocolInconsistencyError(
                height=header.number,
                index=index,
                found=len(terminal),
                tx_hash=tx_hash,
                profile=self._profile.tag,
            )
            self._sink.emit(
                "result.protocol_inconsistency",
                tx_hash=tx_hash,
                height=header.number,
                index=index,
                found=len(terminal),
                profile=self._profile.tag,
            )
            raise err

        outcome = classify(terminal[0], self._profile, self._layout)
        gas_wanted = outcome.gas_wanted
        if gas_wanted is None:
            gas_wanted = self._chain.decode_tx_fee_metadata(raw).gas_limit

        key = self._store.key_for(tx_hash)
        origin = self._store.get_origin(key)
        if origin is None:
            self._sink.emit("result.origin_missing", tx_hash=key)

        record = ResultRecord(
            hash=key,
            height=header.number,
            index=index,
            code=outcome.code,
            codespace=outcome.codespace,
            gas_wanted=gas_wanted,
            gas_used=outcome.gas_used,
            tx=origin.tx_base64 if origin is not None else to_base64(raw),
            events=outcome.events,
        )
        self._store.put_result(key, record)
        self._sink.emit(
            "result.resolved",
            tx_hash=key,
            height=header.number,
            index=index,
            code=record.code,
            codespace=record.codespace,
            gas_used=record.gas_used,
        )
        return record


__all__ = ["ResultResolver"]
