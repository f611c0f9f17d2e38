from __future__ import annotations

"""
Broadcast pipeline
==================

Client base64 tx → native submission → origin record → acknowledgment.

    pipeline = BroadcastPipeline(chain, store)
    ack = pipeline.broadcast_tx("ZHVtbXk=")
    ack.txhash  # uppercase SHA-256 of b"dummy"

Storage-key hash
----------------
``hash_key_source="computed"`` (default) keys the origin record by the
SHA-256 of the raw bytes, which is what clients compute and what the resolver
derives from block contents. ``"native"`` keys it by the identifier the
native chain returned instead and records an alias from the SHA-256 to that
identifier; the resolver follows the alias, so the result lands under the key
the client got back. Either way a `broadcast.hash_mismatch` event is emitted
when the two disagree.

Invalid base64 fails with InputError before any network call. Submission
failures propagate unchanged (no retries); nothing is persisted for them.
"""

from typing import Optional

from ..chain.client import ChainClient
from ..codec import client_tx_bytes, normalize_hash, to_hash_hex, to_hex
from ..config import HASH_KEY_SOURCES
from ..db.result_store import ResultStore
from ..errors import ConfigError, DecodeError, InputError, SidecarError
from ..logging import LoggingSink, ObservabilitySink
from ..types.records import BroadcastAck


class BroadcastPipeline:
    def __init__(
        self,
        chain: ChainClient,
        store: ResultStore,
        *,
        hash_key_source: str = "computed",
        sink: Optional[ObservabilitySink] = None,
    ) -> None:
        if hash_key_source not in HASH_KEY_SOURCES:
            raise ConfigError("unknown hash key source", value=hash_key_source)
        self._chain = chain
        self._store = store
        self._hash_key_source = hash_key_source
        self._sink = sink or LoggingSink()

    def broadcast_tx(self, tx_bytes_b64: str) -> BroadcastAck:
        raw = client_tx_bytes(tx_bytes_b64)
        computed = to_hash_hex(raw)

        try:
            ident = self._chain.submit(to_hex(raw, prefix=True))
        except SidecarError as e:
            self._sink.emit("broadcast.failed", tx_hash=computed, error=e.code, message=e.message)
            raise

        try:
            native = normalize_hash(ident)
        except InputError as e:
            raise DecodeError(
                "native submission identifier is not hex", field="submit.result", value=ident
            ).with_cause(e) from e

        if native != computed:
            self._sink.emit("broadcast.hash_mismatch", computed=computed, native=native)

        if self._hash_key_source == "computed":
            key = computed
            self._store.put_origin(key, tx_bytes_b64)
        else:
            key = native
            self._store.put_origin(key, tx_bytes_b64, computed_hash=computed)
        self._sink.emit("broadcast.submitted", tx_hash=key, size=len(raw))
        return BroadcastAck(txhash=key)


__all__ = ["BroadcastPipeline"]
