"""
Hash-indexed store for origin transactions and resolved results.

Origin and result namespaces share the lowercase hex store key as identifier:

    tx::origin::<key>       → JSON string: base64 tx exactly as the client sent it
    tx::result::<key>       → JSON object: ResultRecord wire shape
    tx::alias::<sha256>     → JSON string: store key when it differs from the SHA-256
    sidecar::meta::<name>   → JSON value: follower cursor and similar bookkeeping

The store key is the SHA-256 of the raw tx unless broadcast was keyed by the
native identifier; `key_for(sha256)` resolves either case through the alias.

Every put goes straight to the backend (autocommit), so it is durable when the
call returns. Origin and result writes are independent operations.
"""

from __future__ import annotations

import json
from typing import Optional

from ..errors import DatabaseError
from ..types.records import OriginRecord, ResultRecord
from .kv import ALIAS, KV, META, ORIGIN, RESULT, put_many


def _key_id(hash_hex: str) -> str:
    h = hash_hex.strip().lower()
    if h.startswith("0x"):
        h = h[2:]
    if not h:
        raise ValueError("empty tx hash")
    return h


def _dumps(obj) -> bytes:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _loads(raw: bytes, key: bytes):
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DatabaseError(
            "corrupt value in store", retryable=False, key=key.decode("utf-8", "replace")
        ).with_cause(e) from e


class ResultStore:
    def __init__(self, kv: KV) -> None:
        self._kv = kv

    @property
    def kv(self) -> KV:
        return self._kv

    # --- origin ---

    def put_origin(
        self, hash_hex: str, tx_base64: str, *, computed_hash: Optional[str] = None
    ) -> OriginRecord:
        """
        Store the client tx under `hash_hex`. When `computed_hash` (the SHA-256 of
        the raw bytes) differs from it, the alias is written in the same batch.
        """
        h = _key_id(hash_hex)
        items = [(ORIGIN.key(h), _dumps(tx_base64))]
        if computed_hash is not None and _key_id(computed_hash) != h:
            items.append((ALIAS.key(_key_id(computed_hash)), _dumps(h)))
        if len(items) == 1:
            self._kv.put(*items[0])
        else:
            put_many(self._kv, items)
        return OriginRecord(hash=h, tx_base64=tx_base64)

    def get_origin(self, hash_hex: str) -> Optional[OriginRecord]:
        h = _key_id(hash_hex)
        key = ORIGIN.key(h)
        raw = self._kv.get(key)
        if raw is None:
            return None
        value = _loads(raw, key)
        if not isinstance(value, str):
            raise DatabaseError("origin record is not a string", retryable=False, hash=h)
        return OriginRecord(hash=h, tx_base64=value)

    def delete_origin(self, hash_hex: str) -> None:
        self._kv.delete(ORIGIN.key(_key_id(hash_hex)))

    # --- result ---

    def put_result(self, hash_hex: str, record: ResultRecord) -> None:
        self._kv.put(RESULT.key(_key_id(hash_hex)), _dumps(record.to_wire()))

    def get_result(self, hash_hex: str) -> Optional[ResultRecord]:
        key = RESULT.key(_key_id(hash_hex))
        raw = self._kv.get(key)
        if raw is None:
            return None
        value = _loads(raw, key)
        try:
            return ResultRecord.from_wire(value)
        except (KeyError, TypeError, ValueError) as e:
            raise DatabaseError(
                "result record does not match the tx_result shape", retryable=False, hash=hash_hex
            ).with_cause(e) from e

    def has_result(self, hash_hex: str) -> bool:
        return self._kv.has(RESULT.key(_key_id(hash_hex)))

    # --- alias ---

    def get_alias(self, computed_hash: str) -> Optional[str]:
        key = ALIAS.key(_key_id(computed_hash))
        raw = self._kv.get(key)
        if raw is None:
            return None
        value = _loads(raw, key)
        if not isinstance(value, str):
            raise DatabaseError("alias record is not a string", retryable=False, hash=computed_hash)
        return value

    def key_for(self, computed_hash: str) -> str:
        """Store key of the tx whose raw bytes hash to `computed_hash`."""
        return self.get_alias(computed_hash) or _key_id(computed_hash)

    # --- meta ---

    def get_cursor(self, name: str) -> Optional[int]:
        key = META.key(name)
        raw = self._kv.get(key)
        if raw is None:
            return None
        value = _loads(raw, key)
        if not isinstance(value, int) or isinstance(value, bool):
            raise DatabaseError("cursor is not an integer", retryable=False, name=name)
        return value

    def put_cursor(self, name: str, height: int) -> None:
        self._kv.put(META.key(name), _dumps(int(height)))

    def close(self) -> None:
        self._kv.close()


__all__ = ["ResultStore"]
