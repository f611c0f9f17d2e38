from __future__ import annotations

"""
KV interface & namespaces
=========================

Backend-agnostic key–value surface used by the result store. Keys are bytes
built from a readable namespace and an identifier:

- ORIGIN  (b"tx::origin::") : tx hash → client base64 tx (JSON)
- RESULT  (b"tx::result::") : tx hash → resolved result record (JSON)
- ALIAS   (b"tx::alias::")  : computed SHA-256 → native identifier (JSON), written
                              only when the store is keyed by native identifiers
- META    (b"sidecar::meta::") : bookkeeping such as the follower cursor (JSON)

>>> ORIGIN.key("ab01")
b'tx::origin::ab01'

Batching
--------
`KV.batch()` returns a context manager that applies its writes atomically:

>>> with kv.batch() as b:
...     b.put(ORIGIN.key(h), payload)
...     b.delete(RESULT.key(h))
"""

from typing import Iterable, Iterator, Optional, Protocol, Tuple, Union, runtime_checkable

NS_SEP = b"::"


class Namespace:
    """A readable key prefix: ``tx::origin::`` + identifier."""

    __slots__ = ("_raw",)

    def __init__(self, *parts: Union[bytes, str]) -> None:
        if not parts:
            raise ValueError("namespace must be non-empty")
        segs = [p.encode("ascii") if isinstance(p, str) else bytes(p) for p in parts]
        if any(not s or NS_SEP in s for s in segs):
            raise ValueError(f"invalid namespace segment in {parts!r}")
        self._raw = NS_SEP.join(segs) + NS_SEP

    @property
    def raw(self) -> bytes:
        return self._raw

    def key(self, ident: Union[bytes, str]) -> bytes:
        ib = ident.encode("utf-8") if isinstance(ident, str) else bytes(ident)
        if not ib:
            raise ValueError("key identifier must be non-empty")
        return self._raw + ib

    def strip(self, key: bytes) -> bytes:
        if not key.startswith(self._raw):
            raise ValueError("key is not under this namespace")
        return key[len(self._raw) :]

    def __repr__(self) -> str:
        return f"Namespace({self._raw!r})"


ORIGIN = Namespace("tx", "origin")
RESULT = Namespace("tx", "result")
ALIAS = Namespace("tx", "alias")
META = Namespace("sidecar", "meta")


@runtime_checkable
class ReadOnlyKV(Protocol):
    def get(self, key: bytes) -> Optional[bytes]: ...

    def has(self, key: bytes) -> bool: ...

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """(key, value) pairs under `prefix` in lexicographic key order."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class Batch(Protocol):
    """Atomic write batch; rolled back if an exception escapes the context."""

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(ReadOnlyKV, Protocol):
    def put(self, key: bytes, value: bytes) -> None:
        """Persist (key, value), overwriting any existing value."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (idempotent)."""
        ...

    def batch(self) -> Batch: ...


def put_many(kv: KV, items: Iterable[Tuple[bytes, bytes]]) -> None:
    with kv.batch() as b:
        for k, v in items:
            b.put(k, v)


__all__ = [
    "Namespace",
    "ORIGIN",
    "RESULT",
    "ALIAS",
    "META",
    "ReadOnlyKV",
    "KV",
    "Batch",
    "put_many",
]
