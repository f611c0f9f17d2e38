from __future__ import annotations

"""
sidecar.db
==========

Thin facade over the key–value backend.

URIs
----
- "sqlite:///path/to/sidecar.db"   → SQLite file
- "sqlite:///:memory:"             → in-memory SQLite (tests)
- "memory://"                      → alias of "sqlite:///:memory:"
- bare path ending in ".db"        → SQLite file

>>> kv = open_kv("memory://")
>>> kv.put(b"tx::origin::ab", b'"ZHVtbXk="')
>>> kv.get(b"tx::origin::ab")
b'"ZHVtbXk="'
"""

from typing import Tuple

from ..errors import ConfigError
from . import sqlite as _sqlite_backend
from .kv import ALIAS, KV, META, ORIGIN, RESULT, Batch, Namespace, ReadOnlyKV
from .result_store import ResultStore


def _parse_uri(uri: str) -> Tuple[str, str]:
    u = uri.strip()
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.startswith("memory://"):
        return ("memory", "")
    if u.endswith(".db"):
        return ("sqlite", u)
    raise ConfigError("unsupported DB URI", uri=uri)


def open_kv(uri: str, create: bool = True) -> KV:
    """Open a KV database by URI. Unknown schemes raise ConfigError."""
    backend, target = _parse_uri(uri)
    if backend == "memory":
        return _sqlite_backend.open_sqlite_kv(":memory:", create=True)
    return _sqlite_backend.open_sqlite_kv(target or ":memory:", create=create)


__all__ = [
    "KV",
    "ReadOnlyKV",
    "Batch",
    "Namespace",
    "ORIGIN",
    "RESULT",
    "ALIAS",
    "META",
    "ResultStore",
    "open_kv",
]
