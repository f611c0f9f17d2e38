from __future__ import annotations

"""
SQLite-backed KV store
======================

Embedded KV on SQLite (BLOB keys & values) implementing `sidecar.db.kv.KV`.

- Table schema: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- WAL journal with FULL sync (each commit is fsynced); autocommit, batches run in BEGIN IMMEDIATE.
- One connection shared across threads (`check_same_thread=False`), guarded by
  an RLock so the broadcast path and the block follower can write concurrently.

Every sqlite3 failure surfaces as `sidecar.errors.DatabaseError`.
"""

import os
import sqlite3
import threading
from typing import Iterator, List, Optional, Tuple, Union

from ..errors import DatabaseError
from .kv import KV, Batch

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "FULL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}

_UPSERT = "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v"


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    for name, value in p.items():
        conn.execute(f"PRAGMA {name}={value}")


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute("CREATE TABLE IF NOT EXISTS kv (k BLOB PRIMARY KEY, v BLOB NOT NULL)")


def _prefix_hi(prefix: bytes) -> Optional[bytes]:
    """Smallest byte string greater than every key starting with `prefix` (None if unbounded)."""
    p = bytearray(prefix)
    for i in range(len(p) - 1, -1, -1):
        if p[i] != 0xFF:
            p[i] += 1
            del p[i + 1 :]
            return bytes(p)
    return None


class SQLiteBatch(Batch):
    __slots__ = ("_kv", "_ops", "_open")

    def __init__(self, kv: "SQLiteKV") -> None:
        self._kv = kv
        self._ops: List[Tuple[str, bytes, Optional[bytes]]] = []
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append(("put", bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append(("del", bytes(key), None))

    def commit(self) -> None:
        if not self._open:
            return
        ops, self._ops = self._ops, []
        self._open = False
        self._kv._apply(ops)

    def rollback(self) -> None:
        self._ops = []
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None


def _open_connection(path: Union[str, "os.PathLike[str]"], *, create: bool = True) -> sqlite3.Connection:
    path_str = str(path)
    if path_str != ":memory:":
        if not create and not os.path.exists(path_str):
            raise DatabaseError("SQLite KV not found", retryable=False, path=path_str)
        parent = os.path.dirname(path_str)
        if parent and create:
            os.makedirs(parent, exist_ok=True)
    return sqlite3.connect(
        path_str,
        detect_types=0,
        isolation_level=None,      # autocommit; batches BEGIN explicitly
        check_same_thread=False,
    )


class SQLiteKV(KV):
    """
    SQLite-backed KV. Use `open_sqlite_kv(path)` to construct.
    """

    __slots__ = ("_conn", "_lock", "_path")

    def __init__(self, conn: sqlite3.Connection, *, path: str = ":memory:") -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._path = path

    def _fail(self, op: str, e: sqlite3.Error) -> DatabaseError:
        return DatabaseError(f"sqlite {op} failed: {e}", path=self._path).with_cause(e)

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        try:
            with self._lock:
                row = self._conn.execute("SELECT v FROM kv WHERE k = ?", (memoryview(key),)).fetchone()
        except sqlite3.Error as e:
            raise self._fail("get", e) from e
        return bytes(row[0]) if row is not None else None

    def has(self, key: bytes) -> bool:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT 1 FROM kv WHERE k = ? LIMIT 1", (memoryview(key),)
                ).fetchone()
        except sqlite3.Error as e:
            raise self._fail("has", e) from e
        return row is not None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        hi = _prefix_hi(prefix)
        if hi is not None:
            sql = "SELECT k, v FROM kv WHERE k >= ? AND k < ? ORDER BY k"
            args: tuple = (memoryview(prefix), memoryview(hi))
        else:
            sql = "SELECT k, v FROM kv WHERE substr(k,1,?) = ? ORDER BY k"
            args = (len(prefix), memoryview(prefix))
        try:
            with self._lock:
                rows = self._conn.execute(sql, args).fetchall()
        except sqlite3.Error as e:
            raise self._fail("scan", e) from e
        for k, v in rows:
            yield bytes(k), bytes(v)

    def pragma(self, name: str):
        """Current value of a connection PRAGMA (e.g. ``synchronous``)."""
        try:
            with self._lock:
                row = self._conn.execute(f"PRAGMA {name}").fetchone()
        except sqlite3.Error as e:
            raise self._fail("pragma", e) from e
        return row[0] if row is not None else None

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        try:
            with self._lock:
                self._conn.execute(_UPSERT, (memoryview(key), memoryview(value)))
        except sqlite3.Error as e:
            raise self._fail("put", e) from e

    def delete(self, key: bytes) -> None:
        try:
            with self._lock:
                self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))
        except sqlite3.Error as e:
            raise self._fail("delete", e) from e

    def batch(self) -> Batch:
        return SQLiteBatch(self)

    def _apply(self, ops: List[Tuple[str, bytes, Optional[bytes]]]) -> None:
        if not ops:
            return
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                for op, k, v in ops:
                    if op == "put":
                        self._conn.execute(_UPSERT, (memoryview(k), memoryview(v)))  # type: ignore[arg-type]
                    else:
                        self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(k),))
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                raise self._fail("batch", e) from e


def open_sqlite_kv(path: Union[str, "os.PathLike[str]"], *, pragmas: Optional[dict] = None, create: bool = True) -> SQLiteKV:
    """Open (or create) a SQLite KV at `path` (``":memory:"`` for an ephemeral store)."""
    try:
        conn = _open_connection(path, create=create)
        _apply_pragmas(conn, pragmas)
        _migrate(conn)
    except sqlite3.Error as e:
        raise DatabaseError(f"cannot open sqlite KV: {e}", path=str(path)).with_cause(e) from e
    return SQLiteKV(conn, path=str(path))


__all__ = ["SQLiteKV", "SQLiteBatch", "open_sqlite_kv"]
