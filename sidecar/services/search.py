"""Hash lookups over resolved results."""

from __future__ import annotations

import re
from typing import Optional

from ..codec import normalize_hash
from ..db.result_store import ResultStore
from ..errors import InputError
from ..logging import LoggingSink, ObservabilitySink
from ..types.records import ResultRecord, SearchResult

# tx.hash='ABCD…' / tx.hash="0xabcd…" / tx.hash=ABCD…
_HASH_QUERY_RE = re.compile(r"""^\s*tx\.hash\s*=\s*(['"]?)([^'"\s]*)\1\s*$""")


def parse_hash_query(query: str) -> str:
    """Extract the hash from a ``tx.hash='…'`` event query."""
    m = _HASH_QUERY_RE.match(query or "")
    if not m:
        raise InputError("only tx.hash='<hash>' queries are supported", query=query)
    return m.group(2)


class SearchService:
    def __init__(self, store: ResultStore, *, sink: Optional[ObservabilitySink] = None) -> None:
        self._store = store
        self._sink = sink or LoggingSink()

    def search_by_hash(self, hash_value: str) -> SearchResult:
        """
        Case-insensitive lookup; a leading ``0x`` is ignored. An unknown hash
        yields an empty result, a non-hex one raises InputError.
        """
        key = normalize_hash(hash_value)
        record = self._store.get_result(key)
        self._sink.emit("search.lookup", tx_hash=key, found=record is not None)
        return SearchResult(results=[record] if record is not None else [])

    def get_tx(self, hash_value: str) -> Optional[ResultRecord]:
        return self.search_by_hash(hash_value).first()

    def search_query(self, query: str) -> SearchResult:
        return self.search_by_hash(parse_hash_query(query))


__all__ = ["SearchService", "parse_hash_query"]
