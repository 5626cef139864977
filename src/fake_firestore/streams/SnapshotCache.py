"""Last-delivered result per query, used as the "before" side of the next diff."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fake_firestore.model.Query import Query
from fake_firestore.model.QuerySnapshot import QuerySnapshot


@dataclass(frozen=True)
class CacheEntry:
    item_type: type
    snapshot: QuerySnapshot[Any]


class SnapshotCache:
    """Maps query identity to the most recently observed result snapshot.

    A missing entry means the query has not been evaluated yet and diffs against
    an empty result.
    """

    _entries: dict[Query, CacheEntry]

    def __init__(self) -> None:
        self._entries = {}

    def get(self, query: Query) -> CacheEntry | None:
        return self._entries.get(query)

    def put(self, query: Query, item_type: type, snapshot: QuerySnapshot[Any]) -> None:
        self._entries[query] = CacheEntry(item_type, snapshot)

    def discard(self, query: Query) -> None:
        self._entries.pop(query, None)

    def clear(self) -> None:
        self._entries.clear()
