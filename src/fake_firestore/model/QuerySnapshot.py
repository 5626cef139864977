"""Result snapshot pushed to query subscribers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from fake_firestore.model.DocumentChange import DocumentChange
from fake_firestore.model.Query import QueryDocument


@dataclass(frozen=True)
class QuerySnapshot[D: QueryDocument]:
    """Ordered query result at a point in time.

    Attributes:
        docs: Matching documents, already filtered and ordered by the query.
        from_cache: True if the result was served from local cache rather than the source.
        document_changes: What changed since the previous snapshot on the same channel.
    """

    docs: tuple[D, ...]
    from_cache: bool = False
    document_changes: tuple[DocumentChange[D], ...] = field(default=())

    @classmethod
    def of(
        cls,
        docs: Sequence[D],
        from_cache: bool = False,
        document_changes: Sequence[DocumentChange[D]] = (),
    ) -> QuerySnapshot[D]:
        return cls(tuple(docs), from_cache, tuple(document_changes))

    @property
    def size(self) -> int:
        return len(self.docs)

    @property
    def empty(self) -> bool:
        return not self.docs
