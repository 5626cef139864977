"""Immutable view of a single document as returned by a query."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DocumentSnapshot[T]:
    """A document inside a query result.

    Attributes:
        id: Document id, unique within its collection and within any result set.
        data: The document content.
        path: Full document path (``collection/path/id``), if known.
        exists: Always True for documents returned by a query.
    """

    id: str
    data: T
    path: str | None = None
    exists: bool = True

    def to_dict(self) -> T:
        return self.data
