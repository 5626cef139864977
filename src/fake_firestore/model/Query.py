"""Structural types for the store/query collaborator.

The stream manager never builds queries or documents itself. It only relies on
the attributes declared here, so any emulator whose query objects expose them
can plug in.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Any, Protocol, runtime_checkable


class QueryDocument(Protocol):
    """A document in a query result. Diffing compares ids, then content."""

    @property
    def id(self) -> str: ...

    def to_dict(self) -> Any: ...


class HasDocs(Protocol):
    """Firestore-style query snapshot exposing its documents."""

    @property
    def docs(self) -> Sequence[QueryDocument]: ...


type QueryResult = Sequence[QueryDocument] | HasDocs
"""What `Query.get()` may return."""


class Query(Protocol):
    """A root collection reference or a query derived from one.

    Queries are compared by identity and used as dictionary keys, so they must
    stay hashable.
    """

    @property
    def firestore(self) -> Hashable: ...

    @property
    def parent_query(self) -> Query | None: ...

    async def get(self) -> QueryResult: ...


@runtime_checkable
class CollectionReference(Query, Protocol):
    """The root of every query chain. `path` is slash-delimited, e.g. ``a/docA/b``."""

    @property
    def path(self) -> str: ...
