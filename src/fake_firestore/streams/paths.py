"""Path helpers for the snapshot stream manager."""

from __future__ import annotations

from fake_firestore.errors import MalformedQueryError
from fake_firestore.model.Query import CollectionReference, Query


def resolve_root_collection_path(query: Query) -> str:
    """Walk the parent chain of a query up to its collection reference.

    Args:
        query: A collection reference or a query derived from one

    Returns:
        The slash-delimited path of the root collection

    Raises:
        MalformedQueryError: If a derived query in the chain has no parent
    """
    current: Query | None = query
    while current is not None:
        if isinstance(current, CollectionReference):
            return current.path
        parent = current.parent_query
        if parent is None:
            raise MalformedQueryError(
                f"{current!r} is not a collection reference and has no parent query"
            )
        current = parent
    raise MalformedQueryError("query is None")


def split_parent(path: str) -> tuple[str, str] | None:
    """Split ``a/docA/b`` into ``("a/docA", "b")``. Returns None for a top-level path."""
    if "/" not in path:
        return None
    parent, _, last = path.rpartition("/")
    return parent, last
