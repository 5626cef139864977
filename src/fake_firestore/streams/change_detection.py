"""Single-document change detection between two ordered query results."""

from __future__ import annotations

from collections.abc import Sequence

from deepdiff import DeepDiff

from fake_firestore.model.DocumentChange import DocumentChange, DocumentChangeType
from fake_firestore.model.Query import QueryDocument


def _index_of(doc_id: str, docs: Sequence[QueryDocument]) -> int:
    for index, doc in enumerate(docs):
        if doc.id == doc_id:
            return index
    return -1


def _same_content(before: QueryDocument, after: QueryDocument) -> bool:
    return not DeepDiff(before.to_dict(), after.to_dict())


def detect_change[D: QueryDocument](
    doc_id: str,
    before: Sequence[D],
    after: Sequence[D],
) -> DocumentChange[D] | None:
    """Compute the change record for one document between two results.

    Args:
        doc_id: Id of the document that was written
        before: Result previously delivered for the query
        after: Result of re-running the query

    Returns:
        ADDED if the document only appears in `after`, REMOVED if it only appears
        in `before`, MODIFIED if it appears in both with different content.
        None if it appears in neither, or in both with identical content.
    """
    old_index = _index_of(doc_id, before)
    new_index = _index_of(doc_id, after)

    if old_index != -1 and new_index != -1:
        if _same_content(before[old_index], after[new_index]):
            return None
        return DocumentChange(
            DocumentChangeType.MODIFIED, after[new_index], old_index, new_index
        )
    if new_index != -1:
        return DocumentChange(DocumentChangeType.ADDED, after[new_index], -1, new_index)
    if old_index != -1:
        return DocumentChange(DocumentChangeType.REMOVED, before[old_index], old_index, -1)
    return None
