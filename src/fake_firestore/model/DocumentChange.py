"""Change records attached to query snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fake_firestore.model.Query import QueryDocument


class DocumentChangeType(str, Enum):
    """Kind of change a document went through between two snapshots."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class DocumentChange[D: QueryDocument]:
    """A single document change between two ordered result sets.

    Attributes:
        type: Whether the document was added, modified or removed.
        document: The document after the change, or before it when removed.
        old_index: Position in the previous result, -1 if it wasn't there.
        new_index: Position in the new result, -1 if it isn't there anymore.
    """

    type: DocumentChangeType
    document: D
    old_index: int
    new_index: int
