"""Snapshot utility for freezing query results before they are cached.

Documents handed out by the store collaborator may share mutable data with the
store itself. Caching a deep copy keeps the "before" side of the next diff
intact when the store later mutates that data in place.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence


def snapshot[D](docs: Sequence[D]) -> tuple[D, ...]:
    """Create a deep copy of an ordered result list.

    Args:
        docs: The documents to freeze

    Returns:
        A tuple of deep-copied documents, in the same order
    """
    return tuple(copy.deepcopy(list(docs)))
