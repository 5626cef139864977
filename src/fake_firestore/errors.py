"""Exceptions raised by the fake Firestore snapshot machinery.

Programming errors (misuse of the stream manager API) get their own classes so
tests can assert on them precisely. Each class also derives from the closest
builtin so callers catching ``LookupError`` or ``TypeError`` keep working.
"""

from __future__ import annotations


class FakeFirestoreError(Exception):
    """Base class for all fake_firestore errors."""


class MalformedQueryError(FakeFirestoreError, ValueError):
    """A derived query has no parent query, so no root collection can be found."""


class QueryNotRegisteredError(FakeFirestoreError, LookupError):
    """A channel was requested for a query that is not registered.

    Call ``register(query)`` before ``get_channel(query)``. Queries dropped by
    ``unregister`` or ``clear`` must be registered again.
    """


class ChannelTypeMismatchError(FakeFirestoreError, TypeError):
    """The item type tag of a stored channel or cached snapshot doesn't match the requested one."""


class ChannelClosedError(FakeFirestoreError, RuntimeError):
    """An emission or subscription was attempted on a closed channel."""
