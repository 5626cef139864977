"""Broadcast channel for query snapshots.

A SnapshotChannel delivers every emitted snapshot to all current subscribers in
emission order and replays the most recent one(s) to subscribers that attach
later. It also carries the item type tag the channel was registered with, so a
lookup for the wrong document type fails instead of handing back a mistyped
stream.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import reactivex
from reactivex import operators as ops
from reactivex.abc import DisposableBase
from reactivex.subject import ReplaySubject

from fake_firestore.errors import ChannelClosedError
from fake_firestore.model.QuerySnapshot import QuerySnapshot

type SnapshotCallback = Callable[[QuerySnapshot[Any]], None]


class SnapshotChannel:
    """Replay-latest broadcast stream of QuerySnapshot values for one query."""

    item_type: type
    _subject: ReplaySubject[QuerySnapshot[Any]]
    _latest: QuerySnapshot[Any] | None
    _closed: bool

    def __init__(self, item_type: type, replay_buffer_size: int = 1) -> None:
        self.item_type = item_type
        self._subject = ReplaySubject(buffer_size=replay_buffer_size)
        self._latest = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> QuerySnapshot[Any] | None:
        """The last snapshot emitted on this channel, or None before the first push.

        Lets a caller poll the current result without attaching a subscriber.
        ReplaySubject keeps its buffer private, so the channel tracks it here.
        """
        return self._latest

    def emit(self, snapshot: QuerySnapshot[Any]) -> None:
        """Push a snapshot to every subscriber.

        Raises:
            ChannelClosedError: If the channel was closed
        """
        if self._closed:
            raise ChannelClosedError("cannot emit on a closed snapshot channel")
        self._latest = snapshot
        self._subject.on_next(snapshot)

    def subscribe(
        self,
        on_next: SnapshotCallback,
        on_completed: Callable[[], None] | None = None,
    ) -> DisposableBase:
        """Attach a subscriber. It immediately receives the replay buffer, if any.

        Args:
            on_next: Called with each snapshot
            on_completed: Called once when the channel is closed

        Returns:
            Disposable that detaches the subscriber

        Raises:
            ChannelClosedError: If the channel was closed
        """
        if self._closed:
            raise ChannelClosedError("cannot subscribe to a closed snapshot channel")
        return self._subject.subscribe(on_next=on_next, on_completed=on_completed)

    def as_observable(self) -> reactivex.Observable[QuerySnapshot[Any]]:
        """Read-only observable view, for composing with reactivex operators."""
        return self._subject.pipe(ops.as_observable())

    async def close(self) -> None:
        """Complete the stream and release subscribers. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._subject.on_completed()
        self._subject.dispose()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"SnapshotChannel[{self.item_type.__name__}]({state})"
