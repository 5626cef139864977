"""Configuration for QuerySnapshotStreamManager."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StreamManagerConfig:
    """Tunable behavior of the snapshot stream manager.

    Attributes:
        replay_buffer_size: How many past snapshots a late subscriber receives. 1 replays only the latest.
        strict_type_checks: Raise ChannelTypeMismatchError when a cached snapshot's type tag
            doesn't match during dispatch, instead of logging and skipping the query.
        copy_snapshots: Deep-copy re-evaluated results before caching them as the next "before" state.
    """

    replay_buffer_size: int = 1
    strict_type_checks: bool = False
    copy_snapshots: bool = True

    def __post_init__(self) -> None:
        if self.replay_buffer_size < 1:
            raise ValueError("replay_buffer_size must be >= 1")
