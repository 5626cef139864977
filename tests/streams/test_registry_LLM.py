"""Tests for query registration, channel lookup and teardown."""

# pyright: reportPrivateUsage=false

from __future__ import annotations

from typing import Any

import pytest

from fake_firestore.errors import (
    ChannelClosedError,
    ChannelTypeMismatchError,
    MalformedQueryError,
    QueryNotRegisteredError,
)
from fake_firestore.model.QuerySnapshot import QuerySnapshot
from fake_firestore.streams.QuerySnapshotStreamManager import QuerySnapshotStreamManager
from fake_firestore.streams.config import StreamManagerConfig

from fake_store import FakeQuery, FakeStore


class User:
    """Stand-in for a converted document type."""


@pytest.fixture
def manager() -> QuerySnapshotStreamManager:
    return QuerySnapshotStreamManager()


@pytest.fixture
def store(manager: QuerySnapshotStreamManager) -> FakeStore:
    return FakeStore(manager)


class TestRegister:
    """Tests for register()."""

    def test_register_twice_keeps_one_channel(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")

        first = manager.register(users)
        second = manager.register(users)

        assert first is second
        assert manager.registered_queries(store) == [users]

    def test_register_does_not_emit(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        received: list[QuerySnapshot[Any]] = []

        channel = manager.register(store.collection("users"))
        channel.subscribe(received.append)

        assert received == []
        assert channel.latest is None

    def test_derived_queries_group_under_root_path(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        adults = users.where(lambda d: d["age"] >= 18)
        posts = store.collection("users/alice/posts")

        manager.register(users)
        manager.register(adults)
        manager.register(posts)

        assert manager.registered_queries(store, "users") == [users, adults]
        assert manager.registered_queries(store, "users/alice/posts") == [posts]
        assert len(manager.registered_queries(store)) == 3

    def test_same_path_on_separate_stores_is_isolated(
        self, manager: QuerySnapshotStreamManager
    ) -> None:
        store_1 = FakeStore(manager)
        store_2 = FakeStore(manager)

        manager.register(store_1.collection("users"))

        assert manager.registered_queries(store_2) == []

    def test_reregister_with_other_type_keeps_original_channel(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")

        channel = manager.register(users, item_type=dict)
        again = manager.register(users, item_type=User)

        assert again is channel
        assert channel.item_type is dict

    def test_malformed_query_raises(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        orphan = FakeQuery(None, lambda docs: docs, firestore=store)

        with pytest.raises(MalformedQueryError):
            manager.register(orphan)


class TestGetChannel:
    """Tests for get_channel()."""

    def test_returns_registered_channel(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        channel = manager.register(users, item_type=User)

        assert manager.get_channel(users) is channel
        assert manager.get_channel(users, User) is channel

    def test_unregistered_query_raises(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        with pytest.raises(QueryNotRegisteredError):
            manager.get_channel(store.collection("users"))

    def test_other_query_on_registered_path_raises(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        manager.register(users)

        with pytest.raises(LookupError):
            manager.get_channel(users.limit(1))

    def test_type_mismatch_raises(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        manager.register(users, item_type=dict)

        with pytest.raises(ChannelTypeMismatchError, match="carries dict"):
            manager.get_channel(users, User)


class TestUnregister:
    """Tests for unregister()."""

    @pytest.mark.asyncio
    async def test_unregister_closes_and_forgets(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        completed: list[bool] = []
        channel = manager.register(users)
        channel.subscribe(lambda _: None, on_completed=lambda: completed.append(True))

        await manager.unregister(users)

        assert channel.closed
        assert completed == [True]
        assert not manager.is_registered(users)

        fresh = manager.register(users)
        assert fresh is not channel
        assert not fresh.closed

    @pytest.mark.asyncio
    async def test_no_emission_after_unregister(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        received: list[QuerySnapshot[Any]] = []
        manager.register(users).subscribe(received.append)

        await store.set("users", "alice", {"age": 30})
        await manager.unregister(users)
        await store.set("users", "bob", {"age": 40})

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unregister_drops_cached_snapshot(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        manager.register(users)
        await store.set("users", "alice", {"age": 30})
        assert manager.cached_snapshot(users) is not None

        await manager.unregister(users)

        assert manager.cached_snapshot(users) is None

    @pytest.mark.asyncio
    async def test_unregister_unknown_query_is_noop(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")

        await manager.unregister(users)  # store never seen

        manager.register(users)
        await manager.unregister(users.limit(2))  # path known, query not

        assert manager.is_registered(users)


    @pytest.mark.asyncio
    async def test_last_unregister_releases_store_state(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        posts = store.collection("posts")
        manager.register(users)
        manager.register(posts)
        await store.set("users", "alice", {"age": 30})
        assert store in manager._locks

        await manager.unregister(users)

        assert manager.registered_queries(store) == [posts]
        assert "users" not in manager._channels[store]
        assert store in manager._locks

        await manager.unregister(posts)

        assert store not in manager._channels
        assert store not in manager._locks

    def test_store_lock_is_created_once(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        assert manager._lock_for(store) is manager._lock_for(store)


class TestClear:
    """Tests for clear()."""

    @pytest.mark.asyncio
    async def test_clear_closes_everything(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        posts = store.collection("users/alice/posts")
        other_store = FakeStore(manager)
        other = other_store.collection("users")
        channels = [manager.register(q) for q in (users, posts, other)]
        await store.set("users", "alice", {"age": 30})

        await manager.clear()

        assert all(channel.closed for channel in channels)
        assert manager.registered_queries(store) == []
        assert manager.registered_queries(other_store) == []
        assert manager.cached_snapshot(users) is None
        with pytest.raises(QueryNotRegisteredError):
            manager.get_channel(users)

    @pytest.mark.asyncio
    async def test_register_after_clear_starts_fresh(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        old = manager.register(users)

        await manager.clear()
        new = manager.register(users)

        assert new is not old
        assert manager.get_channel(users) is new

    @pytest.mark.asyncio
    async def test_clear_on_empty_manager(self, manager: QuerySnapshotStreamManager) -> None:
        await manager.clear()

        assert manager._channels == {}


class TestChannel:
    """Tests for SnapshotChannel delivery and closing."""

    def test_late_subscriber_receives_latest(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        channel = manager.register(store.collection("users"))
        first = QuerySnapshot.of([])
        second = QuerySnapshot.of([], from_cache=True)
        channel.emit(first)
        channel.emit(second)

        received: list[QuerySnapshot[Any]] = []
        channel.subscribe(received.append)

        assert received == [second]
        assert received[0] is second
        assert channel.latest is second

    def test_replay_buffer_size_is_configurable(self, store: FakeStore) -> None:
        manager = QuerySnapshotStreamManager(StreamManagerConfig(replay_buffer_size=2))
        channel = manager.register(store.collection("users"))
        snapshots = [QuerySnapshot.of([], from_cache=flag) for flag in (True, False, True)]
        for snapshot in snapshots:
            channel.emit(snapshot)

        received: list[QuerySnapshot[Any]] = []
        channel.subscribe(received.append)

        assert len(received) == 2
        assert received[0] is snapshots[1]
        assert received[1] is snapshots[2]

    def test_all_subscribers_see_emissions_in_order(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        channel = manager.register(store.collection("users"))
        calls_1: list[QuerySnapshot[Any]] = []
        calls_2: list[QuerySnapshot[Any]] = []
        channel.subscribe(calls_1.append)
        channel.subscribe(calls_2.append)
        snapshots = [QuerySnapshot.of([]) for _ in range(3)]

        for snapshot in snapshots:
            channel.emit(snapshot)

        assert [id(s) for s in calls_1] == [id(s) for s in snapshots]
        assert [id(s) for s in calls_2] == [id(s) for s in snapshots]

    def test_disposed_subscriber_stops_receiving(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        channel = manager.register(store.collection("users"))
        received: list[QuerySnapshot[Any]] = []
        subscription = channel.subscribe(received.append)

        channel.emit(QuerySnapshot.of([]))
        subscription.dispose()
        channel.emit(QuerySnapshot.of([]))

        assert len(received) == 1

    def test_observable_view_receives_emissions(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        channel = manager.register(store.collection("users"))
        received: list[QuerySnapshot[Any]] = []
        channel.as_observable().subscribe(on_next=received.append)

        channel.emit(QuerySnapshot.of([]))

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_closed_channel_rejects_emit_and_subscribe(
        self, manager: QuerySnapshotStreamManager, store: FakeStore
    ) -> None:
        users = store.collection("users")
        channel = manager.register(users)
        await manager.unregister(users)

        with pytest.raises(ChannelClosedError):
            channel.emit(QuerySnapshot.of([]))
        with pytest.raises(ChannelClosedError):
            channel.subscribe(lambda _: None)

        await channel.close()  # idempotent
        assert channel.closed
