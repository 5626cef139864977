"""QuerySnapshotStreamManager - live query subscriptions for the fake Firestore.

The manager owns one SnapshotChannel per registered query, grouped by store
instance and by the root collection path the query is built on. Whenever the
store writes a document it calls `fire_update`, which re-runs every query
registered on that collection, diffs the new result against the last one seen
for the query, and pushes a snapshot carrying the change. The update then walks
up the path so queries on ancestor collections are notified too.

Usage:
    manager = QuerySnapshotStreamManager()
    channel = manager.register(query)
    channel.subscribe(lambda snapshot: print(snapshot.document_changes))

    # called by the store after each write
    await manager.fire_update(firestore, "users/alice/posts", "post1")

    await manager.unregister(query)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Hashable, Sequence
from typing import Any

from fake_firestore.errors import ChannelTypeMismatchError, QueryNotRegisteredError
from fake_firestore.model.Query import Query, QueryDocument, QueryResult
from fake_firestore.model.QuerySnapshot import QuerySnapshot
from fake_firestore.streams.SnapshotCache import SnapshotCache
from fake_firestore.streams.SnapshotChannel import SnapshotChannel
from fake_firestore.streams.change_detection import detect_change
from fake_firestore.streams.config import StreamManagerConfig
from fake_firestore.streams.paths import resolve_root_collection_path, split_parent
from fake_firestore.util.snapshot import snapshot

logger = logging.getLogger(__name__)

# collection path -> query -> channel
type PathChannels = dict[str, dict[Query, SnapshotChannel]]


def _result_docs(result: QueryResult) -> Sequence[QueryDocument]:
    """Accept either a plain document list or a snapshot-like object with `docs`."""
    docs = getattr(result, "docs", result)
    return list(docs)


class QuerySnapshotStreamManager:
    """Registry of live query channels plus the update dispatcher feeding them.

    One manager belongs to one emulator and is passed to whatever needs it;
    separate managers share nothing, so isolated emulators can run side by side.
    """

    _config: StreamManagerConfig
    _channels: dict[Hashable, PathChannels]
    _cache: SnapshotCache
    _locks: dict[Hashable, asyncio.Lock]

    def __init__(self, config: StreamManagerConfig | None = None) -> None:
        self._config = config or StreamManagerConfig()
        self._channels = {}
        self._cache = SnapshotCache()
        self._locks = {}

    @property
    def config(self) -> StreamManagerConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Registry
    # -------------------------------------------------------------------------

    def register(self, query: Query, item_type: type = dict) -> SnapshotChannel:
        """Create the channel for a query, or return the existing one.

        No snapshot is emitted here; the first one arrives with the first
        relevant `fire_update`.

        Args:
            query: Collection reference or derived query to observe
            item_type: Type tag of the document data the channel carries

        Returns:
            The query's channel

        Raises:
            MalformedQueryError: If the query chain doesn't reach a collection reference
        """
        path = resolve_root_collection_path(query)
        path_channels = self._channels.setdefault(query.firestore, {}).setdefault(path, {})
        channel = path_channels.get(query)
        if channel is None:
            channel = SnapshotChannel(item_type, self._config.replay_buffer_size)
            path_channels[query] = channel
            logger.debug("registered %r on %s", query, path)
        elif channel.item_type is not item_type:
            logger.warning(
                "%r is already registered with item type %s, ignoring %s",
                query,
                channel.item_type.__name__,
                item_type.__name__,
            )
        return channel

    async def unregister(self, query: Query) -> None:
        """Remove a query's channel and cached snapshot, then close the channel.

        Returns once the channel is closed, so no further snapshot can reach
        its subscribers. Unknown queries are ignored.
        """
        path = resolve_root_collection_path(query)
        path_channels = self._channels.get(query.firestore, {}).get(path)
        if path_channels is None:
            return
        channel = path_channels.pop(query, None)
        self._cache.discard(query)
        if channel is None:
            return
        self._prune(query.firestore, path)
        logger.debug("unregistered %r from %s", query, path)
        await channel.close()

    def get_channel(self, query: Query, item_type: type | None = None) -> SnapshotChannel:
        """Look up the channel of a registered query.

        Args:
            query: A query previously passed to `register`
            item_type: Expected type tag, or None to accept any

        Raises:
            QueryNotRegisteredError: If the query isn't registered
            ChannelTypeMismatchError: If the channel carries a different item type
        """
        path = resolve_root_collection_path(query)
        channel = self._lookup(query.firestore, path, query)
        if channel is None:
            raise QueryNotRegisteredError(
                f"{query!r} is not registered on {path}; call register() first"
            )
        if item_type is not None and channel.item_type is not item_type:
            raise ChannelTypeMismatchError(
                f"channel for {query!r} carries {channel.item_type.__name__}, "
                f"not {item_type.__name__}"
            )
        return channel

    def is_registered(self, query: Query) -> bool:
        path = resolve_root_collection_path(query)
        return self._lookup(query.firestore, path, query) is not None

    def registered_queries(self, firestore: Hashable, path: str | None = None) -> list[Query]:
        """Queries registered on a store, optionally only those rooted at `path`."""
        store_channels = self._channels.get(firestore, {})
        if path is not None:
            return list(store_channels.get(path, {}))
        return [query for path_channels in store_channels.values() for query in path_channels]

    def cached_snapshot(self, query: Query) -> QuerySnapshot[Any] | None:
        """The result last observed for a query, used as the base of its next diff."""
        entry = self._cache.get(query)
        return entry.snapshot if entry is not None else None

    async def clear(self) -> None:
        """Drop every registration and close every channel.

        The registry is emptied before any channel is closed, so registrations
        made while closing start from a clean state. Returns after all channels
        are closed.
        """
        channels = [
            channel
            for store_channels in self._channels.values()
            for path_channels in store_channels.values()
            for channel in path_channels.values()
        ]
        self._channels.clear()
        self._cache.clear()
        self._locks.clear()
        logger.debug("clearing %d snapshot channels", len(channels))
        await asyncio.gather(*(channel.close() for channel in channels))

    def _lookup(self, firestore: Hashable, path: str, query: Query) -> SnapshotChannel | None:
        return self._channels.get(firestore, {}).get(path, {}).get(query)

    def _lock_for(self, firestore: Hashable) -> asyncio.Lock:
        lock = self._locks.get(firestore)
        if lock is None:
            lock = self._locks[firestore] = asyncio.Lock()
        return lock

    def _prune(self, firestore: Hashable, path: str) -> None:
        """Drop empty registry levels, and the store's lock once it has no registrations."""
        store_channels = self._channels.get(firestore)
        if store_channels is None:
            return
        if path in store_channels and not store_channels[path]:
            del store_channels[path]
        if not store_channels:
            del self._channels[firestore]
            self._locks.pop(firestore, None)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def fire_update(
        self,
        firestore: Hashable,
        path: str,
        document_id: str | None = None,
        item_type: type | None = None,
    ) -> None:
        """Notify queries affected by a write to a document.

        Either pass the collection path plus the document id, or the full
        document path with no id. Queries registered on `path` are re-run and
        receive a snapshot if the document was added, modified or removed from
        their result. Then the walk moves one level up, taking the last segment
        of the current path as the changed id, until the top-level collection
        has been handled. Writing ``a/docA/b/docB`` therefore reaches queries on
        ``a/docA/b`` (id ``docB``) and on ``a`` (id ``docA``).

        Args:
            firestore: Store instance the write happened on
            path: Collection path of the document, or the document path itself
            document_id: Id of the written document within `path`
            item_type: Only update channels carrying this type tag. None updates all.
        """
        if firestore not in self._channels:
            # Nobody is subscribed on this store.
            return

        current_path, current_id = path, document_id
        while True:
            if current_id is not None:
                await self._dispatch(firestore, current_path, current_id, item_type)
            parent = split_parent(current_path)
            if parent is None:
                break
            current_path, current_id = parent

    async def _dispatch(
        self,
        firestore: Hashable,
        path: str,
        document_id: str,
        item_type: type | None,
    ) -> None:
        path_channels = self._channels.get(firestore, {}).get(path)
        if not path_channels:
            return
        for query, channel in list(path_channels.items()):
            if item_type is not None and channel.item_type is not item_type:
                logger.debug(
                    "skipping %r: carries %s, update is for %s",
                    query,
                    channel.item_type.__name__,
                    item_type.__name__,
                )
                continue
            await self._update_query(firestore, path, query, channel, document_id)

    async def _update_query(
        self,
        firestore: Hashable,
        path: str,
        query: Query,
        channel: SnapshotChannel,
        document_id: str,
    ) -> None:
        """Re-run one query, advance its cache and push the change, if any.

        Holds the store lock so two concurrent writes can't both diff against
        the same cached result. Only `channel` is updated: if the query was
        unregistered, or registered again with a new channel, in the meantime,
        nothing is cached or pushed.
        """
        item_type = channel.item_type
        async with self._lock_for(firestore):
            if self._lookup(firestore, path, query) is not channel:
                return
            entry = self._cache.get(query)
            if entry is not None and entry.item_type is not item_type:
                message = (
                    f"cached snapshot for {query!r} carries {entry.item_type.__name__}, "
                    f"channel carries {item_type.__name__}"
                )
                if self._config.strict_type_checks:
                    raise ChannelTypeMismatchError(message)
                logger.error("%s; skipping update", message)
                return
            before = entry.snapshot.docs if entry is not None else ()

            try:
                after = _result_docs(await query.get())
            except Exception:
                logger.exception("re-running %r on %s failed; skipping update", query, path)
                return

            if self._lookup(firestore, path, query) is not channel:
                # Unregistered, re-registered or cleared while the query was running.
                return

            cached_docs = snapshot(after) if self._config.copy_snapshots else tuple(after)
            self._cache.put(query, item_type, QuerySnapshot(cached_docs))

            change = detect_change(document_id, before, after)
            if change is None:
                logger.debug("%r: no visible change for %s/%s", query, path, document_id)
                return

            logger.debug(
                "%r: %s %s/%s (%d -> %d)",
                query,
                change.type.value,
                path,
                document_id,
                change.old_index,
                change.new_index,
            )
            channel.emit(QuerySnapshot.of(after, from_cache=False, document_changes=[change]))
