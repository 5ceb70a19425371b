"""Keeps local copies of a user's collections in step with the store.

A reconciler holds one list per watched collection. It re-pulls a whole
collection (in canonical order) whenever:

- the change feed reports a change to that table for the user, or
- the focus signal fires (every collection is re-pulled).

Refreshes replace the local list wholesale; rows are never patched in
place. A refresh that fails leaves the previous list untouched.

Usage::

    reconciler = SyncReconciler(user_id, database_fetcher(async_session_factory))
    reconciler.mount()
    ...
    await reconciler.drain()
    reconciler.state[Collection.CATEGORIES]
    reconciler.unmount()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studydesk.constants import Collection
from studydesk.services.collections import fetch_collection
from studydesk.services.projection import GroupBucket, group_links
from studydesk.sync.realtime import ChangeEvent, ChangeFeed, Subscription, change_feed

logger = logging.getLogger(__name__)

Fetcher = Callable[[Collection, str], Awaitable[list]]
ChangeListener = Callable[[Collection, list], None]

WATCHED_COLLECTIONS: tuple[Collection, ...] = (
    Collection.LINKS,
    Collection.CATEGORIES,
    Collection.NOTES,
    Collection.LINK_GROUPS,
    Collection.LINK_SUBGROUPS,
)


class FocusSignal:
    """Fires when the user returns to the page."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[], None]] = []

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def fire(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Focus listener failed")


def database_fetcher(session_factory: async_sessionmaker[AsyncSession]) -> Fetcher:
    """Fetcher that opens a short-lived session per refresh."""

    async def _fetch(collection: Collection, user_id: str) -> list:
        async with session_factory() as session:
            return await fetch_collection(session, collection, user_id)

    return _fetch


class SyncReconciler:
    """Local mirror of one user's watched collections.

    Args:
        user_id: Owner whose collections are mirrored.
        fetch: Coroutine returning a whole collection in canonical order.
        feed: Change feed to subscribe to (the process-wide one by default).
        focus: Optional focus signal; firing it refreshes every collection.
        collections: Which collections to watch.
        initial: Pre-loaded lists (e.g. from the page loader).
        on_change: Called with ``(collection, rows)`` after each successful refresh.
    """

    def __init__(
        self,
        user_id: str,
        fetch: Fetcher,
        *,
        feed: ChangeFeed | None = None,
        focus: FocusSignal | None = None,
        collections: Iterable[Collection] = WATCHED_COLLECTIONS,
        initial: dict[Collection, list] | None = None,
        on_change: ChangeListener | None = None,
    ) -> None:
        self.user_id = user_id
        self._fetch = fetch
        self._feed = feed if feed is not None else change_feed
        self._focus = focus
        self.collections = tuple(collections)
        self.state: dict[Collection, list] = {c: list((initial or {}).get(c, [])) for c in self.collections}
        self._on_change = on_change
        self._subscriptions: list[Subscription] = []
        self._pending: set[asyncio.Task] = set()
        self.mounted = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self) -> None:
        """Subscribe to every watched collection and the focus signal (once)."""
        if self.mounted:
            return
        for collection in self.collections:
            self._subscriptions.append(self._feed.subscribe(collection, self.user_id, self._on_event))
        if self._focus is not None:
            self._focus.add_listener(self._on_focus)
        self.mounted = True
        logger.debug("Reconciler mounted for user %s (%d channels)", self.user_id, len(self._subscriptions))

    def unmount(self) -> None:
        """Tear down every channel; a failing teardown does not stop the rest."""
        for subscription in self._subscriptions:
            try:
                subscription.unsubscribe()
            except Exception:
                logger.exception("Failed to unsubscribe %r", subscription)
        self._subscriptions.clear()

        if self._focus is not None:
            try:
                self._focus.remove_listener(self._on_focus)
            except Exception:
                logger.exception("Failed to remove focus listener")

        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self.mounted = False

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _on_event(self, event: ChangeEvent) -> None:
        self.schedule_refresh(Collection(event.table))

    def _on_focus(self) -> None:
        for collection in self.collections:
            self.schedule_refresh(collection)

    def schedule_refresh(self, collection: Collection) -> asyncio.Task:
        """Enqueue a refresh on the running event loop."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.refresh(collection))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def refresh(self, collection: Collection) -> bool:
        """Re-pull one collection and replace the local copy.

        Returns False (keeping the previous rows) when the fetch fails.
        """
        try:
            rows = await self._fetch(collection, self.user_id)
        except Exception:
            logger.exception("Refreshing %s for user %s failed", collection, self.user_id)
            return False

        self.state[collection] = list(rows)
        if self._on_change is not None:
            self._on_change(collection, self.state[collection])
        return True

    async def refresh_all(self) -> dict[Collection, bool]:
        results = await asyncio.gather(*(self.refresh(c) for c in self.collections))
        return dict(zip(self.collections, results, strict=True))

    async def drain(self) -> None:
        """Wait until every scheduled refresh has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def link_tree(self) -> list[GroupBucket]:
        return group_links(
            self.state.get(Collection.LINKS, []),
            self.state.get(Collection.LINK_GROUPS, []),
            self.state.get(Collection.LINK_SUBGROUPS, []),
        )
