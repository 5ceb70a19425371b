"""Tests for the sync reconciler (change feed + focus driven refreshes)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import make_category, make_group, make_link


def _fetcher(responses: dict):
    async def fetch(collection, user_id):
        value = responses.get(collection, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    return AsyncMock(side_effect=fetch)


class TestFocusSignal:
    def test_fire_and_remove(self):
        from studydesk.sync.reconciler import FocusSignal

        focus = FocusSignal()
        listener = MagicMock()
        focus.add_listener(listener)
        focus.fire()
        focus.remove_listener(listener)
        focus.remove_listener(listener)
        focus.fire()

        listener.assert_called_once_with()
        assert focus.listener_count == 0


class TestMount:
    @pytest.mark.asyncio
    async def test_mount_subscribes_once_per_collection(self):
        from studydesk.sync.realtime import ChangeFeed
        from studydesk.sync.reconciler import FocusSignal, SyncReconciler

        feed, focus = ChangeFeed(), FocusSignal()
        reconciler = SyncReconciler("user-1", _fetcher({}), feed=feed, focus=focus)

        reconciler.mount()
        reconciler.mount()

        assert feed.subscriber_count(user_id="user-1") == 5
        assert focus.listener_count == 1

        reconciler.unmount()
        assert feed.subscriber_count() == 0
        assert focus.listener_count == 0
        assert reconciler.mounted is False

    @pytest.mark.asyncio
    async def test_unmount_continues_past_failing_teardown(self):
        from studydesk.sync.realtime import ChangeFeed
        from studydesk.sync.reconciler import SyncReconciler

        feed = ChangeFeed()
        reconciler = SyncReconciler("user-1", _fetcher({}), feed=feed)
        reconciler.mount()
        reconciler._subscriptions[0].unsubscribe = MagicMock(side_effect=RuntimeError("channel closed"))

        reconciler.unmount()

        assert feed.subscriber_count() == 1
        assert reconciler._subscriptions == []


class TestRefresh:
    @pytest.mark.asyncio
    async def test_change_event_replaces_collection(self):
        from studydesk.constants import Collection
        from studydesk.sync.realtime import ChangeFeed
        from studydesk.sync.reconciler import SyncReconciler

        feed = ChangeFeed()
        responses = {Collection.CATEGORIES: ["fresh-a", "fresh-b"]}
        fetch = _fetcher(responses)
        changes = []
        reconciler = SyncReconciler(
            "user-1",
            fetch,
            feed=feed,
            initial={Collection.CATEGORIES: ["stale"], Collection.NOTES: ["n1"]},
            on_change=lambda collection, rows: changes.append((collection, rows)),
        )
        reconciler.mount()

        feed.publish(Collection.CATEGORIES, "user-1")
        feed.publish(Collection.CATEGORIES, "user-2")
        await reconciler.drain()

        fetch.assert_awaited_once_with(Collection.CATEGORIES, "user-1")
        assert reconciler.state[Collection.CATEGORIES] == ["fresh-a", "fresh-b"]
        assert reconciler.state[Collection.NOTES] == ["n1"]
        assert changes == [(Collection.CATEGORIES, ["fresh-a", "fresh-b"])]
        reconciler.unmount()

    @pytest.mark.asyncio
    async def test_focus_refreshes_everything(self):
        from studydesk.sync.realtime import ChangeFeed
        from studydesk.sync.reconciler import WATCHED_COLLECTIONS, FocusSignal, SyncReconciler

        focus = FocusSignal()
        fetch = _fetcher({})
        reconciler = SyncReconciler("user-1", fetch, feed=ChangeFeed(), focus=focus)
        reconciler.mount()

        focus.fire()
        await reconciler.drain()

        assert {call.args[0] for call in fetch.await_args_list} == set(WATCHED_COLLECTIONS)
        reconciler.unmount()

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_rows(self):
        from studydesk.constants import Collection
        from studydesk.sync.reconciler import SyncReconciler

        reconciler = SyncReconciler(
            "user-1",
            _fetcher({Collection.LINKS: RuntimeError("network down")}),
            initial={Collection.LINKS: ["kept"]},
        )

        assert await reconciler.refresh(Collection.LINKS) is False
        assert reconciler.state[Collection.LINKS] == ["kept"]

    @pytest.mark.asyncio
    async def test_unmount_cancels_pending_refreshes(self):
        from studydesk.constants import Collection
        from studydesk.sync.realtime import ChangeFeed
        from studydesk.sync.reconciler import SyncReconciler

        feed = ChangeFeed()
        reconciler = SyncReconciler("user-1", _fetcher({}), feed=feed)
        reconciler.mount()
        feed.publish(Collection.NOTES, "user-1")
        assert reconciler.pending_count == 1

        reconciler.unmount()
        assert reconciler.pending_count == 0


class TestDatabaseFetcher:
    @pytest.mark.asyncio
    async def test_end_to_end_with_service_writes(self, test_db, session_factory):
        """A category created through the service shows up after the feed fires."""
        from studydesk.constants import Collection
        from studydesk.services.categories import create_category
        from studydesk.sync.realtime import change_feed
        from studydesk.sync.reconciler import SyncReconciler, database_fetcher

        await make_category(test_db, name="Existing")
        group = await make_group(test_db, name="Lectures")
        await make_link(test_db, group_id=group.id)

        reconciler = SyncReconciler(
            "user-1",
            database_fetcher(session_factory),
            feed=change_feed,
            collections=[Collection.CATEGORIES, Collection.LINKS, Collection.LINK_GROUPS],
        )
        reconciler.mount()
        try:
            await reconciler.refresh_all()
            assert [c.name for c in reconciler.state[Collection.CATEGORIES]] == ["Existing"]
            assert [node.key for node in reconciler.link_tree()] == [group.id]

            await create_category(test_db, "user-1", "New one")
            await reconciler.drain()

            assert [c.name for c in reconciler.state[Collection.CATEGORIES]] == ["Existing", "New one"]
        finally:
            reconciler.unmount()
