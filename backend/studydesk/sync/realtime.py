"""In-process change feed.

Mutating services call :func:`publish_change` after their writes commit.
Subscribers register per ``(table, user_id)`` and receive a bare
:class:`ChangeEvent`; there is no row payload, only "something changed".

Callbacks run synchronously inside ``publish`` and are expected to do
nothing more than enqueue work (schedule a refresh task, put on a queue).
A failing callback is logged and does not affect the other subscribers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    user_id: str


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`.

    ``unsubscribe`` is idempotent; each subscription is torn down on its own.
    """

    def __init__(self, feed: ChangeFeed, table: str, user_id: str, callback: ChangeCallback) -> None:
        self._feed = feed
        self.table = table
        self.user_id = user_id
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self._feed._remove(self)
        self.active = False

    def __repr__(self) -> str:
        return f"Subscription(table={self.table!r}, user_id={self.user_id!r}, active={self.active})"


class ChangeFeed:
    """Publish/subscribe registry of table changes per user."""

    def __init__(self) -> None:
        self._subscribers: dict[tuple[str, str], list[Subscription]] = defaultdict(list)

    def subscribe(self, table: str, user_id: str, callback: ChangeCallback) -> Subscription:
        subscription = Subscription(self, table, user_id, callback)
        self._subscribers[(table, user_id)].append(subscription)
        logger.debug("Subscribed to %s changes for user %s", table, user_id)
        return subscription

    def publish(self, table: str, user_id: str) -> int:
        """Notify every subscriber of ``(table, user_id)``.

        Returns:
            Number of callbacks that ran without raising.
        """
        event = ChangeEvent(table=table, user_id=user_id)
        delivered = 0
        for subscription in list(self._subscribers.get((table, user_id), ())):
            try:
                subscription.callback(event)
            except Exception:
                logger.exception("Change callback failed for %s (user %s)", table, user_id)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, table: str | None = None, user_id: str | None = None) -> int:
        return sum(
            len(subs)
            for (t, u), subs in self._subscribers.items()
            if (table is None or t == table) and (user_id is None or u == user_id)
        )

    def _remove(self, subscription: Subscription) -> None:
        key = (subscription.table, subscription.user_id)
        subs = self._subscribers.get(key)
        if not subs:
            return
        try:
            subs.remove(subscription)
        except ValueError:
            return
        if not subs:
            del self._subscribers[key]


# Module-level singleton -- shared by services, the SSE endpoint and reconcilers.
change_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """FastAPI dependency returning the process-wide change feed."""
    return change_feed


def publish_change(table: str, user_id: str) -> None:
    change_feed.publish(table, user_id)
