"""Server-Sent-Events stream of change notifications.

``GET /realtime`` subscribes to the change feed for the current user and
forwards each notification as::

    event: change
    data: {"table": "categories"}

A comment line (``: keep-alive``) is sent when nothing happened for
``heartbeat`` seconds. Every subscription is released when the client
disconnects.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from studydesk.constants import Collection
from studydesk.services.auth_service import get_approved_user
from studydesk.sync.realtime import ChangeEvent, ChangeFeed, get_change_feed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

HEARTBEAT_SECONDS = 15.0


def _format_event(event: ChangeEvent) -> str:
    return f"event: change\ndata: {json.dumps({'table': event.table})}\n\n"


async def stream_changes(
    feed: ChangeFeed,
    user_id: str,
    tables: Iterable[str],
    *,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames for changes to ``tables`` owned by ``user_id``."""
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
    subscriptions = [feed.subscribe(table, user_id, queue.put_nowait) for table in tables]
    try:
        yield "retry: 3000\n\n"
        while not await is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield _format_event(event)
    finally:
        for subscription in subscriptions:
            try:
                subscription.unsubscribe()
            except Exception:
                logger.exception("Failed to release %r", subscription)
        logger.debug("Realtime stream closed for user %s", user_id)


def _parse_tables(raw: str | None) -> list[str]:
    if not raw:
        return [c.value for c in Collection]
    known = {c.value for c in Collection}
    return [t for t in (part.strip() for part in raw.split(",")) if t in known]


@router.get("/realtime")
async def realtime(
    request: Request,
    tables: str | None = Query(None, description="Comma separated table names; all by default"),  # noqa: B008
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    feed: ChangeFeed = Depends(get_change_feed),  # noqa: B008
) -> StreamingResponse:
    """SSE change stream for the current user.

    SSE format:
        - Change:     ``event: change\\ndata: {"table": "..."}\\n\\n``
        - Keep-alive: ``: keep-alive\\n\\n``
    """
    return StreamingResponse(
        stream_changes(
            feed,
            current_user["user_id"],
            _parse_tables(tables),
            is_disconnected=request.is_disconnected,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
