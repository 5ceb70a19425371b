"""Sibling ordering for categories, link groups and link subgroups.

Siblings carry an integer ``sort_order``. The canonical display order is
``(sort_order, created_at)`` ascending; ranks are kept dense by the
drag-and-drop path but nothing in the schema enforces uniqueness.

Every rank write is its own committed statement filtered by ``id`` and
``user_id``. Multi-write operations are therefore *not* atomic:

- ``move_up``/``move_down`` swap two ranks with two writes. When the second
  write fails the first one stays applied, so two siblings can end up
  sharing a rank until the next reorder.
- ``reorder`` rewrites every sibling's rank to its new position. Writes
  that succeeded before a failure are kept.

In both cases an :class:`~studydesk.exceptions.OrderingError` is raised
after all writes were attempted, listing the ids that were applied. Callers
re-fetch the sibling list to observe the real order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.exceptions import OrderingError
from studydesk.models import Category, LinkGroup, LinkSubgroup
from studydesk.sync.realtime import publish_change

logger = logging.getLogger(__name__)

RankedModel = type[Category] | type[LinkGroup] | type[LinkSubgroup]

_EPOCH = datetime(1970, 1, 1)


def _naive_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def sibling_sort_key(item) -> tuple[int, datetime]:
    return (item.sort_order if item.sort_order is not None else 0, _naive_utc(item.created_at))


def canonical_sort(items: Sequence) -> list:
    """Return siblings in display order (stable for equal keys)."""
    return sorted(items, key=sibling_sort_key)


def next_rank(items: Sequence) -> int:
    """Rank for a sibling appended after ``items``: ``max + 1``, or 0 when empty."""
    ranks = [i.sort_order for i in items if i.sort_order is not None]
    return max(ranks) + 1 if ranks else 0


async def write_rank(
    db: AsyncSession, model: RankedModel, item_id: str, user_id: str, rank: int
) -> None:
    """Persist one rank as an independently committed write."""
    try:
        await db.execute(
            update(model)
            .where(model.id == item_id, model.user_id == user_id)
            .values(sort_order=rank)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise


async def _apply_ranks(
    db: AsyncSession,
    model: RankedModel,
    assignments: list[tuple[str, int]],
    user_id: str,
) -> None:
    applied: list[str] = []
    failures: list[tuple[str, SQLAlchemyError]] = []
    for item_id, rank in assignments:
        try:
            await write_rank(db, model, item_id, user_id, rank)
        except SQLAlchemyError as exc:
            failures.append((item_id, exc))
            continue
        applied.append(item_id)

    if applied:
        publish_change(model.__tablename__, user_id)

    if failures:
        failed_id, first = failures[0]
        logger.warning(
            "Rank update on %s left partially applied: %d ok, %d failed (first failure: %s)",
            model.__tablename__,
            len(applied),
            len(failures),
            failed_id,
        )
        raise OrderingError(str(first) or None, applied=applied) from first


async def _swap(
    db: AsyncSession,
    model: RankedModel,
    siblings: Sequence,
    index: int,
    other: int,
    user_id: str,
) -> bool:
    current, neighbour = siblings[index], siblings[other]
    current_rank, neighbour_rank = current.sort_order, neighbour.sort_order
    await _apply_ranks(
        db,
        model,
        [(current.id, neighbour_rank), (neighbour.id, current_rank)],
        user_id,
    )
    logger.info("Swapped %s ranks: %s <-> %s", model.__tablename__, current.id, neighbour.id)
    return True


async def move_up(
    db: AsyncSession, model: RankedModel, siblings: Sequence, index: int, user_id: str
) -> bool:
    """Swap the sibling at ``index`` with the one above it.

    Returns False without writing when ``index`` is already first (or out
    of range).
    """
    if index <= 0 or index >= len(siblings):
        return False
    return await _swap(db, model, siblings, index, index - 1, user_id)


async def move_down(
    db: AsyncSession, model: RankedModel, siblings: Sequence, index: int, user_id: str
) -> bool:
    """Swap the sibling at ``index`` with the one below it."""
    if index < 0 or index >= len(siblings) - 1:
        return False
    return await _swap(db, model, siblings, index, index + 1, user_id)


def moved(siblings: Sequence, from_index: int, to_index: int) -> list:
    """Local copy of ``siblings`` with one element moved (no I/O)."""
    reordered = list(siblings)
    item = reordered.pop(from_index)
    reordered.insert(to_index, item)
    return reordered


async def reorder(
    db: AsyncSession,
    model: RankedModel,
    siblings: Sequence,
    from_index: int,
    to_index: int,
    user_id: str,
) -> list:
    """Drag-and-drop: move one sibling and rewrite every rank to 0..n-1.

    Returns the siblings in their new order. Out-of-range indexes and
    ``from_index == to_index`` return the list unchanged without writing.
    """
    count = len(siblings)
    if from_index == to_index or not (0 <= from_index < count) or not (0 <= to_index < count):
        return list(siblings)

    reordered = moved(siblings, from_index, to_index)
    await _apply_ranks(
        db,
        model,
        [(item.id, position) for position, item in enumerate(reordered)],
        user_id,
    )
    logger.info(
        "Reordered %d %s (moved index %d -> %d)",
        count,
        model.__tablename__,
        from_index,
        to_index,
    )
    return reordered


def index_of(siblings: Sequence, item_id: str) -> int:
    for position, item in enumerate(siblings):
        if item.id == item_id:
            return position
    return -1
