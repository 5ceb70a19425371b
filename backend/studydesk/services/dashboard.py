"""Page loaders for the dashboard and the notes list.

Sub-loads run concurrently, each in its own session. A sub-load that fails
degrades to an empty value (and is logged) instead of failing the page.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studydesk.constants import Collection
from studydesk.models import Category, Note
from studydesk.services.collections import (
    count_links,
    count_projects,
    fetch_collection,
    list_relation_rows,
)
from studydesk.services.projection import (
    attach_category_ids,
    filter_notes_by_category,
    notes_count_by_category,
)
from studydesk.utils.datetime_utils import same_day

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


@dataclass
class NotesView:
    notes: list[Note]
    category_ids: dict[str, list[str]]
    counts: dict[str, int] = field(default_factory=dict)


@dataclass
class DashboardData(NotesView):
    categories: list[Category] = field(default_factory=list)
    link_count: int = 0
    project_count: int = 0


async def _in_session(session_factory: SessionFactory, loader: Callable[..., Awaitable[Any]], *args: Any) -> Any:
    async with session_factory() as session:
        return await loader(session, *args)


def _settled(result: Any, default: Any, label: str) -> Any:
    if isinstance(result, BaseException):
        logger.error("Dashboard sub-load %s failed: %s", label, result, exc_info=result)
        return default
    return result


def _filter_notes(
    notes: list[Note], category_ids: dict[str, list[str]], category: str | None, day: date | None
) -> list[Note]:
    notes = filter_notes_by_category(notes, category_ids, category)
    if day is not None:
        notes = [n for n in notes if same_day(n.created_at, day)]
    return notes


async def load_notes(
    session_factory: SessionFactory,
    user_id: str,
    *,
    category: str | None = None,
    day: date | None = None,
) -> NotesView:
    """Notes (newest first) with their effective categories, optionally filtered.

    ``counts`` is always computed over every note so the sidebar does not
    change with the active filter.
    """
    notes_result, rows_result = await asyncio.gather(
        _in_session(session_factory, fetch_collection, Collection.NOTES, user_id),
        _in_session(session_factory, list_relation_rows, user_id),
        return_exceptions=True,
    )
    notes = _settled(notes_result, [], "notes")
    rows = _settled(rows_result, [], "note_categories")

    category_ids = attach_category_ids(notes, rows)
    counts = notes_count_by_category(notes, rows)
    return NotesView(
        notes=_filter_notes(notes, category_ids, category, day),
        category_ids=category_ids,
        counts=counts,
    )


async def load_dashboard(
    session_factory: SessionFactory,
    user_id: str,
    *,
    category: str | None = None,
    day: date | None = None,
) -> DashboardData:
    """Everything the dashboard page renders, loaded concurrently."""
    results = await asyncio.gather(
        _in_session(session_factory, fetch_collection, Collection.NOTES, user_id),
        _in_session(session_factory, fetch_collection, Collection.CATEGORIES, user_id),
        _in_session(session_factory, list_relation_rows, user_id),
        _in_session(session_factory, count_links, user_id),
        _in_session(session_factory, count_projects, user_id),
        return_exceptions=True,
    )
    notes = _settled(results[0], [], "notes")
    categories = _settled(results[1], [], "categories")
    rows = _settled(results[2], [], "note_categories")
    link_count = _settled(results[3], 0, "link_count")
    project_count = _settled(results[4], 0, "project_count")

    category_ids = attach_category_ids(notes, rows)
    return DashboardData(
        notes=_filter_notes(notes, category_ids, category, day),
        category_ids=category_ids,
        counts=notes_count_by_category(notes, rows),
        categories=categories,
        link_count=link_count,
        project_count=project_count,
    )


@dataclass
class LinksPageData:
    links: list
    groups: list
    subgroups: list
    categories: list
    notes: list
    category_ids: dict[str, list[str]]


async def load_links_page(session_factory: SessionFactory, user_id: str) -> LinksPageData:
    """Links page: links, their groups and subgroups, plus notes to attach links to."""
    results = await asyncio.gather(
        _in_session(session_factory, fetch_collection, Collection.LINKS, user_id),
        _in_session(session_factory, fetch_collection, Collection.CATEGORIES, user_id),
        _in_session(session_factory, fetch_collection, Collection.NOTES, user_id),
        _in_session(session_factory, list_relation_rows, user_id),
        _in_session(session_factory, fetch_collection, Collection.LINK_GROUPS, user_id),
        _in_session(session_factory, fetch_collection, Collection.LINK_SUBGROUPS, user_id),
        return_exceptions=True,
    )
    links, categories, notes, rows, groups, subgroups = (
        _settled(result, [], label)
        for result, label in zip(
            results,
            ("study_links", "categories", "notes", "note_categories", "link_groups", "link_subgroups"),
            strict=True,
        )
    )
    return LinksPageData(
        links=links,
        groups=groups,
        subgroups=subgroups,
        categories=categories,
        notes=notes,
        category_ids=attach_category_ids(notes, rows),
    )
