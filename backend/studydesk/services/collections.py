"""Canonical reads of the per-user collections.

Every listing goes through here so that siblings are always ordered the
same way: ``sort_order`` ascending, ties broken by ``created_at`` ascending.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.constants import Collection
from studydesk.models import (
    Category,
    LinkGroup,
    LinkSubgroup,
    Note,
    NoteCategory,
    Project,
    StudyLink,
)

MODEL_BY_COLLECTION = {
    Collection.LINKS: StudyLink,
    Collection.CATEGORIES: Category,
    Collection.NOTES: Note,
    Collection.LINK_GROUPS: LinkGroup,
    Collection.LINK_SUBGROUPS: LinkSubgroup,
}


def _ordering(collection: Collection) -> tuple:
    model = MODEL_BY_COLLECTION[collection]
    if collection == Collection.LINKS:
        return (model.created_at.asc(),)
    if collection == Collection.NOTES:
        return (model.created_at.desc(),)
    return (model.sort_order.asc(), model.created_at.asc())


async def fetch_collection(db: AsyncSession, collection: Collection, user_id: str) -> list:
    """Return every row of ``collection`` owned by ``user_id`` in canonical order."""
    model = MODEL_BY_COLLECTION[collection]
    result = await db.execute(
        select(model)
        .where(model.user_id == user_id)
        .order_by(*_ordering(collection))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_categories(db: AsyncSession, user_id: str) -> list[Category]:
    return await fetch_collection(db, Collection.CATEGORIES, user_id)


async def list_groups(db: AsyncSession, user_id: str) -> list[LinkGroup]:
    return await fetch_collection(db, Collection.LINK_GROUPS, user_id)


async def list_subgroups(
    db: AsyncSession, user_id: str, group_id: str | None = None
) -> list[LinkSubgroup]:
    """All subgroups of a user, or only those of ``group_id``."""
    stmt = select(LinkSubgroup).where(LinkSubgroup.user_id == user_id)
    if group_id is not None:
        stmt = stmt.where(LinkSubgroup.group_id == group_id)
    result = await db.execute(
        stmt.order_by(LinkSubgroup.sort_order.asc(), LinkSubgroup.created_at.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_relation_rows(db: AsyncSession, user_id: str) -> list:
    """``(note_id, category_id)`` rows for the notes owned by ``user_id``.

    Rows come back in insertion order so the first row of a note is the one
    that was written first.
    """
    result = await db.execute(
        select(NoteCategory.note_id, NoteCategory.category_id)
        .join(Note, Note.id == NoteCategory.note_id)
        .where(Note.user_id == user_id)
        .order_by(NoteCategory.id.asc())
    )
    return list(result.all())


async def count_owned(db: AsyncSession, model, user_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(model.user_id == user_id))
    return result.scalar() or 0


async def count_links(db: AsyncSession, user_id: str) -> int:
    return await count_owned(db, StudyLink, user_id)


async def count_projects(db: AsyncSession, user_id: str) -> int:
    return await count_owned(db, Project, user_id)
