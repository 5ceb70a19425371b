"""Category create/rename and ordering for the sidebar."""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.constants import Collection
from studydesk.exceptions import UpstreamFailure, ValidationFailure
from studydesk.models import Category
from studydesk.services import ordering
from studydesk.services.collections import list_categories
from studydesk.services.name_resolver import normalize_name
from studydesk.services.ownership import get_owned
from studydesk.sync.realtime import publish_change

logger = logging.getLogger(__name__)


async def create_category(db: AsyncSession, user_id: str, raw_name: str | None) -> Category:
    """Append a new category after the current last one."""
    name = normalize_name(raw_name)
    if name is None:
        raise ValidationFailure(message_key="category.name_required")

    siblings = await list_categories(db, user_id)
    category = Category(user_id=user_id, name=name, sort_order=ordering.next_rank(siblings))
    try:
        db.add(category)
        await db.flush()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc

    publish_change(Collection.CATEGORIES, user_id)
    logger.info("Created category %r (%s) for user %s", name, category.id, user_id)
    return category


async def rename_category(db: AsyncSession, user_id: str, category_id: str, raw_name: str | None) -> Category:
    name = normalize_name(raw_name)
    if name is None:
        raise ValidationFailure(message_key="category.name_required")
    category = await get_owned(db, Category, category_id, user_id, "category.not_found")

    try:
        await db.execute(
            update(Category)
            .where(Category.id == category_id, Category.user_id == user_id)
            .values(name=name)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc

    category.name = name
    publish_change(Collection.CATEGORIES, user_id)
    return category


async def move_category(db: AsyncSession, user_id: str, category_id: str, step: int) -> list[Category]:
    """Move one category up (``step=-1``) or down (``step=1``).

    Returns the re-fetched sibling list.
    """
    await get_owned(db, Category, category_id, user_id, "category.not_found")
    siblings = await list_categories(db, user_id)
    index = ordering.index_of(siblings, category_id)
    if step < 0:
        await ordering.move_up(db, Category, siblings, index, user_id)
    else:
        await ordering.move_down(db, Category, siblings, index, user_id)
    return await list_categories(db, user_id)


async def reorder_categories(
    db: AsyncSession, user_id: str, from_index: int, to_index: int
) -> list[Category]:
    siblings = await list_categories(db, user_id)
    await ordering.reorder(db, Category, siblings, from_index, to_index, user_id)
    return await list_categories(db, user_id)
