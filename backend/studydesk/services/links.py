"""Study link CRUD plus group/subgroup rename, delete and ordering.

Deleting a group or subgroup never deletes links: their ``group_id`` /
``subgroup_id`` are cleared first and the link rows stay.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.constants import Collection
from studydesk.exceptions import UpstreamFailure, ValidationFailure
from studydesk.models import LinkGroup, LinkSubgroup, StudyLink
from studydesk.services import ordering
from studydesk.services.collections import list_groups, list_subgroups
from studydesk.services.name_resolver import NameResolver, normalize_name
from studydesk.services.ownership import get_owned
from studydesk.sync.realtime import publish_change

logger = logging.getLogger(__name__)


@dataclass
class LinkInput:
    """Link form values; group and subgroup are free-text names."""

    title: str
    url: str
    description: str | None = None
    group_name: str | None = None
    subgroup_name: str | None = None
    note_id: str | None = None


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc


async def _link_values(resolver: NameResolver, data: LinkInput) -> dict:
    title = normalize_name(data.title)
    url = normalize_name(data.url)
    if title is None or url is None:
        raise ValidationFailure(message_key="link.title_url_required")

    group_id, subgroup_id = await resolver.resolve_placement(data.group_name, data.subgroup_name)
    return {
        "title": title,
        "url": url,
        "description": normalize_name(data.description),
        "group_id": group_id,
        "subgroup_id": subgroup_id,
        "note_id": normalize_name(data.note_id),
    }


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


async def create_link(
    db: AsyncSession, user_id: str, data: LinkInput, resolver: NameResolver | None = None
) -> StudyLink:
    """Insert a link, resolving (and if needed creating) its group and subgroup."""
    resolver = resolver or NameResolver(db, user_id)
    values = await _link_values(resolver, data)

    link = StudyLink(user_id=user_id, **values)
    try:
        db.add(link)
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)

    publish_change(Collection.LINKS, user_id)
    logger.info("Created link %s for user %s", link.id, user_id)
    return link


async def update_link(
    db: AsyncSession,
    user_id: str,
    link_id: str,
    data: LinkInput,
    resolver: NameResolver | None = None,
) -> StudyLink:
    link = await get_owned(db, StudyLink, link_id, user_id, "link.not_found")
    resolver = resolver or NameResolver(db, user_id)
    values = await _link_values(resolver, data)

    try:
        await db.execute(
            update(StudyLink)
            .where(StudyLink.id == link_id, StudyLink.user_id == user_id)
            .values(**values)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)

    for key, value in values.items():
        setattr(link, key, value)
    publish_change(Collection.LINKS, user_id)
    return link


async def delete_link(db: AsyncSession, user_id: str, link_id: str) -> None:
    await get_owned(db, StudyLink, link_id, user_id, "link.not_found")
    try:
        await db.execute(
            delete(StudyLink).where(StudyLink.id == link_id, StudyLink.user_id == user_id)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)
    publish_change(Collection.LINKS, user_id)


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


async def rename_group(db: AsyncSession, user_id: str, group_id: str, raw_name: str | None) -> LinkGroup:
    name = normalize_name(raw_name)
    if name is None:
        raise ValidationFailure(message_key="group.name_required")
    group = await get_owned(db, LinkGroup, group_id, user_id, "group.not_found")
    try:
        await db.execute(
            update(LinkGroup)
            .where(LinkGroup.id == group_id, LinkGroup.user_id == user_id)
            .values(name=name)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)
    group.name = name
    publish_change(Collection.LINK_GROUPS, user_id)
    return group


async def delete_group(db: AsyncSession, user_id: str, group_id: str) -> int:
    """Delete a group and its subgroups; its links become ungrouped.

    Returns:
        Number of links detached from the group.
    """
    await get_owned(db, LinkGroup, group_id, user_id, "group.not_found")
    try:
        result = await db.execute(
            update(StudyLink)
            .where(StudyLink.group_id == group_id, StudyLink.user_id == user_id)
            .values(group_id=None, subgroup_id=None)
        )
        detached = result.rowcount or 0
        await db.execute(
            delete(LinkSubgroup).where(LinkSubgroup.group_id == group_id, LinkSubgroup.user_id == user_id)
        )
        await db.execute(delete(LinkGroup).where(LinkGroup.id == group_id, LinkGroup.user_id == user_id))
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)

    for table in (Collection.LINKS, Collection.LINK_SUBGROUPS, Collection.LINK_GROUPS):
        publish_change(table, user_id)
    logger.info("Deleted link group %s (%d links detached)", group_id, detached)
    return detached


async def move_group(db: AsyncSession, user_id: str, group_id: str, step: int) -> list[LinkGroup]:
    await get_owned(db, LinkGroup, group_id, user_id, "group.not_found")
    siblings = await list_groups(db, user_id)
    index = ordering.index_of(siblings, group_id)
    if step < 0:
        await ordering.move_up(db, LinkGroup, siblings, index, user_id)
    else:
        await ordering.move_down(db, LinkGroup, siblings, index, user_id)
    return await list_groups(db, user_id)


async def reorder_groups(db: AsyncSession, user_id: str, from_index: int, to_index: int) -> list[LinkGroup]:
    siblings = await list_groups(db, user_id)
    await ordering.reorder(db, LinkGroup, siblings, from_index, to_index, user_id)
    return await list_groups(db, user_id)


# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------


async def rename_subgroup(
    db: AsyncSession, user_id: str, subgroup_id: str, raw_name: str | None
) -> LinkSubgroup:
    name = normalize_name(raw_name)
    if name is None:
        raise ValidationFailure(message_key="subgroup.name_required")
    subgroup = await get_owned(db, LinkSubgroup, subgroup_id, user_id, "subgroup.not_found")
    try:
        await db.execute(
            update(LinkSubgroup)
            .where(LinkSubgroup.id == subgroup_id, LinkSubgroup.user_id == user_id)
            .values(name=name)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)
    subgroup.name = name
    publish_change(Collection.LINK_SUBGROUPS, user_id)
    return subgroup


async def delete_subgroup(db: AsyncSession, user_id: str, subgroup_id: str) -> int:
    """Delete a subgroup; its links stay in the parent group without a subgroup."""
    await get_owned(db, LinkSubgroup, subgroup_id, user_id, "subgroup.not_found")
    try:
        result = await db.execute(
            update(StudyLink)
            .where(StudyLink.subgroup_id == subgroup_id, StudyLink.user_id == user_id)
            .values(subgroup_id=None)
        )
        detached = result.rowcount or 0
        await db.execute(
            delete(LinkSubgroup).where(LinkSubgroup.id == subgroup_id, LinkSubgroup.user_id == user_id)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc
    await _commit(db)

    publish_change(Collection.LINKS, user_id)
    publish_change(Collection.LINK_SUBGROUPS, user_id)
    return detached


async def move_subgroup(db: AsyncSession, user_id: str, subgroup_id: str, step: int) -> list[LinkSubgroup]:
    """Move a subgroup among the subgroups of its own group."""
    subgroup = await get_owned(db, LinkSubgroup, subgroup_id, user_id, "subgroup.not_found")
    siblings = await list_subgroups(db, user_id, subgroup.group_id)
    index = ordering.index_of(siblings, subgroup_id)
    if step < 0:
        await ordering.move_up(db, LinkSubgroup, siblings, index, user_id)
    else:
        await ordering.move_down(db, LinkSubgroup, siblings, index, user_id)
    return await list_subgroups(db, user_id, subgroup.group_id)


async def reorder_subgroups(
    db: AsyncSession, user_id: str, group_id: str, from_index: int, to_index: int
) -> list[LinkSubgroup]:
    await get_owned(db, LinkGroup, group_id, user_id, "group.not_found")
    siblings = await list_subgroups(db, user_id, group_id)
    await ordering.reorder(db, LinkSubgroup, siblings, from_index, to_index, user_id)
    return await list_subgroups(db, user_id, group_id)
