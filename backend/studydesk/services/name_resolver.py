"""Find-or-create resolution of free-text link group and subgroup names.

The resolver works against local copies of the user's groups and
subgroups (as a client holds them) and only talks to the store when a name
is new. Lookups are exact matches on the trimmed name, case-sensitive.

There is no uniqueness constraint on names. Two resolvers racing on the
same new name can both miss and both insert, producing two rows with the
same name in one scope. That is an accepted limitation of client-side
find-or-create.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.exceptions import UpstreamFailure
from studydesk.models import LinkGroup, LinkSubgroup
from studydesk.services.collections import list_groups, list_subgroups
from studydesk.services.ordering import next_rank
from studydesk.sync.realtime import publish_change

logger = logging.getLogger(__name__)


def normalize_name(raw: str | None) -> str | None:
    """Trim a user-entered label; blank input means "no value"."""
    if raw is None:
        return None
    name = raw.strip()
    return name or None


def find_by_name(scope: list, name: str):
    for item in scope:
        if item.name == name:
            return item
    return None


class NameResolver:
    """Resolve group/subgroup names to ids for one user, creating on a miss.

    Args:
        db: Session used for inserts and collection refreshes.
        user_id: Owner of every row looked up or created.
        groups: Local copy of the user's groups. ``None`` means "load on first use".
        subgroups: Local copy of the user's subgroups (all groups).
    """

    def __init__(
        self,
        db: AsyncSession,
        user_id: str,
        groups: list[LinkGroup] | None = None,
        subgroups: list[LinkSubgroup] | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self.groups = groups
        self.subgroups = subgroups

    async def load(self) -> None:
        self.groups = await list_groups(self.db, self.user_id)
        self.subgroups = await list_subgroups(self.db, self.user_id)

    async def _ensure_loaded(self) -> None:
        if self.groups is None or self.subgroups is None:
            await self.load()

    async def _insert(self, row) -> str:
        try:
            self.db.add(row)
            await self.db.flush()
            new_id = row.id
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UpstreamFailure(str(exc) or None) from exc
        publish_change(row.__tablename__, self.user_id)
        return new_id

    async def resolve_group(self, raw_name: str | None) -> str | None:
        """Return the id of the group named ``raw_name``, creating it if needed."""
        name = normalize_name(raw_name)
        if name is None:
            return None
        await self._ensure_loaded()

        existing = find_by_name(self.groups, name)
        if existing is not None:
            return existing.id

        new_id = await self._insert(
            LinkGroup(user_id=self.user_id, name=name, sort_order=next_rank(self.groups))
        )
        self.groups = await list_groups(self.db, self.user_id)
        logger.info("Created link group %r (%s) for user %s", name, new_id, self.user_id)
        return new_id

    async def resolve_subgroup(self, group_id: str | None, raw_name: str | None) -> str | None:
        """Return the id of subgroup ``raw_name`` inside ``group_id``.

        The group must already be resolved; without one there is no
        subgroup and the result is None.
        """
        name = normalize_name(raw_name)
        if name is None or not group_id:
            return None
        await self._ensure_loaded()

        scope = [sg for sg in self.subgroups if sg.group_id == group_id]
        existing = find_by_name(scope, name)
        if existing is not None:
            return existing.id

        new_id = await self._insert(
            LinkSubgroup(
                group_id=group_id,
                user_id=self.user_id,
                name=name,
                sort_order=next_rank(scope),
            )
        )
        self.subgroups = await list_subgroups(self.db, self.user_id)
        logger.info(
            "Created link subgroup %r (%s) in group %s for user %s",
            name,
            new_id,
            group_id,
            self.user_id,
        )
        return new_id

    async def resolve_placement(
        self, group_name: str | None, subgroup_name: str | None
    ) -> tuple[str | None, str | None]:
        """Resolve the group, then the subgroup inside it."""
        group_id = await self.resolve_group(group_name)
        subgroup_id = await self.resolve_subgroup(group_id, subgroup_name) if group_id else None
        return group_id, subgroup_id
