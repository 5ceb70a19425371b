"""Pure view derivations over in-memory rows (no I/O).

Inputs are ORM objects or anything exposing the same attributes, so the
same functions serve page loaders, the reconciler and tests.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from studydesk.constants import (
    FAVORITES_KEY,
    NO_SUBGROUP_KEY,
    UNCATEGORIZED_KEY,
    UNGROUPED_KEY,
)
from studydesk.services.ordering import canonical_sort


# ---------------------------------------------------------------------------
# Note categories
# ---------------------------------------------------------------------------


def index_relation_rows(relation_rows: Iterable) -> dict[str, list[str]]:
    """Group ``(note_id, category_id)`` rows by note, keeping row order."""
    by_note: dict[str, list[str]] = defaultdict(list)
    for row in relation_rows:
        by_note[row.note_id].append(row.category_id)
    return dict(by_note)


def _effective_list(note, relation_ids: Sequence[str] | None) -> list[str]:
    if relation_ids:
        seen: dict[str, None] = {}
        for category_id in relation_ids:
            seen.setdefault(category_id, None)
        return list(seen)
    if note.category_id:
        return [note.category_id]
    return []


def effective_category_ids(note, relation_rows: Iterable) -> set[str]:
    """Categories a note effectively belongs to.

    Relation rows win whenever the note has at least one; otherwise the
    legacy ``category_id`` is used as a singleton; otherwise empty. This
    order lets notes written before the relation table existed coexist
    with new ones.
    """
    ids = [row.category_id for row in relation_rows if row.note_id == note.id]
    return set(_effective_list(note, ids))


def attach_category_ids(notes: Iterable, relation_rows: Iterable) -> dict[str, list[str]]:
    """Map each note id to its ordered, de-duplicated effective categories."""
    by_note = index_relation_rows(relation_rows)
    return {note.id: _effective_list(note, by_note.get(note.id)) for note in notes}


def notes_count_by_category(notes: Iterable, relation_rows: Iterable = ()) -> dict[str, int]:
    """Count notes per category for the sidebar.

    Recomputed from the full notes list on every call. A note counts once
    for each effective category, under ``"_none"`` when it has none, and
    additionally under ``"_favorites"`` when favorited.
    """
    notes = list(notes)
    category_ids = attach_category_ids(notes, relation_rows)
    counts: dict[str, int] = defaultdict(int)
    for note in notes:
        ids = category_ids[note.id]
        if ids:
            for category_id in ids:
                counts[category_id] += 1
        else:
            counts[UNCATEGORIZED_KEY] += 1
        if note.is_favorite:
            counts[FAVORITES_KEY] += 1
    return dict(counts)


def filter_notes_by_category(
    notes: Iterable, category_ids: dict[str, list[str]], selected: str | None
) -> list:
    """Sidebar filter: a category id, ``"_none"``, ``"_favorites"`` or None for all."""
    notes = list(notes)
    if not selected:
        return notes
    if selected == FAVORITES_KEY:
        return [n for n in notes if n.is_favorite]
    if selected == UNCATEGORIZED_KEY:
        return [n for n in notes if not category_ids.get(n.id)]
    return [n for n in notes if selected in category_ids.get(n.id, ())]


# ---------------------------------------------------------------------------
# Link tree
# ---------------------------------------------------------------------------


@dataclass
class SubgroupBucket:
    key: str
    subgroup: Any | None
    links: list = field(default_factory=list)


@dataclass
class GroupBucket:
    key: str
    group: Any | None
    subgroups: list[SubgroupBucket] = field(default_factory=list)

    @property
    def link_count(self) -> int:
        return sum(len(b.links) for b in self.subgroups)


def bucket_links(links: Iterable, groups: Iterable = (), subgroups: Iterable = ()) -> dict[str, dict[str, list]]:
    """Two-level ``group key -> subgroup key -> links`` mapping.

    Links referencing a group or subgroup that is not in the supplied
    collections are treated as ungrouped / without subgroup. A subgroup is
    only honoured inside its own parent group.
    """
    group_ids = {g.id for g in groups}
    subgroup_parent = {sg.id: sg.group_id for sg in subgroups}

    buckets: dict[str, dict[str, list]] = {}
    for link in links:
        group_key = link.group_id if link.group_id in group_ids else UNGROUPED_KEY
        subgroup_key = NO_SUBGROUP_KEY
        if (
            group_key != UNGROUPED_KEY
            and link.subgroup_id
            and subgroup_parent.get(link.subgroup_id) == group_key
        ):
            subgroup_key = link.subgroup_id
        buckets.setdefault(group_key, {}).setdefault(subgroup_key, []).append(link)
    return buckets


def group_links(links: Sequence, groups: Sequence, subgroups: Sequence) -> list[GroupBucket]:
    """Build the display tree for the links page.

    Groups appear in canonical ``(sort_order, created_at)`` order and only
    when they hold at least one link. Inside a group the "no subgroup"
    bucket comes first, followed by non-empty subgroups in canonical order.
    Links keep the order they were given in (fetch order, oldest first).
    The ungrouped bucket, when non-empty, is listed last.
    """
    buckets = bucket_links(links, groups, subgroups)
    subgroups_by_group: dict[str, list] = defaultdict(list)
    for sg in subgroups:
        subgroups_by_group[sg.group_id].append(sg)

    tree: list[GroupBucket] = []
    for group in canonical_sort(groups):
        group_buckets = buckets.get(group.id)
        if not group_buckets:
            continue
        node = GroupBucket(key=group.id, group=group)
        if group_buckets.get(NO_SUBGROUP_KEY):
            node.subgroups.append(
                SubgroupBucket(key=NO_SUBGROUP_KEY, subgroup=None, links=group_buckets[NO_SUBGROUP_KEY])
            )
        for sg in canonical_sort(subgroups_by_group.get(group.id, ())):
            if group_buckets.get(sg.id):
                node.subgroups.append(SubgroupBucket(key=sg.id, subgroup=sg, links=group_buckets[sg.id]))
        tree.append(node)

    ungrouped = buckets.get(UNGROUPED_KEY, {}).get(NO_SUBGROUP_KEY)
    if ungrouped:
        tree.append(
            GroupBucket(
                key=UNGROUPED_KEY,
                group=None,
                subgroups=[SubgroupBucket(key=NO_SUBGROUP_KEY, subgroup=None, links=ungrouped)],
            )
        )
    return tree
