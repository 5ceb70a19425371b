from enum import StrEnum


class Collection(StrEnum):
    """Tables watched by the realtime feed and the sync reconciler."""

    LINKS = "study_links"
    CATEGORIES = "categories"
    NOTES = "notes"
    LINK_GROUPS = "link_groups"
    LINK_SUBGROUPS = "link_subgroups"


class NoteStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


# Sentinel bucket keys. They never collide with UUID primary keys.
UNCATEGORIZED_KEY = "_none"
FAVORITES_KEY = "_favorites"
UNGROUPED_KEY = "_none"
NO_SUBGROUP_KEY = "_none"

CATEGORY_FILTERS = frozenset({UNCATEGORIZED_KEY, FAVORITES_KEY})
