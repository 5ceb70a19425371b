"""Pydantic v2 response schemas shared by the API routers.

ORM rows are converted with the ``from_*`` helpers so timestamps are always
rendered as ISO-8601 strings.
"""

from __future__ import annotations

from pydantic import BaseModel

from studydesk.models import Category, LinkGroup, LinkSubgroup, Note, Project, StudyLink
from studydesk.utils.datetime_utils import datetime_to_iso


class SuccessResponse(BaseModel):
    success: bool = True


class CategoryItem(BaseModel):
    id: str
    name: str
    sort_order: int
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Category) -> CategoryItem:
        return cls(
            id=row.id,
            name=row.name,
            sort_order=row.sort_order or 0,
            created_at=datetime_to_iso(row.created_at),
        )


class NoteItem(BaseModel):
    """A note with its effective categories.

    ``category_id`` is the legacy primary category; ``category_ids`` is
    what the note actually belongs to.
    """

    id: str
    title: str
    category_id: str | None = None
    category_ids: list[str] = []
    is_favorite: bool = False
    file_path: str | None = None
    project_id: str | None = None
    status: str
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Note, category_ids: list[str] | None = None) -> NoteItem:
        return cls(
            id=row.id,
            title=row.title or "",
            category_id=row.category_id,
            category_ids=list(category_ids or []),
            is_favorite=bool(row.is_favorite),
            file_path=row.file_path,
            project_id=row.project_id,
            status=row.status,
            created_at=datetime_to_iso(row.created_at),
        )


class LinkGroupItem(BaseModel):
    id: str
    name: str
    sort_order: int
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: LinkGroup) -> LinkGroupItem:
        return cls(
            id=row.id,
            name=row.name,
            sort_order=row.sort_order or 0,
            created_at=datetime_to_iso(row.created_at),
        )


class LinkSubgroupItem(BaseModel):
    id: str
    group_id: str
    name: str
    sort_order: int
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: LinkSubgroup) -> LinkSubgroupItem:
        return cls(
            id=row.id,
            group_id=row.group_id,
            name=row.name,
            sort_order=row.sort_order or 0,
            created_at=datetime_to_iso(row.created_at),
        )


class LinkItem(BaseModel):
    id: str
    title: str
    url: str
    description: str | None = None
    group_id: str | None = None
    subgroup_id: str | None = None
    note_id: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: StudyLink) -> LinkItem:
        return cls(
            id=row.id,
            title=row.title,
            url=row.url,
            description=row.description,
            group_id=row.group_id,
            subgroup_id=row.subgroup_id,
            note_id=row.note_id,
            created_at=datetime_to_iso(row.created_at),
        )


class ProjectItem(BaseModel):
    id: str
    name: str
    description: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Project) -> ProjectItem:
        return cls(
            id=row.id,
            name=row.name,
            description=row.description,
            created_at=datetime_to_iso(row.created_at),
        )


class ReorderRequest(BaseModel):
    """Drag-and-drop move: sibling at ``from_index`` lands at ``to_index``."""

    from_index: int
    to_index: int
