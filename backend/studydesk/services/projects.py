"""Read-only project queries: list and detail with files and linked notes."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.models import Note, Project, ProjectFile
from studydesk.services.collections import list_relation_rows
from studydesk.services.ownership import get_owned
from studydesk.services.projection import attach_category_ids


@dataclass
class ProjectDetail:
    project: Project
    files: list[ProjectFile]
    linked_notes: list[Note]
    category_ids: dict[str, list[str]]


async def list_projects(db: AsyncSession, user_id: str) -> list[Project]:
    """Own projects, newest first."""
    result = await db.execute(
        select(Project).where(Project.user_id == user_id).order_by(Project.created_at.desc())
    )
    return list(result.scalars().all())


async def get_project_detail(db: AsyncSession, user_id: str, project_id: str) -> ProjectDetail:
    """A project with its files and the notes attached to it (both newest first).

    Raises:
        NotFound: Unknown project id.
        Forbidden: The project belongs to another user.
    """
    project = await get_owned(db, Project, project_id, user_id, "project.not_found")

    files = await db.execute(
        select(ProjectFile)
        .where(ProjectFile.project_id == project_id)
        .order_by(ProjectFile.created_at.desc())
    )
    notes = await db.execute(
        select(Note)
        .where(Note.user_id == user_id, Note.project_id == project_id)
        .order_by(Note.created_at.desc())
    )
    linked_notes = list(notes.scalars().all())
    rows = await list_relation_rows(db, user_id)
    return ProjectDetail(
        project=project,
        files=list(files.scalars().all()),
        linked_notes=linked_notes,
        category_ids=attach_category_ids(linked_notes, rows),
    )
