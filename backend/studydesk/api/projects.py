"""Project API endpoints (read only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.api.schemas import NoteItem, ProjectItem
from studydesk.database import get_db
from studydesk.models import ProjectFile
from studydesk.services.auth_service import get_approved_user, is_admin
from studydesk.services.projects import get_project_detail, list_projects
from studydesk.utils.datetime_utils import datetime_to_iso

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectFileItem(BaseModel):
    id: str
    name: str
    file_path: str
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: ProjectFile) -> ProjectFileItem:
        return cls(
            id=row.id,
            name=row.name,
            file_path=row.file_path,
            created_at=datetime_to_iso(row.created_at),
        )


class ProjectListResponse(BaseModel):
    items: list[ProjectItem]
    is_admin: bool = False


class ProjectDetailResponse(BaseModel):
    project: ProjectItem
    files: list[ProjectFileItem]
    linked_notes: list[NoteItem]
    is_admin: bool = False


@router.get("", response_model=ProjectListResponse)
async def get_projects(
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ProjectListResponse:
    projects = await list_projects(db, current_user["user_id"])
    return ProjectListResponse(
        items=[ProjectItem.from_row(p) for p in projects],
        is_admin=is_admin(current_user.get("email")),
    )


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> ProjectDetailResponse:
    detail = await get_project_detail(db, current_user["user_id"], project_id)
    return ProjectDetailResponse(
        project=ProjectItem.from_row(detail.project),
        files=[ProjectFileItem.from_row(f) for f in detail.files],
        linked_notes=[NoteItem.from_row(n, detail.category_ids.get(n.id)) for n in detail.linked_notes],
        is_admin=is_admin(current_user.get("email")),
    )
