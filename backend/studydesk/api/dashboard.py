"""Dashboard page loader endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studydesk.api.schemas import CategoryItem, NoteItem
from studydesk.database import get_session_factory
from studydesk.services.auth_service import get_approved_user, is_admin
from studydesk.services.dashboard import load_dashboard
from studydesk.utils.datetime_utils import parse_day

router = APIRouter(tags=["dashboard"])


class DashboardResponse(BaseModel):
    """Initial state of the dashboard page.

    ``counts`` maps category ids plus ``"_none"`` and ``"_favorites"`` to
    note counts and ignores the active filter.
    """

    notes: list[NoteItem]
    categories: list[CategoryItem]
    counts: dict[str, int]
    links_count: int
    projects_count: int
    is_admin: bool = False
    date: str | None = None
    category: str | None = None


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    date: str | None = Query(None, description="Only notes created on this day (YYYY-MM-DD)"),  # noqa: B008
    category: str | None = Query(None, description="Category id, '_none' or '_favorites'"),  # noqa: B008
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> DashboardResponse:
    data = await load_dashboard(
        session_factory,
        current_user["user_id"],
        category=category,
        day=parse_day(date),
    )
    return DashboardResponse(
        notes=[NoteItem.from_row(n, data.category_ids.get(n.id)) for n in data.notes],
        categories=[CategoryItem.from_row(c) for c in data.categories],
        counts=data.counts,
        links_count=data.link_count,
        projects_count=data.project_count,
        is_admin=is_admin(current_user.get("email")),
        date=date,
        category=category,
    )
