"""Notes API endpoints.

Endpoints:
- ``GET /notes``                  -- Own notes with effective categories
- ``GET /notes/compare``          -- Two notes side by side with file contents
- ``PATCH /notes/{note_id}``      -- Categories and/or favorite flag
- ``DELETE /notes/{note_id}``     -- Delete note, stored file and associations
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studydesk.api.schemas import NoteItem, SuccessResponse
from studydesk.database import get_db, get_session_factory
from studydesk.exceptions import ValidationFailure
from studydesk.services.auth_service import get_approved_user
from studydesk.services.collections import list_relation_rows
from studydesk.services.dashboard import load_notes
from studydesk.services.projection import attach_category_ids
from studydesk.services.storage import ObjectStorage, get_storage
from studydesk.services.tagging import NoteUpdate, delete_note, get_owned_note, update_note
from studydesk.utils.datetime_utils import parse_day
from studydesk.utils.tristate import Clear, Set, Unset, field_state

router = APIRouter(tags=["notes"])

UPDATABLE_FIELDS = ("category_ids", "category_id", "is_favorite")


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class NotePatchRequest(BaseModel):
    """Partial update body. Absent keys are left alone; ``null`` clears."""

    category_ids: Any = None
    category_id: str | None = None
    is_favorite: bool | None = None


class NoteListResponse(BaseModel):
    items: list[NoteItem]
    counts: dict[str, int]


class CompareResponse(BaseModel):
    note1: NoteItem
    note2: NoteItem
    content1: str
    content2: str


def build_note_update(payload: NotePatchRequest) -> NoteUpdate:
    """Translate the request body into tri-state changes.

    ``category_ids: null`` (or any non-list value) clears every category;
    ``is_favorite: null`` is ignored (only a boolean is written).

    Raises:
        ValidationFailure: None of the updatable fields was supplied.
    """
    category_ids = field_state(payload, "category_ids", blank_is_clear=False)
    if isinstance(category_ids, Set) and not isinstance(category_ids.value, list):
        category_ids = Clear()
    is_favorite = field_state(payload, "is_favorite", blank_is_clear=False)
    if not isinstance(is_favorite, Set):
        is_favorite = Unset()

    changes = NoteUpdate(
        category_ids=category_ids,
        category_id=field_state(payload, "category_id"),
        is_favorite=is_favorite,
    )
    if changes.is_empty:
        raise ValidationFailure(fields=", ".join(UPDATABLE_FIELDS))
    return changes


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/notes", response_model=NoteListResponse)
async def list_notes(
    category: str | None = Query(None, description="Category id, '_none' or '_favorites'"),  # noqa: B008
    date: str | None = Query(None, description="Only notes created on this day (YYYY-MM-DD)"),  # noqa: B008
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> NoteListResponse:
    view = await load_notes(
        session_factory,
        current_user["user_id"],
        category=category,
        day=parse_day(date),
    )
    return NoteListResponse(
        items=[NoteItem.from_row(n, view.category_ids.get(n.id)) for n in view.notes],
        counts=view.counts,
    )


@router.get("/notes/compare", response_model=CompareResponse)
async def compare_notes(
    id1: str = Query(...),  # noqa: B008
    id2: str = Query(...),  # noqa: B008
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    storage: ObjectStorage = Depends(get_storage),  # noqa: B008
) -> CompareResponse:
    """Two owned notes and their stored file text.

    A file that cannot be downloaded is returned as an empty string.
    """
    user_id = current_user["user_id"]
    note1 = await get_owned_note(db, id1, user_id)
    note2 = await get_owned_note(db, id2, user_id)

    content1, content2 = await asyncio.gather(
        storage.download_text(note1.file_path),
        storage.download_text(note2.file_path),
    )
    category_ids = attach_category_ids([note1, note2], await list_relation_rows(db, user_id))
    return CompareResponse(
        note1=NoteItem.from_row(note1, category_ids[note1.id]),
        note2=NoteItem.from_row(note2, category_ids[note2.id]),
        content1=content1,
        content2=content2,
    )


@router.patch("/notes/{note_id}", response_model=SuccessResponse)
async def patch_note(
    note_id: str,
    payload: NotePatchRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> SuccessResponse:
    """Update a note's categories and/or favorite flag.

    ``category_ids`` wins over ``category_id`` when both are sent. The
    favorite flag is written even if the categorization step failed.
    """
    changes = build_note_update(payload)
    await update_note(db, note_id, current_user["user_id"], changes)
    return SuccessResponse()


@router.delete("/notes/{note_id}", response_model=SuccessResponse)
async def remove_note(
    note_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    storage: ObjectStorage = Depends(get_storage),  # noqa: B008
) -> SuccessResponse:
    await delete_note(db, storage, note_id, current_user["user_id"])
    return SuccessResponse()
