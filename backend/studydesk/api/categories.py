"""Category API endpoints (sidebar subjects).

Endpoints:
- ``GET /categories``                        -- Categories in display order
- ``POST /categories``                       -- Create (appended last)
- ``PATCH /categories/{id}``                 -- Rename
- ``DELETE /categories/{id}``                -- Delete; its notes become uncategorized
- ``POST /categories/{id}/move-up``          -- Swap with the previous sibling
- ``POST /categories/{id}/move-down``        -- Swap with the next sibling
- ``POST /categories/reorder``               -- Drag-and-drop move
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.api.schemas import CategoryItem, ReorderRequest
from studydesk.database import get_db
from studydesk.services.auth_service import get_approved_user
from studydesk.services.categories import (
    create_category,
    move_category,
    rename_category,
    reorder_categories,
)
from studydesk.services.collections import list_categories
from studydesk.services.tagging import delete_category

router = APIRouter(prefix="/categories", tags=["categories"])


class CategoryNameRequest(BaseModel):
    name: str | None = None


class CategoryListResponse(BaseModel):
    items: list[CategoryItem]


class CategoryDeleteResponse(BaseModel):
    success: bool = True
    uncategorized_notes: int = 0


def _list_response(rows) -> CategoryListResponse:
    return CategoryListResponse(items=[CategoryItem.from_row(r) for r in rows])


@router.get("", response_model=CategoryListResponse)
async def get_categories(
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryListResponse:
    return _list_response(await list_categories(db, current_user["user_id"]))


@router.post("", response_model=CategoryItem, status_code=status.HTTP_201_CREATED)
async def post_category(
    payload: CategoryNameRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryItem:
    category = await create_category(db, current_user["user_id"], payload.name)
    return CategoryItem.from_row(category)


@router.post("/reorder", response_model=CategoryListResponse)
async def post_reorder(
    payload: ReorderRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryListResponse:
    rows = await reorder_categories(db, current_user["user_id"], payload.from_index, payload.to_index)
    return _list_response(rows)


@router.patch("/{category_id}", response_model=CategoryItem)
async def patch_category(
    category_id: str,
    payload: CategoryNameRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryItem:
    category = await rename_category(db, current_user["user_id"], category_id, payload.name)
    return CategoryItem.from_row(category)


@router.delete("/{category_id}", response_model=CategoryDeleteResponse)
async def remove_category(
    category_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryDeleteResponse:
    cleared = await delete_category(db, category_id, current_user["user_id"])
    return CategoryDeleteResponse(uncategorized_notes=cleared)


@router.post("/{category_id}/move-up", response_model=CategoryListResponse)
async def post_move_up(
    category_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryListResponse:
    return _list_response(await move_category(db, current_user["user_id"], category_id, -1))


@router.post("/{category_id}/move-down", response_model=CategoryListResponse)
async def post_move_down(
    category_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CategoryListResponse:
    return _list_response(await move_category(db, current_user["user_id"], category_id, 1))
