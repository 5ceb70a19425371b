"""Study links, link groups and link subgroups.

Endpoints:
- ``GET /links``                                   -- Grouped link tree + flat collections
- ``POST /links`` / ``PUT /links/{id}``            -- Create / replace (group names resolved)
- ``DELETE /links/{id}``
- ``PATCH /link-groups/{id}``                      -- Rename
- ``DELETE /link-groups/{id}``                     -- Delete; links become ungrouped
- ``POST /link-groups/reorder``
- ``POST /link-groups/{id}/move-up`` / ``move-down``
- ``PATCH /link-subgroups/{id}`` / ``DELETE /link-subgroups/{id}``
- ``POST /link-groups/{id}/subgroups/reorder``
- ``POST /link-subgroups/{id}/move-up`` / ``move-down``
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studydesk.api.schemas import (
    CategoryItem,
    LinkGroupItem,
    LinkItem,
    LinkSubgroupItem,
    NoteItem,
    ReorderRequest,
    SuccessResponse,
)
from studydesk.database import get_db, get_session_factory
from studydesk.services import links as link_service
from studydesk.services.auth_service import get_approved_user, is_admin
from studydesk.services.dashboard import load_links_page
from studydesk.services.projection import group_links

router = APIRouter(tags=["links"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class LinkRequest(BaseModel):
    """Link form; ``group_name``/``subgroup_name`` are free text resolved to ids."""

    title: str = ""
    url: str = ""
    description: str | None = None
    group_name: str | None = None
    subgroup_name: str | None = None
    note_id: str | None = None

    def to_input(self) -> link_service.LinkInput:
        return link_service.LinkInput(
            title=self.title,
            url=self.url,
            description=self.description,
            group_name=self.group_name,
            subgroup_name=self.subgroup_name,
            note_id=self.note_id,
        )


class NameRequest(BaseModel):
    name: str | None = None


class SubgroupNode(BaseModel):
    key: str
    subgroup: LinkSubgroupItem | None = None
    links: list[LinkItem]


class GroupNode(BaseModel):
    key: str
    group: LinkGroupItem | None = None
    link_count: int
    subgroups: list[SubgroupNode]


class LinksPageResponse(BaseModel):
    tree: list[GroupNode]
    links: list[LinkItem]
    groups: list[LinkGroupItem]
    subgroups: list[LinkSubgroupItem]
    categories: list[CategoryItem]
    notes: list[NoteItem]
    is_admin: bool = False


class GroupListResponse(BaseModel):
    items: list[LinkGroupItem]


class SubgroupListResponse(BaseModel):
    items: list[LinkSubgroupItem]


class DetachResponse(BaseModel):
    success: bool = True
    detached_links: int = 0


def _groups_response(rows) -> GroupListResponse:
    return GroupListResponse(items=[LinkGroupItem.from_row(r) for r in rows])


def _subgroups_response(rows) -> SubgroupListResponse:
    return SubgroupListResponse(items=[LinkSubgroupItem.from_row(r) for r in rows])


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


@router.get("/links", response_model=LinksPageResponse)
async def get_links_page(
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),  # noqa: B008
) -> LinksPageResponse:
    page = await load_links_page(session_factory, current_user["user_id"])
    tree = [
        GroupNode(
            key=node.key,
            group=LinkGroupItem.from_row(node.group) if node.group is not None else None,
            link_count=node.link_count,
            subgroups=[
                SubgroupNode(
                    key=bucket.key,
                    subgroup=LinkSubgroupItem.from_row(bucket.subgroup) if bucket.subgroup is not None else None,
                    links=[LinkItem.from_row(link) for link in bucket.links],
                )
                for bucket in node.subgroups
            ],
        )
        for node in group_links(page.links, page.groups, page.subgroups)
    ]
    return LinksPageResponse(
        tree=tree,
        links=[LinkItem.from_row(r) for r in page.links],
        groups=[LinkGroupItem.from_row(r) for r in page.groups],
        subgroups=[LinkSubgroupItem.from_row(r) for r in page.subgroups],
        categories=[CategoryItem.from_row(r) for r in page.categories],
        notes=[NoteItem.from_row(n, page.category_ids.get(n.id)) for n in page.notes],
        is_admin=is_admin(current_user.get("email")),
    )


@router.post("/links", response_model=LinkItem, status_code=status.HTTP_201_CREATED)
async def post_link(
    payload: LinkRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LinkItem:
    link = await link_service.create_link(db, current_user["user_id"], payload.to_input())
    return LinkItem.from_row(link)


@router.put("/links/{link_id}", response_model=LinkItem)
async def put_link(
    link_id: str,
    payload: LinkRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LinkItem:
    link = await link_service.update_link(db, current_user["user_id"], link_id, payload.to_input())
    return LinkItem.from_row(link)


@router.delete("/links/{link_id}", response_model=SuccessResponse)
async def remove_link(
    link_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> SuccessResponse:
    await link_service.delete_link(db, current_user["user_id"], link_id)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


@router.post("/link-groups/reorder", response_model=GroupListResponse)
async def post_group_reorder(
    payload: ReorderRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> GroupListResponse:
    rows = await link_service.reorder_groups(
        db, current_user["user_id"], payload.from_index, payload.to_index
    )
    return _groups_response(rows)


@router.patch("/link-groups/{group_id}", response_model=LinkGroupItem)
async def patch_group(
    group_id: str,
    payload: NameRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LinkGroupItem:
    group = await link_service.rename_group(db, current_user["user_id"], group_id, payload.name)
    return LinkGroupItem.from_row(group)


@router.delete("/link-groups/{group_id}", response_model=DetachResponse)
async def remove_group(
    group_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> DetachResponse:
    detached = await link_service.delete_group(db, current_user["user_id"], group_id)
    return DetachResponse(detached_links=detached)


@router.post("/link-groups/{group_id}/move-up", response_model=GroupListResponse)
async def post_group_move_up(
    group_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> GroupListResponse:
    return _groups_response(await link_service.move_group(db, current_user["user_id"], group_id, -1))


@router.post("/link-groups/{group_id}/move-down", response_model=GroupListResponse)
async def post_group_move_down(
    group_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> GroupListResponse:
    return _groups_response(await link_service.move_group(db, current_user["user_id"], group_id, 1))


@router.post("/link-groups/{group_id}/subgroups/reorder", response_model=SubgroupListResponse)
async def post_subgroup_reorder(
    group_id: str,
    payload: ReorderRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> SubgroupListResponse:
    rows = await link_service.reorder_subgroups(
        db, current_user["user_id"], group_id, payload.from_index, payload.to_index
    )
    return _subgroups_response(rows)


# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------


@router.patch("/link-subgroups/{subgroup_id}", response_model=LinkSubgroupItem)
async def patch_subgroup(
    subgroup_id: str,
    payload: NameRequest,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LinkSubgroupItem:
    subgroup = await link_service.rename_subgroup(db, current_user["user_id"], subgroup_id, payload.name)
    return LinkSubgroupItem.from_row(subgroup)


@router.delete("/link-subgroups/{subgroup_id}", response_model=DetachResponse)
async def remove_subgroup(
    subgroup_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> DetachResponse:
    detached = await link_service.delete_subgroup(db, current_user["user_id"], subgroup_id)
    return DetachResponse(detached_links=detached)


@router.post("/link-subgroups/{subgroup_id}/move-up", response_model=SubgroupListResponse)
async def post_subgroup_move_up(
    subgroup_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> SubgroupListResponse:
    rows = await link_service.move_subgroup(db, current_user["user_id"], subgroup_id, -1)
    return _subgroups_response(rows)


@router.post("/link-subgroups/{subgroup_id}/move-down", response_model=SubgroupListResponse)
async def post_subgroup_move_down(
    subgroup_id: str,
    current_user: dict = Depends(get_approved_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> SubgroupListResponse:
    rows = await link_service.move_subgroup(db, current_user["user_id"], subgroup_id, 1)
    return _subgroups_response(rows)
