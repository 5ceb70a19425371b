"""Owner-scoped row lookup shared by the services."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.exceptions import Forbidden, NotFound


async def get_owned(db: AsyncSession, model, item_id: str, user_id: str, not_found_key: str):
    """Load ``model`` by id and verify ownership.

    Raises:
        NotFound: No row with this id exists.
        Forbidden: The row belongs to another user.
    """
    row = await db.get(model, item_id)
    if row is None:
        raise NotFound(message_key=not_found_key)
    if row.user_id != user_id:
        raise Forbidden()
    return row
