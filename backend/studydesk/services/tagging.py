"""Note ↔ category associations and their cascades.

A note's categories live in two places:

- ``note_categories`` rows (many-to-many, the current model), and
- ``notes.category_id`` (legacy single category).

Writers always replace a note's relation rows wholesale (delete, then
insert) and set the legacy field to the first category written, so code
that only reads ``category_id`` still sees a primary category. Readers go
through :mod:`studydesk.services.projection`, which prefers relation rows
and falls back to the legacy field.

The steps of one update are separate commits. A later step failing does
not undo an earlier one; each failure is reported on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.constants import Collection
from studydesk.exceptions import (
    Forbidden,
    NotFound,
    PartialUpdateError,
    StorageError,
    UpstreamFailure,
)
from studydesk.models import Category, Note, NoteCategory, StudyLink
from studydesk.services.storage import ObjectStorage
from studydesk.sync.realtime import publish_change
from studydesk.utils.tristate import Clear, FieldState, Set, Unset

logger = logging.getLogger(__name__)


@dataclass
class NoteUpdate:
    """Requested changes to a note's categorization and favorite flag.

    ``category_ids`` takes precedence over ``category_id`` when both are set.
    """

    category_ids: FieldState = field(default_factory=Unset)
    category_id: FieldState = field(default_factory=Unset)
    is_favorite: FieldState = field(default_factory=Unset)

    @property
    def is_empty(self) -> bool:
        return all(
            isinstance(state, Unset)
            for state in (self.category_ids, self.category_id, self.is_favorite)
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _commit_step(db: AsyncSession, step: Callable[[], Awaitable[None]]) -> None:
    """Run one write and commit it on its own; store errors become UpstreamFailure."""
    try:
        await step()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamFailure(str(exc) or None) from exc


async def get_owned_note(db: AsyncSession, note_id: str, user_id: str) -> Note:
    """Fetch a note and check that ``user_id`` owns it.

    Raises:
        NotFound: No note has this id (for any owner).
        Forbidden: The note belongs to someone else.
    """
    result = await db.execute(select(Note).where(Note.id == note_id))
    note = result.scalar_one_or_none()
    if note is None:
        raise NotFound(message_key="note.not_found")
    if note.user_id != user_id:
        raise Forbidden()
    return note


def clean_category_ids(values: Sequence) -> list[str]:
    """Drop anything that is not a non-empty string; order and duplicates are kept."""
    return [v for v in values if isinstance(v, str) and v]


# ---------------------------------------------------------------------------
# Relation writes
# ---------------------------------------------------------------------------


async def _replace_relation_rows(
    db: AsyncSession, note: Note, category_ids: list[str], primary: str | None
) -> None:
    async def _delete_rows() -> None:
        await db.execute(delete(NoteCategory).where(NoteCategory.note_id == note.id))

    async def _insert_rows() -> None:
        db.add_all([NoteCategory(note_id=note.id, category_id=cid) for cid in category_ids])
        await db.flush()

    async def _write_primary() -> None:
        await db.execute(
            update(Note)
            .where(Note.id == note.id, Note.user_id == note.user_id)
            .values(category_id=primary)
        )

    await _commit_step(db, _delete_rows)
    if category_ids:
        await _commit_step(db, _insert_rows)
    await _commit_step(db, _write_primary)
    publish_change(Collection.NOTES, note.user_id)


async def write_note_categories(db: AsyncSession, note: Note, category_ids: Sequence) -> list[str]:
    ids = clean_category_ids(category_ids)
    await _replace_relation_rows(db, note, ids, ids[0] if ids else None)
    logger.info("Note %s categories set to %s", note.id, ids)
    return ids


async def write_legacy_category(db: AsyncSession, note: Note, category_id: str | None) -> None:
    await _replace_relation_rows(db, note, [category_id] if category_id else [], category_id or None)
    logger.info("Note %s legacy category set to %s", note.id, category_id)


async def write_favorite(db: AsyncSession, note: Note, value: bool) -> None:
    async def _step() -> None:
        await db.execute(
            update(Note)
            .where(Note.id == note.id, Note.user_id == note.user_id)
            .values(is_favorite=value)
        )

    await _commit_step(db, _step)
    publish_change(Collection.NOTES, note.user_id)
    logger.info("Note %s favorite=%s", note.id, value)


async def set_note_categories(
    db: AsyncSession, note_id: str, category_ids: Sequence, user_id: str
) -> list[str]:
    """Replace a note's categories; the first id becomes the legacy primary.

    Duplicates in ``category_ids`` are written as given.
    """
    note = await get_owned_note(db, note_id, user_id)
    return await write_note_categories(db, note, category_ids)


async def set_legacy_category(
    db: AsyncSession, note_id: str, category_id: str | None, user_id: str
) -> None:
    """Single-category form for callers that predate multi-category notes."""
    note = await get_owned_note(db, note_id, user_id)
    await write_legacy_category(db, note, category_id)


async def set_favorite(db: AsyncSession, note_id: str, value: bool, user_id: str) -> None:
    note = await get_owned_note(db, note_id, user_id)
    await write_favorite(db, note, value)


async def update_note(db: AsyncSession, note_id: str, user_id: str, changes: NoteUpdate) -> None:
    """Apply categorization and favorite changes as independent steps.

    Ownership is checked once up front. Both steps are attempted even if
    the first fails.

    Raises:
        NotFound / Forbidden: From the ownership check; nothing is written.
        PartialUpdateError: One or both steps failed; ``errors`` names them.
    """
    note = await get_owned_note(db, note_id, user_id)
    errors: dict[str, str] = {}

    try:
        match changes.category_ids:
            case Set(value=ids):
                await write_note_categories(db, note, ids if isinstance(ids, list) else [])
            case Clear():
                await write_note_categories(db, note, [])
            case Unset():
                match changes.category_id:
                    case Set(value=category_id):
                        await write_legacy_category(db, note, category_id)
                    case Clear():
                        await write_legacy_category(db, note, None)
    except UpstreamFailure as exc:
        logger.warning("Categorizing note %s failed: %s", note_id, exc)
        errors["categories"] = exc.message or "categorization failed"

    if isinstance(changes.is_favorite, Set):
        try:
            await write_favorite(db, note, bool(changes.is_favorite.value))
        except UpstreamFailure as exc:
            logger.warning("Updating favorite on note %s failed: %s", note_id, exc)
            errors["is_favorite"] = exc.message or "favorite update failed"

    if errors:
        raise PartialUpdateError(errors)


# ---------------------------------------------------------------------------
# Deletes
# ---------------------------------------------------------------------------


async def delete_note(
    db: AsyncSession, storage: ObjectStorage | None, note_id: str, user_id: str
) -> None:
    """Delete a note, its stored file and its associations.

    Removing the stored file is best effort: a storage failure is logged and
    the row is still deleted. A failure deleting the row is raised.
    """
    note = await get_owned_note(db, note_id, user_id)

    if note.file_path and storage is not None:
        try:
            await storage.delete(note.file_path)
        except StorageError:
            logger.exception("Failed to remove stored file for note %s (%s)", note_id, note.file_path)

    async def _step() -> None:
        await db.execute(delete(NoteCategory).where(NoteCategory.note_id == note_id))
        await db.execute(
            update(StudyLink)
            .where(StudyLink.note_id == note_id, StudyLink.user_id == user_id)
            .values(note_id=None)
        )
        await db.execute(delete(Note).where(Note.id == note_id, Note.user_id == user_id))

    await _commit_step(db, _step)
    publish_change(Collection.NOTES, user_id)
    logger.info("Deleted note %s for user %s", note_id, user_id)


async def delete_category(db: AsyncSession, category_id: str, user_id: str) -> int:
    """Delete a category; every note that used it becomes uncategorized.

    Relation rows pointing at the category are removed and any legacy
    ``category_id`` equal to it is nulled before the category row goes, so
    no note is left referencing a missing id.

    Returns:
        Number of notes whose legacy field was cleared.
    """
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFound(message_key="category.not_found")
    if category.user_id != user_id:
        raise Forbidden()

    cleared = 0

    async def _step() -> None:
        nonlocal cleared
        await db.execute(delete(NoteCategory).where(NoteCategory.category_id == category_id))
        result = await db.execute(
            update(Note)
            .where(Note.category_id == category_id, Note.user_id == user_id)
            .values(category_id=None)
        )
        cleared = result.rowcount or 0
        await db.execute(
            delete(Category).where(Category.id == category_id, Category.user_id == user_id)
        )

    await _commit_step(db, _step)
    publish_change(Collection.CATEGORIES, user_id)
    publish_change(Collection.NOTES, user_id)
    logger.info("Deleted category %s (%d notes uncategorized)", category_id, cleared)
    return cleared
