"""Tests for note categorization, favorites and the delete cascades."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from tests.conftest import make_category, make_link, make_note


async def _relation_rows(db, user_id="user-1"):
    from studydesk.services.collections import list_relation_rows

    return await list_relation_rows(db, user_id)


async def _note(db, note_id):
    from sqlalchemy import select

    from studydesk.models import Note

    result = await db.execute(
        select(Note).where(Note.id == note_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class TestSetNoteCategories:
    @pytest.mark.asyncio
    async def test_replaces_rows_and_sets_primary(self, test_db):
        from studydesk.models import NoteCategory
        from studydesk.services.tagging import set_note_categories

        a = await make_category(test_db, name="A")
        b = await make_category(test_db, name="B", sort_order=1, minutes=1)
        c = await make_category(test_db, name="C", sort_order=2, minutes=2)
        note = await make_note(test_db, category_id=a.id)
        test_db.add(NoteCategory(note_id=note.id, category_id=a.id))
        await test_db.commit()

        written = await set_note_categories(test_db, note.id, [c.id, b.id], "user-1")

        assert written == [c.id, b.id]
        assert [(r.note_id, r.category_id) for r in await _relation_rows(test_db)] == [
            (note.id, c.id),
            (note.id, b.id),
        ]
        assert (await _note(test_db, note.id)).category_id == c.id

    @pytest.mark.asyncio
    async def test_duplicates_are_written_as_given(self, test_db):
        from studydesk.services.tagging import set_note_categories

        a = await make_category(test_db, name="A")
        note = await make_note(test_db)

        await set_note_categories(test_db, note.id, [a.id, a.id], "user-1")
        assert len(await _relation_rows(test_db)) == 2

    @pytest.mark.asyncio
    async def test_empty_list_uncategorizes(self, test_db):
        from studydesk.models import NoteCategory
        from studydesk.services.tagging import set_note_categories

        a = await make_category(test_db, name="A")
        note = await make_note(test_db, category_id=a.id)
        test_db.add(NoteCategory(note_id=note.id, category_id=a.id))
        await test_db.commit()

        await set_note_categories(test_db, note.id, [], "user-1")

        assert await _relation_rows(test_db) == []
        assert (await _note(test_db, note.id)).category_id is None

    @pytest.mark.asyncio
    async def test_non_string_ids_are_dropped(self, test_db):
        from studydesk.services.tagging import set_note_categories

        a = await make_category(test_db, name="A")
        note = await make_note(test_db)

        written = await set_note_categories(test_db, note.id, [None, "", 3, a.id], "user-1")
        assert written == [a.id]

    @pytest.mark.asyncio
    async def test_other_owner_is_forbidden(self, test_db):
        from studydesk.exceptions import Forbidden
        from studydesk.services.tagging import set_note_categories

        note = await make_note(test_db, user_id="user-2")
        with pytest.raises(Forbidden):
            await set_note_categories(test_db, note.id, [], "user-1")

    @pytest.mark.asyncio
    async def test_missing_note_is_not_found(self, test_db):
        from studydesk.exceptions import NotFound
        from studydesk.services.tagging import set_note_categories

        with pytest.raises(NotFound):
            await set_note_categories(test_db, "missing", [], "user-1")


class TestSetLegacyCategory:
    @pytest.mark.asyncio
    async def test_single_row_and_field(self, test_db):
        from studydesk.services.tagging import set_legacy_category

        a = await make_category(test_db, name="A")
        note = await make_note(test_db)

        await set_legacy_category(test_db, note.id, a.id, "user-1")

        assert [r.category_id for r in await _relation_rows(test_db)] == [a.id]
        assert (await _note(test_db, note.id)).category_id == a.id

    @pytest.mark.asyncio
    async def test_none_clears(self, test_db):
        from studydesk.services.tagging import set_legacy_category

        a = await make_category(test_db, name="A")
        note = await make_note(test_db, category_id=a.id)

        await set_legacy_category(test_db, note.id, None, "user-1")

        assert await _relation_rows(test_db) == []
        assert (await _note(test_db, note.id)).category_id is None


class TestUpdateNote:
    @pytest.mark.asyncio
    async def test_category_ids_win_over_legacy(self, test_db):
        from studydesk.services.tagging import NoteUpdate, update_note
        from studydesk.utils.tristate import Set

        a = await make_category(test_db, name="A")
        b = await make_category(test_db, name="B", sort_order=1, minutes=1)
        note = await make_note(test_db)

        await update_note(
            test_db,
            note.id,
            "user-1",
            NoteUpdate(category_ids=Set([b.id]), category_id=Set(a.id)),
        )
        assert (await _note(test_db, note.id)).category_id == b.id

    @pytest.mark.asyncio
    async def test_favorite_attempted_after_category_failure(self, test_db):
        from studydesk.exceptions import PartialUpdateError, UpstreamFailure
        from studydesk.services.tagging import NoteUpdate, update_note
        from studydesk.utils.tristate import Set

        note = await make_note(test_db)

        with patch(
            "studydesk.services.tagging.write_note_categories",
            new=AsyncMock(side_effect=UpstreamFailure("relation insert failed")),
        ):
            with pytest.raises(PartialUpdateError) as exc_info:
                await update_note(
                    test_db,
                    note.id,
                    "user-1",
                    NoteUpdate(category_ids=Set(["x"]), is_favorite=Set(True)),
                )

        assert exc_info.value.errors == {"categories": "relation insert failed"}
        assert exc_info.value.message == "relation insert failed"
        assert (await _note(test_db, note.id)).is_favorite is True

    @pytest.mark.asyncio
    async def test_both_steps_can_fail(self, test_db):
        from studydesk.exceptions import PartialUpdateError, UpstreamFailure
        from studydesk.services.tagging import NoteUpdate, update_note
        from studydesk.utils.tristate import Clear, Set

        note = await make_note(test_db)

        with (
            patch(
                "studydesk.services.tagging.write_legacy_category",
                new=AsyncMock(side_effect=UpstreamFailure("a")),
            ),
            patch(
                "studydesk.services.tagging.write_favorite",
                new=AsyncMock(side_effect=UpstreamFailure("b")),
            ),
        ):
            with pytest.raises(PartialUpdateError) as exc_info:
                await update_note(
                    test_db, note.id, "user-1", NoteUpdate(category_id=Clear(), is_favorite=Set(False))
                )

        assert list(exc_info.value.errors) == ["categories", "is_favorite"]
        assert exc_info.value.message == "a; b"

    @pytest.mark.asyncio
    async def test_ownership_checked_before_any_write(self, test_db):
        from studydesk.exceptions import Forbidden
        from studydesk.services.tagging import NoteUpdate, update_note
        from studydesk.utils.tristate import Set

        note = await make_note(test_db, user_id="user-2")

        with patch("studydesk.services.tagging.write_favorite", new=AsyncMock()) as write_favorite:
            with pytest.raises(Forbidden):
                await update_note(test_db, note.id, "user-1", NoteUpdate(is_favorite=Set(True)))
        write_favorite.assert_not_awaited()


class TestDeleteCategory:
    @pytest.mark.asyncio
    async def test_all_notes_become_uncategorized(self, test_db):
        from studydesk.models import Category, NoteCategory
        from studydesk.services.projection import effective_category_ids
        from studydesk.services.tagging import delete_category

        target = await make_category(test_db, name="Physics")
        keep = await make_category(test_db, name="Math", sort_order=1, minutes=1)
        via_relation_1 = await make_note(test_db, title="n1", minutes=1, category_id=target.id)
        via_relation_2 = await make_note(test_db, title="n2", minutes=2)
        legacy_only = await make_note(test_db, title="n3", minutes=3, category_id=target.id)
        test_db.add_all(
            [
                NoteCategory(note_id=via_relation_1.id, category_id=target.id),
                NoteCategory(note_id=via_relation_2.id, category_id=target.id),
            ]
        )
        await test_db.commit()

        cleared = await delete_category(test_db, target.id, "user-1")

        assert cleared == 2
        assert await test_db.get(Category, target.id) is None
        assert await test_db.get(Category, keep.id) is not None
        rows = await _relation_rows(test_db)
        for note in (via_relation_1, via_relation_2, legacy_only):
            assert effective_category_ids(await _note(test_db, note.id), rows) == set()

    @pytest.mark.asyncio
    async def test_other_owner_is_forbidden(self, test_db):
        from studydesk.exceptions import Forbidden
        from studydesk.services.tagging import delete_category

        theirs = await make_category(test_db, user_id="user-2")
        with pytest.raises(Forbidden):
            await delete_category(test_db, theirs.id, "user-1")


class TestDeleteNote:
    @pytest.mark.asyncio
    async def test_removes_file_row_and_associations(self, test_db, storage, storage_requests):
        from studydesk.models import StudyLink
        from studydesk.services.tagging import delete_note, set_note_categories

        a = await make_category(test_db, name="A")
        note = await make_note(test_db, file_path="user-1/week1.md")
        await set_note_categories(test_db, note.id, [a.id], "user-1")
        link = await make_link(test_db, note_id=note.id)

        await delete_note(test_db, storage, note.id, "user-1")

        assert await _note(test_db, note.id) is None
        assert await _relation_rows(test_db) == []
        refreshed = await test_db.get(StudyLink, link.id, populate_existing=True)
        assert refreshed.note_id is None
        assert [r.method for r in storage_requests] == ["DELETE"]

    @pytest.mark.asyncio
    async def test_storage_failure_still_deletes_row(self, test_db, storage):
        from studydesk.exceptions import StorageError
        from studydesk.services.tagging import delete_note

        note = await make_note(test_db, file_path="user-1/week1.md")
        storage.delete = AsyncMock(side_effect=StorageError("user-1/week1.md", "bucket offline"))

        await delete_note(test_db, storage, note.id, "user-1")

        storage.delete.assert_awaited_once_with("user-1/week1.md")
        assert await _note(test_db, note.id) is None

    @pytest.mark.asyncio
    async def test_row_delete_failure_is_raised(self, test_db, storage):
        from sqlalchemy.exc import OperationalError

        from studydesk.exceptions import UpstreamFailure
        from studydesk.services.tagging import delete_note

        note = await make_note(test_db)
        original_execute = test_db.execute
        calls = {"n": 0}

        async def failing_execute(statement, *args, **kwargs):
            calls["n"] += 1
            if calls["n"] > 1:
                raise OperationalError("DELETE FROM notes", {}, Exception("disk I/O error"))
            return await original_execute(statement, *args, **kwargs)

        with patch.object(test_db, "execute", side_effect=failing_execute):
            with pytest.raises(UpstreamFailure):
                await delete_note(test_db, storage, note.id, "user-1")
