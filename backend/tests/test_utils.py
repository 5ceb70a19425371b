"""Tests for utility modules (tri-state fields, messages, datetime helpers)."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from pydantic import BaseModel
from starlette.requests import Request


class _Body(BaseModel):
    category_id: str | None = None
    category_ids: list[str] | None = None


class TestFieldState:
    def test_absent_is_unset(self):
        from studydesk.utils.tristate import Unset, field_state, is_unset

        state = field_state(_Body.model_validate({}), "category_id")
        assert state == Unset()
        assert is_unset(state)

    def test_null_is_clear(self):
        from studydesk.utils.tristate import Clear, field_state

        assert field_state(_Body.model_validate({"category_id": None}), "category_id") == Clear()

    def test_blank_string(self):
        from studydesk.utils.tristate import Clear, Set, field_state

        body = _Body.model_validate({"category_id": ""})
        assert field_state(body, "category_id") == Clear()
        assert field_state(body, "category_id", blank_is_clear=False) == Set("")

    def test_value_is_set(self):
        from studydesk.utils.tristate import Set, field_state

        body = _Body.model_validate({"category_ids": ["a", "b"]})
        assert field_state(body, "category_ids") == Set(["a", "b"])


class TestMessages:
    def test_korean_default(self):
        from studydesk.utils.messages import msg

        assert msg("note.not_found") == "노트를 찾을 수 없습니다."

    def test_english_with_params(self):
        from studydesk.utils.messages import msg

        assert msg("note.update_fields_required", "en", fields="a, b") == "One of a, b is required."

    def test_unknown_key_returned_as_is(self):
        from studydesk.utils.messages import msg

        assert msg("no.such.key", "en") == "no.such.key"


def _request(accept_language: str | None) -> Request:
    headers = [] if accept_language is None else [(b"accept-language", accept_language.encode())]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


class TestGetLanguage:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            (None, "ko"),
            ("", "ko"),
            ("en", "en"),
            ("en-US,en;q=0.9", "en"),
            ("ko-KR,ko;q=0.9,en;q=0.8", "ko"),
            ("fr-FR,en;q=0.5,ko;q=0.7", "ko"),
            ("fr,de;q=0.8", "ko"),
            ("en;q=0,ko;q=0.1", "ko"),
            ("ko;q=0.5,en;q=0.5", "ko"),
            ("en;q=bogus,ko;q=0.2", "ko"),
        ],
    )
    def test_weighted_choice(self, header, expected):
        from studydesk.utils.messages import get_language

        assert get_language(_request(header)) == expected

    @pytest.mark.asyncio
    async def test_error_body_follows_header(self, test_client):
        response = await test_client.get("/api/categories", headers={"Accept-Language": "fr, en;q=0.8"})
        assert response.json() == {"error": "Login required."}


class TestDatetimeUtils:
    def test_datetime_to_iso_assumes_utc_for_naive(self):
        from studydesk.utils.datetime_utils import datetime_to_iso

        assert datetime_to_iso(datetime(2026, 3, 2, 9, 0)) == "2026-03-02T09:00:00+00:00"
        assert datetime_to_iso(None) is None

    @pytest.mark.parametrize(("raw", "expected"), [("2026-03-02", date(2026, 3, 2)), ("03/02", None), ("", None)])
    def test_parse_day(self, raw, expected):
        from studydesk.utils.datetime_utils import parse_day

        assert parse_day(raw) == expected

    def test_same_day_converts_to_utc(self):
        from studydesk.utils.datetime_utils import same_day

        kst = timezone(timedelta(hours=9))
        assert same_day(datetime(2026, 3, 3, 1, 0, tzinfo=kst), date(2026, 3, 2))
        assert not same_day(datetime(2026, 3, 3, 1, 0, tzinfo=UTC), date(2026, 3, 2))
        assert not same_day(None, date(2026, 3, 2))
