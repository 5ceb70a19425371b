"""Tests for JWT verification, the approval gate and the admin helper."""

from __future__ import annotations

from datetime import timedelta

import pytest
from jose import JWTError

from tests.conftest import make_auth_headers


class TestTokens:
    def test_round_trip_claims(self):
        from studydesk.services.auth_service import create_access_token, verify_token

        token = create_access_token(data={"sub": "user-1", "email": "a@b.c"})
        payload = verify_token(token)
        assert payload["sub"] == "user-1"
        assert "exp" in payload

    def test_expired_token_rejected(self):
        from studydesk.services.auth_service import create_access_token, verify_token

        token = create_access_token(data={"sub": "user-1"}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(JWTError):
            verify_token(token)


class TestGetCurrentUser:
    @pytest.mark.asyncio
    async def test_returns_user_context(self):
        from studydesk.services.auth_service import create_access_token, get_current_user

        token = create_access_token(data={"sub": "user-1", "email": "a@b.c", "is_anonymous": True})
        user = await get_current_user(token)
        assert user == {
            "user_id": "user-1",
            "email": "a@b.c",
            "username": "a@b.c",
            "is_anonymous": True,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_bad_token_is_unauthenticated(self, token):
        from studydesk.exceptions import Unauthenticated
        from studydesk.services.auth_service import get_current_user

        with pytest.raises(Unauthenticated):
            await get_current_user(token)

    @pytest.mark.asyncio
    async def test_missing_subject(self):
        from studydesk.exceptions import Unauthenticated
        from studydesk.services.auth_service import create_access_token, get_current_user

        with pytest.raises(Unauthenticated):
            await get_current_user(create_access_token(data={"email": "a@b.c"}))


class TestApprovalGate:
    @pytest.mark.asyncio
    async def test_missing_profile_passes(self, test_db):
        from studydesk.services.auth_service import is_approved

        assert await is_approved(test_db, "nobody") is True

    @pytest.mark.asyncio
    async def test_pending_profile_blocks(self, test_db):
        from studydesk.models import Profile
        from studydesk.services.auth_service import is_approved

        test_db.add(Profile(id="user-1", email="a@b.c", approved=False))
        await test_db.commit()
        assert await is_approved(test_db, "user-1") is False

    @pytest.mark.asyncio
    async def test_pending_user_gets_403(self, test_client, test_db):
        from studydesk.models import Profile

        test_db.add(Profile(id="user-1", approved=False))
        await test_db.commit()

        response = await test_client.get(
            "/api/categories", headers={**make_auth_headers(), "Accept-Language": "en"}
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Your account is pending approval."}

    @pytest.mark.asyncio
    async def test_anonymous_user_skips_gate(self, test_client, test_db):
        from studydesk.models import Profile

        test_db.add(Profile(id="anon-1", approved=False))
        await test_db.commit()

        response = await test_client.get(
            "/api/categories", headers=make_auth_headers(sub="anon-1", email=None, is_anonymous=True)
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_no_token_is_401(self, test_client):
        response = await test_client.get("/api/categories")
        assert response.status_code == 401
        assert response.json() == {"error": "로그인이 필요합니다."}
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestIsAdmin:
    def test_matches_configured_emails(self):
        from studydesk.config import Settings
        from studydesk.services.auth_service import is_admin

        settings = Settings(ADMIN_EMAILS="Admin@Example.com, second@example.com")
        assert is_admin("admin@example.com", settings=settings)
        assert is_admin(" SECOND@example.com ", settings=settings)
        assert not is_admin("user@example.com", settings=settings)
        assert not is_admin(None, settings=settings)
