"""Tests for the dashboard loader, the projects endpoints and health."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from tests.conftest import add_rows, at, make_auth_headers, make_category, make_link, make_note


class TestDashboard:
    @pytest.mark.asyncio
    async def test_counts_ignore_active_filter(self, test_client, test_db):
        from studydesk.models import Project

        physics = await make_category(test_db, name="Physics")
        await make_note(test_db, title="mechanics", category_id=physics.id)
        await make_note(test_db, title="loose", minutes=1, is_favorite=True)
        await make_link(test_db)
        await make_link(test_db, title="other", user_id="user-2")
        await add_rows(test_db, Project(user_id="user-1", name="Thesis", created_at=at(0)))

        response = await test_client.get(
            f"/api/dashboard?category={physics.id}", headers=make_auth_headers()
        )

        assert response.status_code == 200
        body = response.json()
        assert [n["title"] for n in body["notes"]] == ["mechanics"]
        assert body["counts"] == {physics.id: 1, "_none": 1, "_favorites": 1}
        assert [c["name"] for c in body["categories"]] == ["Physics"]
        assert body["links_count"] == 1
        assert body["projects_count"] == 1
        assert body["category"] == physics.id
        assert body["is_admin"] is False

    @pytest.mark.asyncio
    async def test_unparseable_date_is_ignored(self, test_client, test_db):
        await make_note(test_db)

        response = await test_client.get("/api/dashboard?date=yesterday", headers=make_auth_headers())

        assert response.status_code == 200
        assert len(response.json()["notes"]) == 1
        assert response.json()["date"] == "yesterday"

    @pytest.mark.asyncio
    async def test_failed_sub_load_degrades(self, test_client, test_db):
        await make_note(test_db)
        await make_link(test_db)

        with patch(
            "studydesk.services.dashboard.count_links",
            new=AsyncMock(side_effect=RuntimeError("connection reset")),
        ):
            response = await test_client.get(
                "/api/dashboard", headers=make_auth_headers(email="admin@example.com")
            )

        assert response.status_code == 200
        body = response.json()
        assert body["links_count"] == 0
        assert len(body["notes"]) == 1
        assert body["is_admin"] is True

    @pytest.mark.asyncio
    async def test_requires_login(self, test_client):
        response = await test_client.get("/api/dashboard")
        assert response.status_code == 401


class TestProjects:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, test_client, test_db):
        from studydesk.models import Project

        await add_rows(
            test_db,
            Project(user_id="user-1", name="Old", created_at=at(0)),
            Project(user_id="user-1", name="New", created_at=at(5)),
            Project(user_id="user-2", name="Theirs", created_at=at(9)),
        )

        response = await test_client.get("/api/projects", headers=make_auth_headers())

        assert [p["name"] for p in response.json()["items"]] == ["New", "Old"]

    @pytest.mark.asyncio
    async def test_detail_with_files_and_notes(self, test_client, test_db):
        from studydesk.models import Project, ProjectFile

        project = await add_rows(test_db, Project(user_id="user-1", name="Thesis", created_at=at(0)))
        await add_rows(
            test_db,
            ProjectFile(
                project_id=project.id, user_id="user-1", name="draft.pdf", file_path="user-1/draft.pdf", created_at=at(1)
            ),
        )
        await make_note(test_db, title="linked", project_id=project.id)
        await make_note(test_db, title="unrelated", minutes=1)

        response = await test_client.get(f"/api/projects/{project.id}", headers=make_auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["project"]["name"] == "Thesis"
        assert [f["name"] for f in body["files"]] == ["draft.pdf"]
        assert [n["title"] for n in body["linked_notes"]] == ["linked"]

    @pytest.mark.asyncio
    async def test_detail_access(self, test_client, test_db):
        from studydesk.models import Project

        project = await add_rows(test_db, Project(user_id="user-2", name="Theirs", created_at=at(0)))

        response = await test_client.get(f"/api/projects/{project.id}", headers=make_auth_headers())
        assert response.status_code == 403

        response = await test_client.get(
            "/api/projects/missing", headers={**make_auth_headers(), "Accept-Language": "en"}
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Project not found."}


@pytest.mark.asyncio
async def test_health(test_client):
    response = await test_client.get("/api/health")
    assert response.json() == {"status": "ok"}
