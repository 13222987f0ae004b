"""Integration tests for organization-scoped tags."""

import pytest
from conftest import Actor
from httpx import AsyncClient


@pytest.mark.asyncio
class TestTags:
    async def test_create_and_list(self, client: AsyncClient, admin: Actor, officer: Actor):
        response = await client.post(
            "/api/tags",
            headers=admin.headers,
            json={"name": " DUI ", "color": "#EF4444", "description": "Driving under influence"},
        )

        assert response.status_code == 201
        tag = response.json()["tag"]
        assert tag["name"] == "DUI"
        assert tag["color"] == "#EF4444"
        assert tag["organization_id"] == str(admin.organization_id)

        response = await client.get("/api/tags/list", headers=officer.headers)
        assert response.status_code == 200
        assert [t["name"] for t in response.json()["tags"]] == ["DUI"]

    async def test_default_color(self, client: AsyncClient, admin: Actor):
        response = await client.post("/api/tags", headers=admin.headers, json={"name": "Patrol"})
        assert response.json()["tag"]["color"] == "#3B82F6"

    async def test_list_is_sorted_by_name(self, client: AsyncClient, admin: Actor):
        for name in ("Traffic", "Assault", "Noise"):
            await client.post("/api/tags", headers=admin.headers, json={"name": name})

        response = await client.get("/api/tags/list", headers=admin.headers)

        assert [t["name"] for t in response.json()["tags"]] == ["Assault", "Noise", "Traffic"]

    async def test_name_unique_per_organization(
        self, client: AsyncClient, admin: Actor, other_admin: Actor
    ):
        await client.post("/api/tags", headers=admin.headers, json={"name": "DUI"})

        response = await client.post("/api/tags", headers=admin.headers, json={"name": "DUI"})
        assert response.status_code == 409
        assert response.json() == {"error": "Tag already exists"}

        response = await client.post("/api/tags", headers=other_admin.headers, json={"name": "DUI"})
        assert response.status_code == 201

    async def test_validation(self, client: AsyncClient, admin: Actor):
        response = await client.post("/api/tags", headers=admin.headers, json={"name": "   "})
        assert response.status_code == 400
        assert response.json() == {"error": "Tag name is required"}

        response = await client.post(
            "/api/tags", headers=admin.headers, json={"name": "DUI", "color": "red"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid color format. Use hex format (e.g., #FF0000)"}

    async def test_officer_cannot_create(self, client: AsyncClient, officer: Actor):
        response = await client.post("/api/tags", headers=officer.headers, json={"name": "DUI"})

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    async def test_update(self, client: AsyncClient, admin: Actor):
        tag = (
            await client.post("/api/tags", headers=admin.headers, json={"name": "DUI"})
        ).json()["tag"]
        await client.post("/api/tags", headers=admin.headers, json={"name": "Traffic"})

        response = await client.patch(
            f"/api/tags/{tag['id']}",
            headers=admin.headers,
            json={"name": "Impaired Driving", "color": "#F59E0B"},
        )
        assert response.status_code == 200
        assert response.json()["tag"]["name"] == "Impaired Driving"
        assert response.json()["tag"]["color"] == "#F59E0B"

        response = await client.patch(
            f"/api/tags/{tag['id']}", headers=admin.headers, json={"name": "Traffic"}
        )
        assert response.status_code == 409
        assert response.json() == {"error": "Tag name already exists"}

        response = await client.patch(
            f"/api/tags/{tag['id']}", headers=admin.headers, json={"color": "#000000"}
        )
        assert response.status_code == 400

    async def test_update_other_organizations_tag(
        self, client: AsyncClient, admin: Actor, other_admin: Actor
    ):
        tag = (
            await client.post("/api/tags", headers=admin.headers, json={"name": "DUI"})
        ).json()["tag"]

        response = await client.patch(
            f"/api/tags/{tag['id']}", headers=other_admin.headers, json={"name": "Mine"}
        )

        assert response.status_code == 403

    async def test_delete_detaches_from_events(self, client: AsyncClient, admin: Actor):
        tag = (
            await client.post("/api/tags", headers=admin.headers, json={"name": "DUI"})
        ).json()["tag"]
        event = (
            await client.post(
                "/api/events",
                headers=admin.headers,
                json={"start_time": "2026-01-05T10:00:00Z", "tag_ids": [tag["id"]]},
            )
        ).json()["event"]
        assert len(event["tags"]) == 1

        response = await client.delete(f"/api/tags/{tag['id']}", headers=admin.headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Tag deleted successfully"}

        events = (await client.get("/api/events", headers=admin.headers)).json()["events"]
        assert events[0]["id"] == event["id"]
        assert events[0]["tags"] == []

        response = await client.delete(f"/api/tags/{tag['id']}", headers=admin.headers)
        assert response.status_code == 404
