"""Integration tests for the own-profile and organization settings endpoints."""

import pytest
from conftest import Actor, signup
from httpx import AsyncClient


@pytest.mark.asyncio
class TestProfile:
    async def test_get_profile(self, client: AsyncClient, admin: Actor):
        response = await client.get("/api/profile", headers=admin.headers)

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["id"] == str(admin.user_id)
        assert profile["email"] == admin.email
        assert profile["role"] == "admin"
        assert profile["theme"] == "light"
        assert profile["organization"] == {
            "id": str(admin.organization_id),
            "name": "Metro Police",
        }

    async def test_identity_without_profile(self, client: AsyncClient):
        actor = await signup(client, "fresh@example.com")

        response = await client.get("/api/profile", headers=actor.headers)

        assert response.status_code == 401
        assert response.json() == {"error": "User profile not found"}

    async def test_update_profile(self, client: AsyncClient, officer: Actor):
        response = await client.patch(
            "/api/profile",
            headers=officer.headers,
            json={"full_name": " Oscar O. ", "badge_no": "4471", "theme": "dark"},
        )

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["full_name"] == "Oscar O."
        assert profile["badge_no"] == "4471"
        assert profile["theme"] == "dark"

        # explicit null clears the badge number, omitted fields are kept
        response = await client.patch(
            "/api/profile", headers=officer.headers, json={"badge_no": None}
        )
        profile = response.json()["profile"]
        assert profile["badge_no"] is None
        assert profile["theme"] == "dark"

    async def test_update_profile_validation(self, client: AsyncClient, officer: Actor):
        response = await client.patch("/api/profile", headers=officer.headers, json={})
        assert response.status_code == 400
        assert response.json() == {"error": "No valid fields to update"}

        response = await client.patch(
            "/api/profile", headers=officer.headers, json={"full_name": None}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Full name cannot be empty"}


@pytest.mark.asyncio
class TestOrganization:
    async def test_rename(self, client: AsyncClient, admin: Actor):
        response = await client.patch(
            "/api/organizations", headers=admin.headers, json={"name": "  Metro PD  "}
        )

        assert response.status_code == 200
        assert response.json()["organization"]["name"] == "Metro PD"

        profile = (await client.get("/api/profile", headers=admin.headers)).json()["profile"]
        assert profile["organization"]["name"] == "Metro PD"

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({}, "No valid fields to update"),
            ({"name": "   "}, "Organization name must be a non-empty string"),
            ({"name": 42}, "Organization name must be a non-empty string"),
        ],
    )
    async def test_rename_validation(self, client: AsyncClient, admin: Actor, payload, message):
        response = await client.patch("/api/organizations", headers=admin.headers, json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": message}

    async def test_rename_admin_only(self, client: AsyncClient, officer: Actor):
        response = await client.patch(
            "/api/organizations", headers=officer.headers, json={"name": "Mine"}
        )

        assert response.status_code == 403
