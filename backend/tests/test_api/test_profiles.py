"""Tests for the profile endpoints."""

import pytest
from httpx import AsyncClient

from rxautos.models.profile import Profile

pytestmark = pytest.mark.asyncio


class TestProfile:
    async def test_get_me(self, client: AsyncClient, test_user: Profile, auth_headers: dict) -> None:
        response = await client.get("/api/v1/profiles/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == str(test_user.id)
        assert response.json()["plan"] == "profissional"

    async def test_update_contact(self, client: AsyncClient, test_user: Profile, auth_headers: dict) -> None:
        response = await client.patch(
            "/api/v1/profiles/me",
            json={"full_name": "Ana Paula", "phone": "(21) 3456-7890", "document": "11.222.333/0001-81"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["full_name"] == "Ana Paula"
        assert response.json()["phone"] == "2134567890"
        assert test_user.document == "11222333000181"

    async def test_invalid_document(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch("/api/v1/profiles/me", json={"document": "123.456.789-00"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "document"

    async def test_invalid_phone(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.patch("/api/v1/profiles/me", json={"phone": "999"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "phone"

    async def test_plan_is_not_editable(self, client: AsyncClient, test_user: Profile, auth_headers: dict) -> None:
        response = await client.patch("/api/v1/profiles/me", json={"plan": "ilimitado"}, headers=auth_headers)
        assert response.status_code == 200
        assert test_user.plan == "profissional"
