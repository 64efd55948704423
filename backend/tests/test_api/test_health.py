"""Tests for the health and root endpoints."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "RX Autos"}


async def test_root_reports_billing_mode(client: AsyncClient) -> None:
    response = await client.get("/")
    assert response.json()["billing_sandbox"] is False
    assert response.json()["docs"] == "/docs"
