"""
Tests for user administration endpoints.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_users_admin_only(client: AsyncClient, auth_headers, admin_headers):
    assert (await client.get("/api/users", headers=auth_headers)).status_code == 403

    response = await client.get("/api/users", headers=admin_headers)
    assert response.status_code == 200
    emails = {u["email"] for u in response.json()}
    assert emails == {"test@example.com", "admin@example.com"}


@pytest.mark.asyncio
async def test_admin_creates_admin(client: AsyncClient, admin_headers):
    response = await client.post("/api/users", json={
        "name": "Second Admin",
        "email": "admin2@example.com",
        "password": "Secure123",
        "isAdmin": True,
    }, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["isAdmin"] is True


@pytest.mark.asyncio
async def test_get_user_with_bookings(client: AsyncClient, auth_headers, test_user, test_server, make_booking, today):
    await make_booking(test_server, test_user, today + timedelta(days=1), today + timedelta(days=2))

    response = await client.get(f"/api/users/{test_user.id}", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "test@example.com"
    assert len(data["bookings"]) == 1
    assert data["bookings"][0]["server"]["name"] == "gpu-node-01"


@pytest.mark.asyncio
async def test_get_other_user_forbidden(client: AsyncClient, other_headers, test_user):
    response = await client.get(f"/api/users/{test_user.id}", headers=other_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_toggle_admin(client: AsyncClient, admin_headers, test_user):
    response = await client.patch(f"/api/users/{test_user.id}/toggle-admin", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["isAdmin"] is True

    response = await client.patch(f"/api/users/{test_user.id}/toggle-admin", headers=admin_headers)
    assert response.json()["isAdmin"] is False


@pytest.mark.asyncio
async def test_admin_cannot_toggle_self(client: AsyncClient, admin_headers, admin_user):
    response = await client.patch(f"/api/users/{admin_user.id}/toggle-admin", headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, admin_headers, other_user):
    response = await client.delete(f"/api/users/{other_user.id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/users/{other_user.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(client: AsyncClient, admin_headers, admin_user):
    response = await client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_user_requires_admin(client: AsyncClient, auth_headers, other_user):
    response = await client.delete(f"/api/users/{other_user.id}", headers=auth_headers)
    assert response.status_code == 403
