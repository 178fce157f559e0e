"""
Tests for server inventory endpoints and derived availability.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from labbook.api.routes import servers as servers_routes

SERVER_PAYLOAD = {
    "name": "cpu-node-07",
    "specifications": {"cpu": "64 cores", "memory": "512 GB", "storage": "8 TB"},
    "location": "Rack C1",
}


@pytest.mark.asyncio
async def test_create_server(client: AsyncClient, admin_headers):
    response = await client.post("/api/servers", json=SERVER_PAYLOAD, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "cpu-node-07"
    assert data["status"] == "available"
    assert data["specifications"]["gpu"] is None
    assert data["currentBooking"] is None


@pytest.mark.asyncio
async def test_create_server_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/servers", json=SERVER_PAYLOAD, headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


@pytest.mark.asyncio
async def test_create_server_cannot_store_booked(client: AsyncClient, admin_headers):
    """Booked is derived and never accepted as a stored status."""
    response = await client.post("/api/servers", json={**SERVER_PAYLOAD, "status": "booked"}, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_servers_requires_auth(client: AsyncClient, test_server):
    response = await client.get("/api/servers")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_servers_sorted_by_name(client: AsyncClient, auth_headers, test_server, maintenance_server):
    response = await client.get("/api/servers", headers=auth_headers)
    assert response.status_code == 200
    names = [s["name"] for s in response.json()]
    assert names == ["gpu-node-01", "gpu-node-02"]


@pytest.mark.asyncio
async def test_maintenance_overrides_booking(client: AsyncClient, auth_headers, test_user, maintenance_server, make_booking, today):
    await make_booking(maintenance_server, test_user, today - timedelta(days=1), today + timedelta(days=1))

    response = await client.get(f"/api/servers/{maintenance_server.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "maintenance"


@pytest.mark.asyncio
async def test_status_follows_bookings(client: AsyncClient, auth_headers, test_user, test_server, make_booking, today):
    """Only a non-terminal booking covering today makes a server booked."""
    await make_booking(test_server, test_user, today - timedelta(days=10), today - timedelta(days=5), status="completed")
    await make_booking(test_server, test_user, today + timedelta(days=5), today + timedelta(days=10))

    response = await client.get(f"/api/servers/{test_server.id}", headers=auth_headers)
    data = response.json()
    assert data["status"] == "available"
    assert data["currentBooking"] is None
    assert len(data["bookings"]) == 2

    current = await make_booking(test_server, test_user, today, today + timedelta(days=2), status="pending_renewal")
    response = await client.get(f"/api/servers/{test_server.id}", headers=auth_headers)
    data = response.json()
    assert data["status"] == "booked"
    assert data["currentBooking"]["id"] == current.id


@pytest.mark.asyncio
async def test_get_unknown_server(client: AsyncClient, auth_headers):
    response = await client.get("/api/servers/missing", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_server(client: AsyncClient, admin_headers, test_server):
    response = await client.put(
        f"/api/servers/{test_server.id}",
        json={"status": "offline", "specifications": {"gpu": None}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "offline"
    assert data["specifications"]["gpu"] is None
    assert data["specifications"]["cpu"] == "32 cores"
    assert data["name"] == "gpu-node-01"


@pytest.mark.asyncio
async def test_update_server_requires_admin(client: AsyncClient, auth_headers, test_server):
    response = await client.put(f"/api/servers/{test_server.id}", json={"name": "mine"}, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_server(client: AsyncClient, admin_headers, test_server):
    response = await client.delete(f"/api/servers/{test_server.id}", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/servers/{test_server.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_server_in_use(client: AsyncClient, admin_headers, test_user, test_server, make_booking, today):
    await make_booking(test_server, test_user, today + timedelta(days=1), today + timedelta(days=3))

    response = await client.delete(f"/api/servers/{test_server.id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "ServerInUse"


@pytest.mark.asyncio
async def test_cache_dropped_after_commit(client: AsyncClient, db_session, admin_headers, monkeypatch):
    """Inventory changes are committed before the server cache is invalidated."""
    open_transaction = []

    async def record_invalidation():
        open_transaction.append(db_session.in_transaction())

    monkeypatch.setattr(servers_routes, "invalidate_server_cache", record_invalidation)

    created = await client.post("/api/servers", json=SERVER_PAYLOAD, headers=admin_headers)
    server_id = created.json()["id"]
    updated = await client.put(
        f"/api/servers/{server_id}", json={"location": "Rack C2"}, headers=admin_headers
    )
    deleted = await client.delete(f"/api/servers/{server_id}", headers=admin_headers)

    assert [r.status_code for r in (created, updated, deleted)] == [201, 200, 200]
    assert open_transaction == [False, False, False]
