"""
Tests for catalog endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_celebrity(client: AsyncClient, manager_headers):
    response = await client.post("/api/v1/celebrities", json={
        "name": "Riley Quinn",
        "category": "sports",
        "deposit_rate_bps": 3000,
        "typical_fee_min": 500_000,
        "typical_fee_max": 2_000_000,
    }, headers=manager_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Riley Quinn"
    assert data["available"] is True
    assert data["deposit_rate_bps"] == 3000

    fetched = await client.get(f"/api/v1/celebrities/{data['id']}")
    assert fetched.status_code == 200


@pytest.mark.asyncio
async def test_client_cannot_edit_catalog(client: AsyncClient, client_headers):
    response = await client.post("/api/v1/celebrities", json={"name": "Nope"}, headers=client_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_inverted_fee_range_rejected(client: AsyncClient, manager_headers):
    response = await client.post("/api/v1/celebrities", json={
        "name": "Riley Quinn",
        "typical_fee_min": 2_000_000,
        "typical_fee_max": 500_000,
    }, headers=manager_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_celebrity(client: AsyncClient):
    response = await client.get("/api/v1/celebrities/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_and_list_services(client: AsyncClient, manager_headers, celebrity):
    response = await client.post(f"/api/v1/celebrities/{celebrity.id}/services", json={
        "name": "Private concert",
        "base_price": 4_000_000,
        "add_ons": [{"name": "Photo session", "price": 50_000}, {"name": "Signed merchandise", "price": 20_000}],
    }, headers=manager_headers)
    assert response.status_code == 201
    service = response.json()
    assert service["celebrity_id"] == celebrity.id
    assert sorted(a["price"] for a in service["add_ons"]) == [20_000, 50_000]

    listing = await client.get(f"/api/v1/celebrities/{celebrity.id}/services")
    assert listing.status_code == 200
    data = listing.json()
    assert data["total"] == 1
    assert data["cached"] is False
    assert data["services"][0]["id"] == service["id"]


@pytest.mark.asyncio
async def test_service_for_unknown_celebrity(client: AsyncClient, manager_headers):
    response = await client.post("/api/v1/celebrities/missing/services", json={
        "name": "Keynote",
        "base_price": 1_000_000,
    }, headers=manager_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_negative_price_rejected(client: AsyncClient, manager_headers, celebrity):
    response = await client.post(f"/api/v1/celebrities/{celebrity.id}/services", json={
        "name": "Keynote",
        "base_price": -1,
    }, headers=manager_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_fee_tiers(client: AsyncClient, manager_headers):
    for payload in (
        {"kind": "travel", "code": "local", "amount": 0},
        {"kind": "travel", "code": "international", "amount": 1_500_000},
        {"kind": "security", "code": "standard", "amount": 50_000},
    ):
        response = await client.post("/api/v1/fee-tiers", json=payload, headers=manager_headers)
        assert response.status_code == 201

    travel = (await client.get("/api/v1/fee-tiers", params={"kind": "travel"})).json()
    assert [t["code"] for t in travel] == ["local", "international"]


@pytest.mark.asyncio
async def test_duplicate_fee_tier_rejected(client: AsyncClient, manager_headers):
    payload = {"kind": "security", "code": "vip", "amount": 400_000}
    assert (await client.post("/api/v1/fee-tiers", json=payload, headers=manager_headers)).status_code == 201

    response = await client.post("/api/v1/fee-tiers", json=payload, headers=manager_headers)
    assert response.status_code == 422
    assert response.json()["field"] == "code"


@pytest.mark.asyncio
async def test_unknown_fee_tier_kind_rejected(client: AsyncClient, manager_headers):
    response = await client.post("/api/v1/fee-tiers", json={"kind": "catering", "code": "x", "amount": 1},
                                 headers=manager_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_health_echoes_request_id(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "trace-42"})
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"] == "trace-42"


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient):
    await client.get("/health")
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "http_request_latency_seconds" in response.text
