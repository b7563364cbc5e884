"""
Tests for the managed email blacklist and its risk signal.
"""

import pytest
from httpx import AsyncClient

from conftest import REVIEWER_ID, unique_email

BLACKLIST = "/api/v1/blacklist/emails"


@pytest.mark.asyncio
async def test_add_and_list_blacklisted_emails(client: AsyncClient, reviewer_headers):
    first = await client.post(BLACKLIST, json={"email": "Chargeback@Example.com", "reason": "chargebacks"},
                              headers=reviewer_headers)
    assert first.status_code == 201
    assert first.json()["email"] == "chargeback@example.com"
    assert first.json()["added_by"] == REVIEWER_ID
    second = await client.post(BLACKLIST, json={"email": "impostor@example.com"}, headers=reviewer_headers)
    assert second.status_code == 201

    response = await client.get(BLACKLIST, headers=reviewer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["email"] for e in data["entries"]] == ["impostor@example.com", "chargeback@example.com"]
    assert data["entries"][1]["reason"] == "chargebacks"


@pytest.mark.asyncio
async def test_duplicate_email_conflicts(client: AsyncClient, manager_headers):
    await client.post(BLACKLIST, json={"email": "twice@example.com"}, headers=manager_headers)
    response = await client.post(BLACKLIST, json={"email": "TWICE@example.com"}, headers=manager_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "already_exists"


@pytest.mark.asyncio
async def test_remove_blacklisted_email(client: AsyncClient, reviewer_headers):
    await client.post(BLACKLIST, json={"email": "gone@example.com"}, headers=reviewer_headers)

    response = await client.delete(f"{BLACKLIST}/Gone@Example.com", headers=reviewer_headers)
    assert response.status_code == 204
    assert (await client.get(BLACKLIST, headers=reviewer_headers)).json()["total"] == 0

    missing = await client.delete(f"{BLACKLIST}/gone@example.com", headers=reviewer_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_client_cannot_manage_blacklist(client: AsyncClient, client_headers):
    assert (await client.get(BLACKLIST, headers=client_headers)).status_code == 403
    response = await client.post(BLACKLIST, json={"email": "someone@example.com"}, headers=client_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_blacklisted_contact_goes_to_review(client: AsyncClient, client_headers, reviewer_headers,
                                                  booking_payload):
    """blacklisted_email (50) + new client domain (15) = 65, MEDIUM."""
    email = unique_email()
    await client.post(BLACKLIST, json={"email": email.upper()}, headers=reviewer_headers)

    payload = booking_payload(client_contact={"name": "Sam Rivera", "email": email})
    created = await client.post("/api/v1/bookings/", json=payload, headers=client_headers)
    booking_id = created.json()["booking_id"]
    response = await client.post(f"/api/v1/bookings/{booking_id}/confirm",
                                 json={"payment_method_ref": "pm_card_visa"}, headers=client_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "pending"
    assert response.json()["risk_level"] == "MEDIUM"

    assessment = await client.get(f"/api/v1/assessments/{response.json()['assessment_id']}",
                                  headers=reviewer_headers)
    factors = {f["type"]: f for f in assessment.json()["risk_factors"]}
    assert factors["blacklisted_email"]["severity"] == "HIGH"
    assert factors["blacklisted_email"]["description"] == "Email address is blacklisted"
    assert assessment.json()["risk_score"] == 65
