"""
Tests for the risk review queue.
"""

import pytest
from httpx import AsyncClient

from conftest import future_slot


async def pending_review(client: AsyncClient, headers: dict, payload: dict) -> tuple[str, str]:
    """Create and confirm a booking that lands in review; returns (booking_id, assessment_id)."""
    created = await client.post("/api/v1/bookings/", json=payload, headers=headers)
    booking_id = created.json()["booking_id"]
    confirmed = await client.post(
        f"/api/v1/bookings/{booking_id}/confirm",
        json={"payment_method_ref": "pm_card_visa"},
        headers=headers,
    )
    assert confirmed.json()["status"] == "pending"
    return booking_id, confirmed.json()["assessment_id"]


@pytest.mark.asyncio
async def test_review_queue_lists_pending(client: AsyncClient, client_headers, reviewer_headers, booking_payload):
    booking_id, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))

    response = await client.get("/api/v1/assessments/", params={"review_status": "pending"},
                                headers=reviewer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["assessments"][0]["id"] == assessment_id
    assert data["assessments"][0]["booking_id"] == booking_id


@pytest.mark.asyncio
async def test_client_cannot_see_queue(client: AsyncClient, client_headers):
    response = await client.get("/api/v1/assessments/", headers=client_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_approval_admits_booking(client: AsyncClient, client_headers, reviewer_headers,
                                       booking_payload, notifier):
    booking_id, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))

    response = await client.post(
        f"/api/v1/assessments/{assessment_id}/review",
        json={"decision": "approved", "notes": "Verified corporate client"},
        headers=reviewer_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["review_status"] == "approved"
    assert data["booking_status"] == "confirmed"
    assert data["conflicts"] == []
    assert notifier.types() == ["booking.confirmed"]

    assessment = (await client.get(f"/api/v1/assessments/{assessment_id}", headers=reviewer_headers)).json()
    assert assessment["reviewer_id"] == "reviewer-1"
    assert assessment["reviewer_notes"] == "Verified corporate client"
    assert assessment["reviewed_at"] is not None


@pytest.mark.asyncio
async def test_under_review_then_approve(client: AsyncClient, client_headers, reviewer_headers, booking_payload):
    booking_id, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))

    claimed = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                json={"decision": "under_review"}, headers=reviewer_headers)
    assert claimed.status_code == 200
    assert claimed.json()["booking_status"] == "pending"

    approved = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                 json={"decision": "approved"}, headers=reviewer_headers)
    assert approved.json()["booking_status"] == "confirmed"


@pytest.mark.asyncio
async def test_rejection_declines_and_refunds(client: AsyncClient, client_headers, reviewer_headers,
                                              booking_payload, gateway, notifier):
    booking_id, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))

    response = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                 json={"decision": "rejected"}, headers=reviewer_headers)
    assert response.status_code == 200
    assert response.json()["booking_status"] == "rejected"
    assert [e["amount"] for e in gateway.ledger if e["operation"] == "refund"] == [1_615_000]
    assert notifier.types() == ["booking.rejected"]


@pytest.mark.asyncio
async def test_resolved_assessment_is_final(client: AsyncClient, client_headers, reviewer_headers, booking_payload):
    _, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))
    await client.post(f"/api/v1/assessments/{assessment_id}/review",
                      json={"decision": "escalated"}, headers=reviewer_headers)

    response = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                 json={"decision": "approved"}, headers=reviewer_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "already_resolved"


@pytest.mark.asyncio
async def test_only_reviewers_decide(client: AsyncClient, client_headers, manager_headers, booking_payload):
    _, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))

    for headers in (client_headers, manager_headers):
        response = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                     json={"decision": "approved"}, headers=headers)
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_decision_rejected(client: AsyncClient, client_headers, reviewer_headers, booking_payload):
    _, assessment_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))
    response = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                 json={"decision": "pending"}, headers=reviewer_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_approval_with_taken_slot_stays_pending(client: AsyncClient, client_headers, reviewer_headers,
                                                      booking_payload, insert_booking):
    """The slot is only reserved at admission; if it is gone, conflicts come back."""
    start = future_slot(hour=11)
    booking_id, assessment_id = await pending_review(
        client, client_headers, booking_payload(event_start=start, budget=8_000_000)
    )
    taken = await insert_booking(start, duration=60, status="confirmed")

    response = await client.post(f"/api/v1/assessments/{assessment_id}/review",
                                 json={"decision": "approved"}, headers=reviewer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["review_status"] == "approved"
    assert data["booking_status"] == "pending"
    assert [c["booking_id"] for c in data["conflicts"]] == [taken.id]


@pytest.mark.asyncio
async def test_reassess_supersedes_previous(client: AsyncClient, client_headers, reviewer_headers, booking_payload):
    booking_id, first_id = await pending_review(client, client_headers, booking_payload(budget=8_000_000))

    response = await client.post(f"/api/v1/bookings/{booking_id}/reassess", headers=reviewer_headers)
    assert response.status_code == 200
    second_id = response.json()["assessment_id"]
    assert second_id != first_id

    history = (await client.get("/api/v1/assessments/", params={"booking_id": booking_id,
                                                                "include_superseded": True},
                                headers=reviewer_headers)).json()
    assert history["total"] == 2
    current = [a for a in history["assessments"] if a["is_current"]]
    assert [a["id"] for a in current] == [second_id]

    stale = await client.post(f"/api/v1/assessments/{first_id}/review",
                              json={"decision": "approved"}, headers=reviewer_headers)
    assert stale.status_code == 409
    assert stale.json()["error"] == "already_resolved"


@pytest.mark.asyncio
async def test_reassess_requires_pending(client: AsyncClient, client_headers, reviewer_headers, booking_payload):
    created = await client.post("/api/v1/bookings/", json=booking_payload(), headers=client_headers)
    booking_id = created.json()["booking_id"]
    response = await client.post(f"/api/v1/bookings/{booking_id}/reassess", headers=reviewer_headers)
    assert response.status_code == 409
