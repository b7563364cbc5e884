"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags race         # Many clients, one celebrity slot
  locust -f locustfile.py --tags throughput   # Catalog cache + availability reads
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Tokens are minted with the service's SECRET_KEY, so run locust with the
same environment as the API.
"""

import random
import uuid
from datetime import datetime, timezone, timedelta

import requests
from locust import HttpUser, task, between, tag, events

from booking_engine.core.security import create_access_token

# Shared state
CATALOG = {}
RACE_SLOT_START = None


def token_headers(role: str, subject: str = None) -> dict:
    token = create_access_token({"sub": subject or f"load-{uuid.uuid4().hex[:8]}", "role": role})
    return {"Authorization": f"Bearer {token}"}


def random_email():
    return f"load_{uuid.uuid4().hex[:10]}@load-test.io"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: one celebrity, one service, one fee tier of each kind."""
    print("\n" + "="*60)
    print("SETUP: Creating race-test catalog...")
    print("="*60)

    host = environment.host
    manager = token_headers("manager", "load-manager")
    celebrity = requests.post(f"{host}/api/v1/celebrities", json={
        "name": "Load Test Star",
        "category": "music",
        "typical_fee_min": 1_000_000,
        "typical_fee_max": 5_000_000,
    }, headers=manager).json()
    service = requests.post(f"{host}/api/v1/celebrities/{celebrity['id']}/services", json={
        "name": "Keynote",
        "base_price": 2_500_000,
        "add_ons": [{"name": "Meet and greet", "price": 100_000}],
    }, headers=manager).json()
    for kind, code, amount in (("travel", "local", 0), ("security", "standard", 50_000)):
        requests.post(f"{host}/api/v1/fee-tiers", json={
            "kind": kind, "code": code, "amount": amount,
        }, headers=manager)

    CATALOG.update(celebrity_id=celebrity["id"], service_id=service["id"])
    start = (datetime.now(timezone.utc) + timedelta(days=60)).replace(hour=14, minute=0, second=0, microsecond=0)
    globals()["RACE_SLOT_START"] = start
    print(f"\n✓ Celebrity {celebrity['id']}, contested slot {start.isoformat()}\n")


def booking_payload(event_start: datetime) -> dict:
    return {
        "celebrity_id": CATALOG["celebrity_id"],
        "service_id": CATALOG["service_id"],
        "event_start": event_start.isoformat(),
        "event_duration_minutes": 30,
        "client_contact": {"name": "Load Client", "email": random_email()},
        "distance_tier": "local",
        "security_tier": "standard",
        "terms_accepted": True,
    }


class SlotRaceUser(HttpUser):
    """
    TEST 1: Interval exclusivity - N clients -> 1 slot

    Run: locust -f locustfile.py --tags race -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM reserved_intervals WHERE celebrity_id = X;
    Should be exactly 1 for the contested slot.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = token_headers("client")

    @tag("race")
    @task
    def confirm_contested_slot(self):
        """Everyone fights for the same 30 minutes."""
        if not CATALOG:
            return

        resp = self.client.post("/api/v1/bookings/", json=booking_payload(RACE_SLOT_START),
                                headers=self.headers, name="/api/v1/bookings/ [draft]")
        if resp.status_code != 201:
            return
        booking_id = resp.json()["booking_id"]

        with self.client.post(f"/api/v1/bookings/{booking_id}/confirm",
            json={"payment_method_ref": "pm_card_visa"},
            headers=self.headers,
            name="/api/v1/bookings/{id}/confirm",
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code in (409, 503):
                resp.success()  # Expected: slot taken / lock busy
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - cached catalog vs. uncached availability

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = token_headers("client")

    @tag("throughput", "read")
    @task(10)
    def list_services_cached(self):
        if CATALOG:
            self.client.get(f"/api/v1/celebrities/{CATALOG['celebrity_id']}/services",
                name="/api/v1/celebrities/{id}/services [cached]")

    @tag("throughput", "read")
    @task(5)
    def check_availability(self):
        if CATALOG:
            start = RACE_SLOT_START + timedelta(minutes=15 * random.randint(-8, 8))
            self.client.get("/api/v1/availability", params={
                "celebrity_id": CATALOG["celebrity_id"],
                "event_start": start.isoformat(),
                "duration_minutes": 30,
            }, headers=self.headers, name="/api/v1/availability")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = token_headers("client")

    @tag("edge")
    @task
    def unknown_service(self):
        if not CATALOG:
            return
        payload = booking_payload(RACE_SLOT_START + timedelta(days=1))
        payload["service_id"] = str(uuid.uuid4())
        with self.client.post("/api/v1/bookings/", json=payload, headers=self.headers,
                              catch_response=True) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def past_event(self):
        if not CATALOG:
            return
        payload = booking_payload(datetime.now(timezone.utc) - timedelta(days=1))
        with self.client.post("/api/v1/bookings/", json=payload, headers=self.headers,
                              catch_response=True) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def zero_duration(self):
        if not CATALOG:
            return
        payload = booking_payload(RACE_SLOT_START)
        payload["event_duration_minutes"] = 0
        with self.client.post("/api/v1/bookings/", json=payload, headers=self.headers,
                              catch_response=True) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"celebrity_id": "x"},
            catch_response=True
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
