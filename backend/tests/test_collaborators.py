"""
Tests for the payment gateway, notifier and reservation lock adapters.
"""

import asyncio

import pytest

from booking_engine.services.lock_service import RedisReservationLock
from booking_engine.services.interfaces.local_lock import LocalReservationLock
from booking_engine.services.notification_service import LogNotifier, RedisNotifier
from booking_engine.services.payment_service import HttpPaymentGateway, SandboxPaymentGateway


@pytest.mark.asyncio
async def test_sandbox_gateway_collects_and_declines():
    gateway = SandboxPaymentGateway()

    ok = await gateway.collect("b-1", 1_615_000, "USD", "pm_card_visa", "deposit")
    assert ok.success is True
    assert ok.reference.startswith("sandbox_")

    declined = await gateway.collect("b-2", 1_615_000, "USD", "pm_declined_insufficient_funds", "deposit")
    assert declined.success is False
    assert declined.failure_reason == "card_declined"

    refund = await gateway.refund("b-1", 1_615_000, "USD", ok.reference)
    assert refund.success is True
    assert [entry["operation"] for entry in gateway.ledger] == ["collect", "collect", "refund"]


@pytest.mark.asyncio
async def test_http_gateway_unreachable_is_a_failed_result():
    gateway = HttpPaymentGateway(base_url="http://127.0.0.1:9", api_key="test", timeout=0.5)
    result = await gateway.collect("b-1", 100, "USD", "pm_card_visa", "deposit")
    assert result.success is False
    assert result.failure_reason == "gateway_unavailable"


@pytest.mark.asyncio
async def test_notifiers_tolerate_missing_redis():
    await LogNotifier().publish("booking.confirmed", {"booking_id": "b-1"})
    # Redis is disabled in tests; publishing is logged and dropped
    await RedisNotifier(channel="test-events").publish("booking.confirmed", {"booking_id": "b-1"})


@pytest.mark.asyncio
async def test_local_lock_serializes_same_celebrity():
    lock = LocalReservationLock()
    order = []

    async def hold(name: str):
        async with lock.hold("celebrity-1"):
            order.append(f"{name}:in")
            await asyncio.sleep(0.01)
            order.append(f"{name}:out")

    await asyncio.gather(hold("a"), hold("b"))
    assert order in (["a:in", "a:out", "b:in", "b:out"], ["b:in", "b:out", "a:in", "a:out"])
    assert lock.active_keys() == set()


@pytest.mark.asyncio
async def test_local_lock_does_not_block_other_celebrities():
    lock = LocalReservationLock()
    async with lock.hold("celebrity-1"):
        await asyncio.wait_for(_enter(lock, "celebrity-2"), timeout=1)


async def _enter(lock, celebrity_id):
    async with lock.hold(celebrity_id):
        return True


@pytest.mark.asyncio
async def test_redis_lock_degrades_to_local_without_redis():
    lock = RedisReservationLock(timeout=5, blocking_timeout=1)
    async with lock.hold("celebrity-1"):
        assert lock.fallback.active_keys() == {"celebrity-1"}
    assert lock.fallback.active_keys() == set()
