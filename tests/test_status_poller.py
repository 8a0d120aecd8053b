"""
Tests for the periodic premium status poller
"""
import asyncio

import pytest

from crud.premium import PremiumGrantRepository
from models.premium import VerificationResult
from services.status_poller import PremiumStatusPoller, PollerRegistry
from tests.helpers import auth_headers


def _result(is_premium, error=None):
    return VerificationResult(is_premium=is_premium, last_verified="2024-01-01T00:00:00+00:00", error=error)


@pytest.mark.asyncio
async def test_start_verifies_immediately():
    calls = []

    async def verify(user_id):
        calls.append(user_id)
        return _result(True)

    poller = PremiumStatusPoller(7, verify, interval=3600)
    await poller.start()

    assert calls == [7]
    assert poller.running
    assert poller.snapshot() == {
        "is_premium": True,
        "is_loading": False,
        "error": None,
        "last_verified": "2024-01-01T00:00:00+00:00",
    }
    poller.stop()


@pytest.mark.asyncio
async def test_failed_tick_reports_not_premium_with_error():
    async def verify(user_id):
        raise RuntimeError("store unavailable")

    poller = PremiumStatusPoller(1, verify, interval=3600)
    poller.is_premium = True

    await poller.tick()

    assert poller.is_premium is False
    assert poller.error == "store unavailable"
    assert poller.is_loading is False


@pytest.mark.asyncio
async def test_fail_closed_result_surfaces_error():
    async def verify(user_id):
        return _result(False, error="timeout")

    poller = PremiumStatusPoller(1, verify, interval=3600)
    await poller.tick()

    assert poller.is_premium is False
    assert poller.error == "timeout"


@pytest.mark.asyncio
async def test_interval_ticks_repeat_until_stopped():
    calls = []

    async def verify(user_id):
        calls.append(user_id)
        return _result(True)

    poller = PremiumStatusPoller(1, verify, interval=0.01)
    await poller.start()
    await asyncio.sleep(0.1)
    poller.stop()
    count_at_stop = len(calls)
    await asyncio.sleep(0.05)

    assert count_at_stop >= 2
    assert len(calls) == count_at_stop
    assert not poller.running


@pytest.mark.asyncio
async def test_stop_resets_state():
    async def verify(user_id):
        return _result(True, error=None)

    poller = PremiumStatusPoller(1, verify, interval=3600)
    await poller.start()
    poller.stop()

    assert poller.snapshot() == {
        "is_premium": False,
        "is_loading": False,
        "error": None,
        "last_verified": None,
    }


@pytest.mark.asyncio
async def test_stop_does_not_cancel_in_flight_verification():
    """A verification running when stop() is called finishes, but its result is dropped."""
    started = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def verify(user_id):
        started.set()
        await release.wait()
        finished.append(user_id)
        return _result(True)

    poller = PremiumStatusPoller(1, verify, interval=3600)
    poller._stop_event = asyncio.Event()
    in_flight = asyncio.create_task(poller.tick())
    await started.wait()

    poller.stop()
    release.set()
    await in_flight

    assert finished == [1]
    assert poller.is_premium is False
    assert poller.is_loading is False


@pytest.mark.asyncio
async def test_next_tick_picks_up_deactivated_grant(test_db, make_user, registry):
    user = await make_user(premium=True)
    poller = PremiumStatusPoller(user.id, registry.verify, interval=3600)

    await poller.tick()
    assert poller.is_premium is True

    await PremiumGrantRepository(test_db).deactivate_by_email(user.email)
    await test_db.commit()

    await poller.tick()
    assert poller.is_premium is False


@pytest.mark.asyncio
async def test_registry_reuses_running_poller():
    calls = []

    async def verify(user_id):
        calls.append(user_id)
        return _result(False)

    registry = PollerRegistry(verify=verify, interval=3600)
    first = await registry.ensure_started(3)
    second = await registry.ensure_started(3)

    assert first is second
    assert calls == [3]

    registry.stop(3)
    assert registry.get(3) is None
    assert not first.running or first._stop_event.is_set()
    registry.stop_all()


@pytest.mark.asyncio
async def test_concurrent_starts_share_one_poller():
    """Two starts racing on the first verification end up with the same loop."""
    calls = []
    release = asyncio.Event()

    async def verify(user_id):
        calls.append(user_id)
        await release.wait()
        return _result(True)

    registry = PollerRegistry(verify=verify, interval=3600)
    racing = asyncio.gather(registry.ensure_started(5), registry.ensure_started(5))
    await asyncio.sleep(0.01)
    release.set()
    first, second = await racing

    assert first is second
    assert registry.get(5) is first
    assert first.is_premium is True
    assert calls == [5]

    registry.stop(5)
    await asyncio.sleep(0.01)
    assert not first.running


@pytest.mark.asyncio
async def test_idle_poller_stops_and_leaves_registry():
    calls = []

    async def verify(user_id):
        calls.append(user_id)
        return _result(True)

    registry = PollerRegistry(verify=verify, interval=0.01, idle_timeout=0.03)
    poller = await registry.ensure_started(8)

    await asyncio.sleep(0.15)

    assert registry.get(8) is None
    assert not poller.running
    assert poller.is_premium is False
    settled = len(calls)
    await asyncio.sleep(0.05)
    assert len(calls) == settled


@pytest.mark.asyncio
async def test_touched_poller_keeps_running():
    async def verify(user_id):
        return _result(True)

    registry = PollerRegistry(verify=verify, interval=0.01, idle_timeout=0.05)
    poller = await registry.ensure_started(9)

    for _ in range(6):
        await asyncio.sleep(0.02)
        assert await registry.ensure_started(9) is poller

    assert poller.running
    registry.stop_all()


@pytest.mark.asyncio
async def test_start_with_fresh_result_skips_first_verification():
    calls = []

    async def verify(user_id):
        calls.append(user_id)
        return _result(False)

    poller = PremiumStatusPoller(4, verify, interval=3600)
    await poller.start(initial=_result(True))

    assert calls == []
    assert poller.is_premium is True
    assert poller.is_loading is False
    poller.stop()


@pytest.mark.asyncio
async def test_status_endpoint(async_client, make_user):
    user = await make_user(premium=True)

    response = await async_client.get("/api/premium/status", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_premium"] is True
    assert data["is_loading"] is False
    assert data["error"] is None
