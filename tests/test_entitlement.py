"""
Tests for premium entitlement verification and staleness gating
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from backend.utils.errors import UserNotFoundError
from crud.premium import PremiumGrantRepository
from database_models import PremiumGrant
from services.entitlement_service import EntitlementService, is_verification_stale
from tests.helpers import auth_headers


def _iso_ago(seconds: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(seconds=seconds)).isoformat()


@pytest.mark.asyncio
async def test_verify_without_grant_is_not_premium(test_db, make_user):
    user = await make_user()

    result = await EntitlementService(test_db).verify_premium_status(user.id)

    assert result.is_premium is False
    assert result.error is None
    await test_db.refresh(user)
    assert user.is_premium is False
    assert user.last_verified == result.last_verified


@pytest.mark.asyncio
async def test_grant_email_matches_case_insensitively(test_db, make_user):
    """A grant written as A@b.com still entitles the a@b.com account."""
    user = await make_user(email="a@b.com")
    test_db.add(PremiumGrant(email="A@b.com", active=True, stripe_subscription_active=True))
    await test_db.commit()

    result = await EntitlementService(test_db).verify_premium_status(user.id)

    assert result.is_premium is True
    await test_db.refresh(user)
    assert user.is_premium is True
    assert user.stripe_subscription_active is True


@pytest.mark.asyncio
@pytest.mark.parametrize("active,subscription_active", [(False, True), (True, False), (False, False)])
async def test_grant_needs_both_flags(test_db, make_user, active, subscription_active):
    user = await make_user(email="cook@example.com")
    test_db.add(PremiumGrant(
        email="cook@example.com", active=active, stripe_subscription_active=subscription_active
    ))
    await test_db.commit()

    result = await EntitlementService(test_db).verify_premium_status(user.id)

    assert result.is_premium is False


@pytest.mark.asyncio
async def test_verification_revokes_cached_flag(test_db, make_user):
    user = await make_user(premium=True)
    service = EntitlementService(test_db)
    assert (await service.verify_premium_status(user.id)).is_premium is True

    await PremiumGrantRepository(test_db).deactivate_by_email(user.email)
    await test_db.commit()

    result = await service.verify_premium_status(user.id)
    assert result.is_premium is False
    await test_db.refresh(user)
    assert user.is_premium is False


@pytest.mark.asyncio
async def test_last_verified_updated_even_when_unchanged(test_db, make_user):
    user = await make_user()
    service = EntitlementService(test_db)

    first = await service.verify_premium_status(user.id)
    second = await service.verify_premium_status(user.id)

    assert first.is_premium == second.is_premium
    assert second.last_verified >= first.last_verified
    await test_db.refresh(user)
    assert user.last_verified == second.last_verified


@pytest.mark.asyncio
async def test_missing_user_raises(test_db):
    with pytest.raises(UserNotFoundError):
        await EntitlementService(test_db).verify_premium_status(9999)


@pytest.mark.asyncio
async def test_store_failure_fails_closed(test_db, make_user):
    user = await make_user(premium=True)
    grant_repo = PremiumGrantRepository(test_db)
    grant_repo.find_active_by_email = AsyncMock(side_effect=RuntimeError("store unavailable"))

    result = await EntitlementService(test_db, grant_repo=grant_repo).verify_premium_status(user.id)

    assert result.is_premium is False
    assert result.error == "store unavailable"
    assert result.last_verified


def test_staleness_window():
    assert is_verification_stale(None) is True
    assert is_verification_stale("not-a-date") is True
    assert is_verification_stale(_iso_ago(10), max_age_seconds=300) is False
    assert is_verification_stale(_iso_ago(301), max_age_seconds=300) is True


@pytest.mark.asyncio
async def test_ensure_fresh_trusts_recent_flag(test_db, make_user):
    """Within the window the cached flag is used as-is, without a store read."""
    user = await make_user()
    user.is_premium = True
    user.last_verified = _iso_ago(5)
    await test_db.commit()

    grant_repo = PremiumGrantRepository(test_db)
    grant_repo.find_active_by_email = AsyncMock(return_value=[])

    assert await EntitlementService(test_db, grant_repo=grant_repo).ensure_fresh(user) is True
    grant_repo.find_active_by_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_ensure_fresh_reverifies_stale_flag(test_db, make_user):
    user = await make_user()
    user.is_premium = True
    user.last_verified = _iso_ago(3600)
    await test_db.commit()

    assert await EntitlementService(test_db).ensure_fresh(user) is False
    await test_db.refresh(user)
    assert user.is_premium is False
    assert not is_verification_stale(user.last_verified)


@pytest.mark.asyncio
async def test_verify_endpoint_forces_verification(async_client, make_user):
    user = await make_user(premium=True)

    response = await async_client.post("/api/premium/verify", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["is_premium"] is True
    assert data["error"] is None
    assert data["last_verified"]
