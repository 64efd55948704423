"""Tests for plan gating dependencies: entitlement and capacity checks."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.billing.dependencies import (
    UPGRADE_URL,
    check_featured_limit,
    check_vehicle_limit,
    get_plan_config,
    require_entitlement,
)
from rxautos.billing.usage import UsageUnavailableError
from rxautos.models.profile import Profile
from rxautos.models.vehicle import Vehicle


async def _add_vehicles(db_session: AsyncSession, owner: Profile, count: int, featured: bool = False) -> None:
    for i in range(count):
        db_session.add(
            Vehicle(
                owner_id=owner.id,
                brand="Volkswagen",
                model=f"Gol {i}",
                model_year=2018,
                price=Decimal("38000.00"),
                is_featured=featured,
            )
        )
    await db_session.flush()


class TestVehicleLimit:
    @pytest.mark.asyncio
    async def test_under_limit_returns_decision(self, db_session, basic_user):
        await _add_vehicles(db_session, basic_user, 2)
        decision = await check_vehicle_limit(db=db_session, user=basic_user)
        assert decision.permitted
        assert decision.current_count == 2

    @pytest.mark.asyncio
    async def test_at_limit_raises_402(self, db_session, basic_user):
        await _add_vehicles(db_session, basic_user, 5)
        with pytest.raises(HTTPException) as exc_info:
            await check_vehicle_limit(db=db_session, user=basic_user)

        assert exc_info.value.status_code == 402
        assert exc_info.value.detail == {
            "message": "Limit of 5 vehicles reached for the Básico plan",
            "limit": 5,
            "current": 5,
            "plan": "basico",
            "upgrade_url": UPGRADE_URL,
        }

    @pytest.mark.asyncio
    async def test_ilimitado_never_raises(self, db_session, make_profile):
        owner = await make_profile(plan="ilimitado")
        await _add_vehicles(db_session, owner, 12)
        decision = await check_vehicle_limit(db=db_session, user=owner)
        assert decision.max_allowed is None


class TestFeaturedLimit:
    @pytest.mark.asyncio
    async def test_basico_raises_402(self, db_session, basic_user):
        with pytest.raises(HTTPException) as exc_info:
            await check_featured_limit(db=db_session, user=basic_user)
        assert exc_info.value.status_code == 402
        assert exc_info.value.detail["limit"] == 0

    @pytest.mark.asyncio
    async def test_profissional_full_raises_402(self, db_session, test_user):
        await _add_vehicles(db_session, test_user, 3, featured=True)
        with pytest.raises(HTTPException) as exc_info:
            await check_featured_limit(db=db_session, user=test_user)
        assert exc_info.value.detail["current"] == 3
        assert exc_info.value.detail["plan"] == "profissional"


class TestRequireEntitlement:
    @pytest.mark.asyncio
    async def test_entitled_returns_entitlement(self, db_session, test_user):
        entitlement = await require_entitlement(db=db_session, user=test_user)
        assert entitlement.code == "subscription_active"

    @pytest.mark.asyncio
    async def test_not_entitled_raises_402(self, db_session, basic_user):
        with pytest.raises(HTTPException) as exc_info:
            await require_entitlement(db=db_session, user=basic_user)
        assert exc_info.value.status_code == 402
        assert exc_info.value.detail["code"] == "no_subscription"
        assert exc_info.value.detail["upgrade_url"] == UPGRADE_URL


class TestPlanConfig:
    @pytest.mark.asyncio
    async def test_unknown_plan_resolves_to_basico(self, make_profile):
        user = await make_profile(plan=None)
        plan = await get_plan_config(user=user)
        assert plan.name == "basico"


class TestUsageUnavailable:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("dependency", "counter"),
        [(check_vehicle_limit, "count_vehicles"), (check_featured_limit, "count_featured_vehicles")],
    )
    async def test_unknown_usage_raises_503(self, db_session, test_user, dependency, counter):
        with patch(
            f"rxautos.billing.access.{counter}",
            new_callable=AsyncMock,
            side_effect=UsageUnavailableError(test_user.id, "vehicles"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await dependency(db=db_session, user=test_user)

        assert exc_info.value.status_code == 503
        assert exc_info.value.detail == "Usage is temporarily unavailable"
