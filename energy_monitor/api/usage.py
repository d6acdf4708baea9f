"""
Usage and cost endpoints backed by the aggregation engine.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-006)
- 2026-10-07: Cost analysis reports integrated kWh (STORY-007)

TODO:
- None
"""

from fastapi import APIRouter

from energy_monitor.api.deps import AppSettings, Store
from energy_monitor.services.aggregation import (
    cost_analysis,
    daily_rollup,
    estimate_cost,
    hourly_average,
    monthly_usage,
    today_usage,
)

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/daily-data")
async def get_daily_data(store: Store) -> list[dict]:
    """Average power per hour-of-day over the last 24 hours."""
    return await hourly_average(store)


@router.get("/today-usage")
async def get_today_usage(store: Store) -> dict:
    """Energy used today (UTC) in kWh, formatted to three decimals."""
    usage = await today_usage(store)
    return {"usage": f"{usage.kwh:.3f}", "readings": usage.readings}


@router.get("/monthly-usage")
async def get_monthly_usage(store: Store, settings: AppSettings) -> dict:
    """Energy used this month in kWh and its estimated cost."""
    usage = await monthly_usage(store)
    cost = estimate_cost(usage.kwh, settings.UNIT_PRICE_PER_KWH)
    return {
        "usage": f"{usage.kwh:.3f}",
        "cost": f"{cost:.2f}",
        "readings": usage.readings,
    }


@router.get("/cost-analysis")
async def get_cost_analysis(store: Store, settings: AppSettings) -> list[dict]:
    """Integrated usage and cost for each month with readings."""
    return await cost_analysis(store, settings.UNIT_PRICE_PER_KWH)


@router.get("/all-data")
async def get_all_data(store: Store) -> list[dict]:
    """Per-date reading count and power statistics, newest date first."""
    return await daily_rollup(store)
