from __future__ import annotations

import math
from typing import List, Optional, Tuple

from storesim.findings import AutomationFinding, Category, FindingCode, Severity, finding
from storesim.models import GameState
from storesim.policy import InvariantPolicy
from storesim.query import CurrentStats
from storesim.settlement import SupplyDemandResult

# attribute -> (min, max)
GROWTH_RANGES = {
    "launch_progress": (0.0, 100.0),
    "awareness_factor": (0.25, 1.0),
    "awareness_stock": (0.0, 100.0),
    "campaign_pulse": (0.0, 60.0),
    "trust_confidence": (0.0, 1.0),
    "repeat_intent": (0.0, 100.0),
}


def _numbers(state: GameState, cur: CurrentStats) -> List[Tuple[str, float]]:
    return [
        ("cash", state.cash),
        ("weekly_revenue", state.weekly_revenue),
        ("weekly_variable_cost", state.weekly_variable_cost),
        ("weekly_fixed_cost", state.weekly_fixed_cost),
        ("exposure", state.exposure),
        ("reputation", state.reputation),
        ("cleanliness", state.cleanliness),
        ("profit", cur.profit),
    ]


def check_week(
    prev: GameState,
    state: GameState,
    cur: CurrentStats,
    sd: Optional[SupplyDemandResult],
    policy: Optional[InvariantPolicy] = None,
) -> Tuple[List[AutomationFinding], bool]:
    """Check one simulated week (prev -> state) for engine or balance anomalies.

    Returns the findings and whether a low-fulfillment week still saw a
    platform exposure rise.
    """

    policy = policy or InvariantPolicy()
    week = state.current_week
    out: List[AutomationFinding] = []

    def add(severity: Severity, category: Category, code: FindingCode, module: Optional[str] = None, **payload) -> None:
        out.append(finding(severity, category, code, suspected_module=module, week=week, **payload))

    for label, value in _numbers(state, cur):
        if not math.isfinite(value):
            add(Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.NON_FINITE_NUMBER, "engine", label=label, value=value)

    if not 0 <= state.exposure <= 100:
        add(Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.EXPOSURE_OUT_OF_RANGE, "engine", value=state.exposure)
    if not 0 <= state.reputation <= 100:
        add(Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.REPUTATION_OUT_OF_RANGE, "engine", value=state.reputation)

    tol = policy.growth_tolerance
    for attr, (lo, hi) in GROWTH_RANGES.items():
        value = getattr(state.growth, attr)
        if not math.isfinite(value) or value < lo - tol or value > hi + tol:
            add(
                Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.GROWTH_SYSTEM_OUT_OF_RANGE, "growth",
                label=f"growth.{attr}", value=value, min=lo, max=hi,
            )

    platform_sum = sum(p.platform_exposure for p in state.delivery.platforms)
    gap = abs(platform_sum - state.delivery.total_platform_exposure)
    if gap > policy.platform_sum_tolerance:
        add(Severity.WARNING, Category.ENGINE_BUG, FindingCode.DELIVERY_EXPOSURE_SUM_MISMATCH, "delivery", gap=gap)

    summary = state.weekly_summary
    if summary is not None:
        if summary.week != state.current_week:
            add(
                Severity.WARNING, Category.ENGINE_BUG, FindingCode.SUMMARY_WEEK_MISMATCH, "engine",
                summary_week=summary.week, current_week=state.current_week,
            )
        if abs(summary.cash_remaining - state.cash) > policy.summary_cash_tolerance:
            add(
                Severity.WARNING, Category.ENGINE_BUG, FindingCode.SUMMARY_CASH_MISMATCH, "engine",
                summary_cash=round(summary.cash_remaining, 2), cash=round(state.cash, 2),
            )

    fulfillment = 1.0
    if sd is not None:
        fulfillment = sd.fulfillment_rate
        detail_sales = sum(ps.actual_sales for ps in sd.product_sales)
        if abs(detail_sales - sd.total_sales) > policy.sales_tolerance:
            add(
                Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.TOTAL_SALES_MISMATCH, "settlement",
                detail=detail_sales, total=sd.total_sales,
            )
        detail_revenue = sum(ps.revenue for ps in sd.product_sales)
        if abs(detail_revenue - sd.total_revenue) > policy.revenue_tolerance:
            add(
                Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.TOTAL_REVENUE_MISMATCH, "settlement",
                detail=round(detail_revenue, 2), total=round(sd.total_revenue, 2),
            )
        if sd.total_sales > sd.total_demand + policy.sales_tolerance:
            add(
                Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.SALES_EXCEED_DEMAND, "settlement",
                sales=sd.total_sales, demand=sd.total_demand,
            )
        for ps in sd.product_sales:
            if ps.actual_sales > ps.demand + policy.sales_tolerance:
                add(
                    Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.SALES_EXCEED_DEMAND, "settlement",
                    product_id=ps.product_id, sales=ps.actual_sales, demand=ps.demand,
                )

    low_rise = False
    if fulfillment < policy.low_fulfillment:
        for ap in state.delivery.platforms:
            before = prev.delivery.platform(ap.platform_id)
            if before is not None and before.active_weeks > 0 and ap.platform_exposure - before.platform_exposure > policy.weight_gain:
                low_rise = True
                break
        if low_rise:
            add(Severity.WARNING, Category.BALANCE, FindingCode.LOW_FULFILLMENT_BUT_EXPOSURE_RISE, "delivery")

    delta = state.exposure - prev.exposure
    if prev.weeks_since_last_action >= policy.idle_weeks and delta > policy.idle_exposure_rise:
        add(Severity.WARNING, Category.BALANCE, FindingCode.IDLE_EXPOSURE_SPIKE, "growth", delta=delta)

    if state.phase == "operating" and state.cash < policy.bankrupt_line:
        add(Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.NEGATIVE_CASH_NOT_ENDED, "engine", cash=round(state.cash, 2))

    return out, low_rise
