from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from storesim.actions import (
    Action,
    AssignStaffTask,
    ConsultAdvisor,
    JoinPlatform,
    LeavePlatform,
    RespondToEvent,
    RetainStaff,
    SetBossAction,
    SetProductPrice,
    SetRestockStrategy,
    StaffMoraleAction,
    StartMarketing,
    StopMarketing,
    TogglePromotion,
    action_to_dict,
)
from storesim.catalog import (
    BOSS_ACTIONS,
    DEFAULT_BOSS_ACTION,
    MARKETING_ACTIVITIES,
    MORALE_ACTION_MIN_LEVEL,
    NOTIFICATION_OPTION,
    PRODUCTS,
    RETENTION_MIN_LEVEL,
    STAFF_TYPES,
    TEAM_MEAL_COOLDOWN_WEEKS,
    promotion_index,
)
from storesim.models import GameState, Staff
from storesim.policy import PlannerPolicy
from storesim.query import CurrentStats, stats, supply_demand
from storesim.settlement import SupplyDemandResult


@dataclass(frozen=True)
class CandidatePlan:
    plan_id: str
    rationale: str
    actions: Tuple[Action, ...] = ()

    def signature(self) -> str:
        parts = [json.dumps(action_to_dict(a), sort_keys=True, ensure_ascii=False) for a in self.actions]
        return f"{self.plan_id}::" + "|".join(parts)


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _fulfillment(sd: Optional[SupplyDemandResult]) -> float:
    return sd.fulfillment_rate if sd is not None else 1.0


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


def _pricing_actions(state: GameState, sd: Optional[SupplyDemandResult], mode: str, policy: PlannerPolicy) -> List[Action]:
    """Price nudges for the best-selling products. mode: margin|stimulus|balanced."""

    if sd is None:
        return []
    top = sorted(sd.product_sales, key=lambda ps: ps.revenue, reverse=True)[: policy.top_products]
    out: List[Action] = []
    for ps in top:
        product = PRODUCTS.get(ps.product_id)
        if product is None:
            continue
        ref = product.reference_price or product.base_price
        cur = state.price_of(product)
        min_p = max(product.base_cost * policy.min_cost_markup, policy.min_price)
        max_p = max(min_p + 1, ref * policy.max_reference_markup)

        target = cur
        if mode == "margin":
            target = cur * policy.margin_raise
            if ps.bottleneck == "demand" and cur > ref * policy.margin_overpriced:
                target = cur * policy.margin_cut
        elif mode == "stimulus":
            if ps.bottleneck == "demand":
                target = min(cur * policy.stimulus_cut, ref * policy.stimulus_reference)
        else:
            if ps.bottleneck.startswith("supply"):
                target = cur * policy.balanced_raise
            elif ps.bottleneck == "demand" and cur > ref * policy.balanced_overpriced:
                target = cur * policy.balanced_cut

        target = round(_clamp(target, min_p, max_p), 1)
        if abs(target - cur) >= policy.min_price_step:
            out.append(SetProductPrice(ps.product_id, target))
    return out


# ---------------------------------------------------------------------------
# Staffing
# ---------------------------------------------------------------------------


def _can_do(member: Staff, task: str) -> bool:
    st = STAFF_TYPES.get(member.type_id)
    return st is not None and task in st.tasks


def _task_actions(state: GameState, fulfillment: float, policy: PlannerPolicy) -> List[Action]:
    n = len(state.staff)
    if n == 0:
        return []
    heavy = any(p.category in ("meal", "food") for p in state.products())
    chef_target = int(_clamp((2 if heavy else 1) + (1 if fulfillment < policy.low_fulfillment_extra_chef else 0), 1, max(1, n - 1)))
    targets: Dict[str, int] = {
        "manager": 1 if n >= policy.manager_min_staff and state.reputation < policy.manager_reputation_below else 0,
        "chef": chef_target,
        "marketer": 1 if state.exposure < policy.marketer_exposure_below else 0,
        "cleaner": 1 if state.cleanliness < policy.cleaner_cleanliness_below else 0,
    }

    pool = list(state.staff)
    plan: Dict[str, str] = {}

    def take(task: str, key, count: int) -> None:
        eligible = sorted((m for m in pool if _can_do(m, task)), key=key)
        for m in eligible[:count]:
            plan[m.staff_id] = task
            pool.remove(m)

    take("manager", lambda m: (-m.skill_level, -m.efficiency), targets["manager"])
    take("chef", lambda m: -m.efficiency, targets["chef"])
    take("marketer", lambda m: -m.efficiency, targets["marketer"])
    take("cleaner", lambda m: m.efficiency, targets["cleaner"])
    take("waiter", lambda m: -m.service_quality, len(pool))

    out: List[Action] = []
    for m in state.staff:
        task = plan.get(m.staff_id)
        if task and task != m.assigned_task:
            out.append(AssignStaffTask(m.staff_id, task))
    return out[: policy.max_task_changes]


# ---------------------------------------------------------------------------
# Restock
# ---------------------------------------------------------------------------


def _restock_actions(state: GameState, fulfillment: float, cur: CurrentStats, policy: PlannerPolicy) -> List[Action]:
    if state.cognition.level < 1 or not state.inventory.items:
        return []
    if fulfillment < policy.aggressive_below:
        strategy = "auto_aggressive"
    elif fulfillment > policy.conservative_above and cur.profit < 0:
        strategy = "auto_conservative"
    else:
        strategy = "auto_standard"
    return [SetRestockStrategy(it.product_id, strategy) for it in state.inventory.items if it.restock_strategy != strategy]


# ---------------------------------------------------------------------------
# Marketing
# ---------------------------------------------------------------------------


def _active_by_cost(state: GameState, continuous_only: bool) -> List[str]:
    ids = []
    for m in state.marketing:
        cfg = MARKETING_ACTIVITIES.get(m.activity_id)
        if cfg is None or (continuous_only and cfg.activity_type != "continuous"):
            continue
        ids.append((cfg.base_cost, m.activity_id))
    return [aid for _, aid in sorted(ids, key=lambda x: -x[0])]


def _marketing_actions(state: GameState, cur: CurrentStats, policy: PlannerPolicy) -> List[Action]:
    active = {m.activity_id for m in state.marketing}
    out: List[Action] = []
    if state.exposure < policy.social_exposure_below and "social_media" not in active and state.cash >= policy.social_min_cash:
        out.append(StartMarketing("social_media"))
    if state.reputation < policy.ingredient_reputation_below and "ingredient_upgrade" not in active and state.cash >= policy.ingredient_min_cash:
        out.append(StartMarketing("ingredient_upgrade"))
    if state.reputation < policy.training_reputation_below and "service_training" not in active and state.cash >= policy.training_min_cash:
        out.append(StartMarketing("service_training"))
    if (
        state.cognition.level < policy.consult_below_level
        and state.cash > policy.consult_min_cash
        and state.current_week % policy.consult_every_weeks == 0
    ):
        out.append(ConsultAdvisor())
    if cur.profit < policy.stop_marketing_profit_below or state.cash < policy.stop_marketing_cash_below:
        costly = _active_by_cost(state, continuous_only=True)
        if costly:
            out.append(StopMarketing(costly[0]))
    return out[: policy.max_marketing_actions]


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


def _delivery_actions(state: GameState, fulfillment: float, cur: CurrentStats, policy: PlannerPolicy) -> List[Action]:
    out: List[Action] = []
    level = state.cognition.level
    joined = state.delivery.platforms
    if level >= policy.first_platform_level and not joined and state.cash > policy.first_platform_cash:
        out.append(JoinPlatform("meituan"))
    if (
        level >= policy.second_platform_level
        and len(joined) == 1
        and state.cash > policy.second_platform_cash
        and state.delivery.platform("eleme") is None
    ):
        out.append(JoinPlatform("eleme"))

    for ap in joined:
        if ap.active_weeks > policy.leave_after_weeks and ap.platform_exposure < policy.leave_exposure_below and cur.profit < 0:
            out.append(LeavePlatform(ap.platform_id))
            continue
        target = ap.promotion_tier_id
        if fulfillment < policy.promo_off_fulfillment_below:
            target = "none"
        elif ap.platform_exposure < policy.basic_exposure_below and state.cash > policy.basic_min_cash:
            target = "basic"
        elif (
            ap.platform_exposure < policy.advanced_exposure_below
            and cur.profit > policy.advanced_min_profit
            and state.cash > policy.advanced_min_cash
        ):
            target = "advanced"
        elif cur.profit < policy.promo_off_profit_below or state.cash < policy.promo_off_cash_below:
            target = "none"
        if target != ap.promotion_tier_id:
            out.append(TogglePromotion(ap.platform_id, promotion_index(target)))
    return out[: policy.max_delivery_actions]


# ---------------------------------------------------------------------------
# Boss, staff care and events
# ---------------------------------------------------------------------------


def _boss_actions(state: GameState, policy: PlannerPolicy) -> List[Action]:
    if state.boss.current_action != DEFAULT_BOSS_ACTION:
        return []
    if state.cognition.level >= BOSS_ACTIONS["industry_dinner"].min_cognition and state.cash > policy.dinner_min_cash:
        return [SetBossAction("industry_dinner")]
    if state.cash > policy.investigate_min_cash and state.nearby_shops:
        return [SetBossAction("investigate_nearby")]
    return [SetBossAction("count_traffic")]


def _staff_care_actions(state: GameState, policy: PlannerPolicy) -> List[Action]:
    out: List[Action] = []
    if state.cognition.level >= RETENTION_MIN_LEVEL:
        out.extend(RetainStaff(m.staff_id, policy.retention_method) for m in state.staff if m.wants_to_quit)
    if not state.staff or state.cognition.level < MORALE_ACTION_MIN_LEVEL:
        return out
    avg_morale = sum(m.morale for m in state.staff) / len(state.staff)
    meal_ready = state.last_team_meal_week is None or state.current_week - state.last_team_meal_week >= TEAM_MEAL_COOLDOWN_WEEKS
    if avg_morale < policy.team_meal_morale_below and meal_ready and state.cash > policy.team_meal_min_cash:
        out.append(StaffMoraleAction("team_meal"))
    return out


def _event_plans(state: GameState) -> List[CandidatePlan]:
    event = state.pending_event()
    if event is None:
        return []
    if not event.options:
        return [CandidatePlan("event_acknowledge", f"确认事件：{event.name}", (RespondToEvent(event.event_id, NOTIFICATION_OPTION),))]
    return [
        CandidatePlan(f"event_{o.option_id}", f"{event.name}：{o.text}", (RespondToEvent(event.event_id, o.option_id),))
        for o in event.options
    ]


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_candidate_plans(state: GameState, policy: Optional[PlannerPolicy] = None) -> List[CandidatePlan]:
    """Deterministic set of candidate action bundles for the coming week.

    The baseline "do nothing" plan is always first; plans with identical
    action lists (and id) are deduplicated, and plans left with no actions
    are dropped.
    """

    policy = policy or PlannerPolicy()
    cur = stats(state)
    sd = supply_demand(state)
    f = _fulfillment(sd)

    repair = _pricing_actions(state, sd, "margin", policy)
    stimulus = _pricing_actions(state, sd, "stimulus", policy)
    balanced = _pricing_actions(state, sd, "balanced", policy)
    tasks = _task_actions(state, f, policy)
    restock = _restock_actions(state, f, cur, policy)
    marketing = _marketing_actions(state, cur, policy)
    delivery = _delivery_actions(state, f, cur, policy)

    guard: List[Action] = []
    costly = _active_by_cost(state, continuous_only=False)
    if costly:
        guard.append(StopMarketing(costly[0]))
    promoted = next((ap for ap in state.delivery.platforms if ap.promotion_tier_id != "none"), None)
    if promoted is not None:
        guard.append(TogglePromotion(promoted.platform_id, 0))
    guard.extend(repair[:2])

    raw = [
        CandidatePlan("baseline_hold", "保持当前经营配置", ()),
        CandidatePlan("price_margin_repair", "上调头部产品价格修复毛利", tuple(repair)),
        CandidatePlan("price_demand_stimulus", "需求瓶颈产品降价刺激需求", tuple(stimulus)),
        CandidatePlan("ops_rebalance", "重排岗位并调整补货策略", tuple(tasks + restock)),
        CandidatePlan("growth_push", "外卖与营销扩张", tuple(delivery + marketing)),
        CandidatePlan("balanced_mixed", "均衡调价+岗位+补货+单项营销", tuple(balanced + tasks + restock + marketing[:1])),
        CandidatePlan("cash_guard", "收缩营销与推广保护现金", tuple(guard)),
        CandidatePlan("boss_learning", "老板外出考察学习", tuple(_boss_actions(state, policy))),
        CandidatePlan("staff_care", "挽留员工并组织团建", tuple(_staff_care_actions(state, policy))),
    ] + _event_plans(state)

    seen = set()
    plans: List[CandidatePlan] = []
    for plan in raw:
        if not plan.actions and plan.plan_id != "baseline_hold":
            continue
        sig = plan.signature()
        if sig in seen:
            continue
        seen.add(sig)
        plans.append(plan)
    return plans
