from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

from storesim import catalog
from storesim.catalog import (
    GAME_EVENTS,
    HOLDING_RATE,
    MARKETING_ACTIVITIES,
    MISTAKE_EXP,
    RESTOCK_TARGET_WEEKS,
    STAFF_TYPES,
    TASK_EXP_COEF,
    TASK_FATIGUE_BASE,
    WASTE_RATE,
    activity_decay,
    current_month,
    exposure_floor,
    fatigue_effect,
    map_launch_to_awareness,
    morale_effect,
    promotion_tier,
    season_from_month,
    skill_upgrade_requirement,
    stockout_effect,
)
from storesim.boss import boss_cost, boss_exp, settle_boss_week
from storesim.delivery import platform_shares, platform_weight_score
from storesim.events import apply_event_effects, event_buff_total, revenue_buff_multiplier, roll_interactive_event
from storesim.models import GameState, GrowthSystem, MistakeRecord, Staff, WeeklySummary, apply_cognition_exp
from storesim.rings import apply_season, assign_shops_to_rings
from storesim.settlement import SupplyDemandResult, calculate_supply_demand
from storesim.shops import check_shop_closing, try_generate_new_shop, update_shop_prices, update_shop_profits

STANDARD_WEEKLY_HOURS = 48
FATIGUE_EXPONENT = 1.5
MARKETER_EXPOSURE_RATE = 2.2

CLEANER_RATE = 8.0
WAITER_CLEAN_RATE = 2.5
WAITER_BUSY_THRESHOLD = 0.7
WAITER_BUSY_PENALTY = 0.5
BASE_DIRT = 2.0
AREA_DIRT_FACTOR = 50
SALES_DIRT_FACTOR = 300


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def create_initial_state() -> GameState:
    state = GameState()
    state.growth = GrowthSystem(awareness_factor=map_launch_to_awareness(8.0))
    return state


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------


@dataclass
class FixedCostBreakdown:
    rent: float = 0.0
    salary: float = 0.0
    utilities: float = 0.0
    marketing: float = 0.0
    depreciation: float = 0.0
    promotion: float = 0.0
    total: float = 0.0


def monthly_rent(state: GameState) -> float:
    location = state.location()
    if location is None:
        return 0.0
    address = state.address()
    area = (address.area if address else 0) or state.store_area
    rent_mod = address.rent_modifier if address else 1.0
    season_mult = 1.0
    if location.location_id == "tourist":
        season_mult = catalog.TOURIST_RENT_MODIFIER.get(state.season, 0.85)
    return location.rent_per_sqm * area * rent_mod * season_mult


def fixed_cost_breakdown(state: GameState) -> FixedCostBreakdown:
    if state.location() is None or state.decoration() is None:
        return FixedCostBreakdown()
    rent_m = monthly_rent(state)
    b = FixedCostBreakdown(
        rent=rent_m / 4,
        salary=sum(s.salary for s in state.staff) / 4,
        utilities=rent_m * 0.2 / 4,
        marketing=catalog.WEEKLY_MARKETING_COST,
        depreciation=catalog.WEEKLY_DEPRECIATION,
    )
    b.total = b.rent + b.salary + b.utilities + b.marketing + b.depreciation
    return b


def weekly_fixed_cost(state: GameState) -> float:
    return fixed_cost_breakdown(state).total


def weekly_promotion_cost(state: GameState) -> float:
    return sum(promotion_tier(ap.promotion_tier_id).weekly_cost for ap in state.delivery.platforms)


def variable_cost(revenue: float, state: GameState, sd: Optional[SupplyDemandResult] = None) -> float:
    """Ingredients, royalty, platform fees, waste, holding and marketing spend."""

    products = state.products()
    if not products:
        return 0.0
    brand = state.brand()
    supply_mod = state.supply_cost_modifier()
    avg_cost_rate = sum(p.base_cost * supply_mod / p.base_price for p in products) / len(products)

    if sd is not None and sd.product_sales:
        by_id = {p.product_id: p for p in products}
        base = sum(
            ps.actual_sales * by_id[ps.product_id].base_cost * supply_mod
            for ps in sd.product_sales
            if ps.product_id in by_id
        )
    else:
        base = revenue * avg_cost_rate

    royalty = revenue * (brand.royalty_rate if brand else 0.0)
    commission = sd.delivery_commission if sd else 0.0
    packaging = sd.delivery_package_cost if sd else 0.0

    if state.inventory.items:
        waste = state.inventory.weekly_waste_cost
        holding = state.inventory.weekly_holding_cost
    else:
        waste = holding = 0.0
        for p in products:
            product_revenue = revenue / len(products)
            waste += product_revenue * WASTE_RATE.get(p.storage, 0.05)
            holding += product_revenue * avg_cost_rate * HOLDING_RATE.get(p.storage, 0.02)

    marketing = sum(
        MARKETING_ACTIVITIES[am.activity_id].base_cost for am in state.marketing if am.activity_id in MARKETING_ACTIVITIES
    )
    return base + royalty + commission + packaging + waste + holding + marketing


# ---------------------------------------------------------------------------
# Staff / inventory / cognition helpers
# ---------------------------------------------------------------------------


def fatigue_gain(staff: Staff) -> float:
    base = TASK_FATIGUE_BASE.get(staff.assigned_task, 8)
    return float(round(base * (staff.weekly_hours / STANDARD_WEEKLY_HOURS) ** FATIGUE_EXPONENT))


def work_hours_morale_effect(staff: Staff) -> float:
    hours = staff.weekly_hours
    if hours <= 35:
        return 2.0
    if hours <= 48:
        return 0.0
    if hours <= 60:
        return -2.0
    return -5.0


def weekly_task_exp(staff: Staff) -> float:
    coef = TASK_EXP_COEF.get(staff.assigned_task, 1.0)
    m = staff.morale
    morale_coef = 1.2 if m >= 80 else 1.0 if m >= 60 else 0.8 if m >= 40 else 0.6
    return float(round(10 * coef * staff.weekly_hours / STANDARD_WEEKLY_HOURS * morale_coef))


def restock_quantity(stock: int, last_sales: int, strategy: str, cognition_level: int, rng: random.Random) -> int:
    if strategy == "manual":
        return 0
    estimate = last_sales if last_sales > 0 else catalog.DEFAULT_SALES_ESTIMATE
    target = math.ceil(estimate * RESTOCK_TARGET_WEEKS.get(strategy, 1.5))
    if last_sales > 0 and stock < last_sales * 0.5:
        target = math.ceil(target * 2.0)
    # guesswork shrinks with cognition; level 4+ restocks exactly
    deviation = 0.30 if cognition_level <= 1 else 0.10 if cognition_level <= 3 else 0.0
    if deviation > 0:
        target = math.ceil(target * (1 + (rng.random() - 0.5) * 2 * deviation))
    return max(0, target - stock)


def _detect_mistakes(state: GameState) -> List[str]:
    seen = {m.kind for m in state.cognition.mistake_history}
    found = []
    if state.is_quick_franchise():
        found.append("quick_franchise")
    if state.weekly_revenue > 0 and state.inventory.total_value > state.weekly_revenue * 2:
        found.append("inventory_overstock")
    if state.cash < 0:
        found.append("cash_flow_break")
    week_salary = sum(s.salary for s in state.staff) / 4
    week_rent = 0.0
    location = state.location()
    if location is not None:
        address = state.address()
        area = (address.area if address else 0) or state.store_area
        week_rent = location.rent_per_sqm * area * (address.rent_modifier if address else 1.0) / 4
    if week_rent > 0 and week_salary > week_rent * 2:
        found.append("over_staff")
    if len(state.product_ids) == 1 and state.current_week >= 3:
        found.append("single_product")
    return [k for k in found if k not in seen]


# ---------------------------------------------------------------------------
# Weekly tick
# ---------------------------------------------------------------------------


def advance_week(state: GameState, rng: random.Random) -> WeeklySummary:
    """Settle one operating week. Mutates state in place; callers pass a clone."""

    new_week = state.current_week + 1

    due = [d for d in state.pending_delayed_effects if d.execute_at_week <= new_week]
    state.pending_delayed_effects = [d for d in state.pending_delayed_effects if d.execute_at_week > new_week]
    for d in due:
        apply_event_effects(state, d.effects, d.source_event_id, rng)
    chain_event_id: Optional[str] = None
    for c in state.pending_chain_events:
        if c.trigger_at_week > new_week or chain_event_id is not None:
            continue
        if rng.random() < c.probability and c.event_id in catalog.INTERACTIVE_EVENTS and state.pending_event_id is None:
            chain_event_id = c.event_id
    state.pending_chain_events = [c for c in state.pending_chain_events if c.trigger_at_week > new_week]

    prev_cash = state.cash
    prev_cleanliness = state.cleanliness
    prev_marketing = [m.clone() for m in state.marketing]
    inactive_weeks = state.weeks_since_last_action
    operation_count = state.cognition.weekly_operation_count
    cognition_level = state.cognition.level
    mistakes = _detect_mistakes(state)

    season = season_from_month(current_month(state.start_month, new_week))
    floor = exposure_floor(state.traffic_modifier())

    g = state.growth
    launch = g.launch_progress
    stock = g.awareness_stock
    pulse = g.campaign_pulse
    trust = g.trust_confidence
    repeat = g.repeat_intent
    reputation = state.reputation

    # decay
    stock = max(floor, stock - max(0.35, stock * 0.02))
    pulse *= 0.58
    reputation = max(catalog.REPUTATION_FLOOR, reputation - 0.35)

    # marketing contributions
    pulse_gain = trust_gain = launch_gain = 0.0
    for am in prev_marketing:
        cfg = MARKETING_ACTIVITIES.get(am.activity_id)
        if cfg is None:
            continue
        decay = activity_decay(cfg, am.active_weeks) if cfg.activity_type == "continuous" else 1.0
        duration = (cfg.max_duration or 1) if cfg.activity_type == "one_time" else 1
        exp_gain = cfg.exposure_boost * decay / duration
        rep_gain = cfg.reputation_boost * decay / duration
        pulse_gain += max(0.0, exp_gain) * (1.0 if cfg.category == "exposure" else 0.75)
        stock += max(0.0, exp_gain) * (0.08 if cfg.category == "both" else 0.04)
        trust_gain += rep_gain * 0.55
        launch_gain += max(0.0, exp_gain * 0.12 + rep_gain * 0.2)

    marketer_boost = 0.0
    for s in state.staff:
        if s.is_onboarding or s.assigned_task != "marketer":
            continue
        marketer_boost += s.efficiency * (s.weekly_hours / STANDARD_WEEKLY_HOURS) * MARKETER_EXPOSURE_RATE
    pulse_gain += marketer_boost
    stock += marketer_boost * 0.12

    if inactive_weeks >= 3:
        penalty = min(3.0, (inactive_weeks - 2) * 0.6)
        pulse_gain -= penalty
        stock -= penalty * 0.4
        launch -= penalty * 0.8

    pulse = max(0.0, pulse + pulse_gain)
    stock = _clamp(stock, floor, 95)
    launch = _clamp(launch + launch_gain, 0, 100)
    reputation += trust_gain * (0.45 + trust * 0.55)
    if state.is_quick_franchise() and new_week <= catalog.QUICK_FRANCHISE_HONEYMOON_WEEKS:
        remaining = (catalog.QUICK_FRANCHISE_HONEYMOON_WEEKS - new_week + 1) / catalog.QUICK_FRANCHISE_HONEYMOON_WEEKS
        reputation += catalog.QUICK_FRANCHISE_FAKE_REPUTATION * 0.45 * remaining
    exposure = _clamp(stock + pulse + max(0.0, (repeat - 50) * 0.12), floor, 100)

    # surroundings
    location = state.location()
    address = state.address()
    rent_base = (
        location.rent_per_sqm * (address.rent_modifier if address else 1.0) * (address.area if address else 30)
        if location else 3000.0
    )
    shop_events: List[Dict[str, object]] = []
    shops = update_shop_prices(state.nearby_shops, rng)
    new_shop = try_generate_new_shop(state, state.location_id or "community", shops, new_week, rent_base, rng)
    if new_shop is not None:
        shops.append(new_shop)
        shop_events.append({"type": "new_open", "shop_id": new_shop.shop_id, "shop_name": new_shop.name, "week": new_week})
    shops, closing_events = check_shop_closing(shops, new_week, rng)
    shop_events.extend(closing_events)
    area_demand = sum(location.foot_traffic.values()) if location else 500.0
    shops = update_shop_profits(shops, area_demand)
    base_rings = state.base_consumer_rings or state.consumer_rings

    state.season = season
    state.exposure = exposure
    state.reputation = reputation
    state.growth = GrowthSystem(launch, map_launch_to_awareness(launch), stock, pulse, trust, repeat)
    state.nearby_shops = shops
    state.consumer_rings = assign_shops_to_rings(apply_season(base_rings, season), shops)

    sd = calculate_supply_demand(state)
    revenue = sd.total_revenue

    # delivery rating and weight scores
    delivery = state.delivery
    promotion_cost = 0.0
    if delivery.platforms:
        fulfilled = sd.delivery_sales
        unfulfilled = max(0, sum(ps.delivery_demand for ps in sd.product_sales) - fulfilled)
        growth = fulfilled * catalog.RATING_PER_FULFILLED + unfulfilled * catalog.RATING_PER_UNFULFILLED
        if any(m.activity_id == "ingredient_upgrade" for m in prev_marketing):
            growth += catalog.RATING_INGREDIENT_BONUS
        for ap in delivery.platforms:
            if ap.promotion_tier_id != "none":
                growth += promotion_tier(ap.promotion_tier_id).rating_boost
            pkg = catalog.PACKAGING_TIERS.get(ap.packaging_tier_id)
            if pkg and pkg.rating_bonus > 0:
                growth += pkg.rating_bonus
        growth -= catalog.RATING_NATURAL_DECAY
        growth = max(catalog.RATING_MIN_WEEKLY_GAIN, min(catalog.RATING_MAX_WEEKLY_GAIN, growth))
        rating = _clamp(delivery.platform_rating + growth, 0, 5.0)

        for ap, share in platform_shares(delivery.platforms):
            ap.active_weeks += 1
            if ap.platform_id not in catalog.PLATFORMS:
                continue
            ap.recent_weekly_orders = (ap.recent_weekly_orders + [int(round(fulfilled * share))])[-4:]
            promotion_cost += promotion_tier(ap.promotion_tier_id).weekly_cost
            ws = platform_weight_score(ap, rating)
            ap.platform_exposure = ws.total
            ap.last_weight_base = ws.base
            ap.last_weight_sales = ws.sales
            ap.last_weight_rating = ws.rating
            ap.last_weight_promotion = ws.promotion
            ap.last_weight_discount = ws.discount
        delivery.recompute_total()
        delivery.platform_rating = rating
        delivery.weekly_delivery_orders = sd.delivery_sales
        delivery.weekly_delivery_revenue = sd.delivery_revenue
        delivery.weekly_commission_paid = sd.delivery_commission
        delivery.weekly_package_cost = sd.delivery_package_cost
        delivery.weekly_discount_cost = sd.delivery_discount_cost

    var_cost = variable_cost(revenue, state, sd)
    var_cost += var_cost * event_buff_total(state, "cost_multiplier")
    fixed_cost = weekly_fixed_cost(state)

    event = GAME_EVENTS[int(rng.random() * len(GAME_EVENTS))] if rng.random() < catalog.EVENT_PROBABILITY else None
    final_revenue = revenue
    event_cost = 0.0
    event_reputation = 0.0
    if event is not None:
        if event.effect_type == "revenue":
            final_revenue *= 1 + event.value
        elif event.effect_type == "cost":
            event_cost = event.value
        elif event.effect_type == "reputation":
            event_reputation = event.value
    final_revenue *= revenue_buff_multiplier(state)
    action_cost = boss_cost(state.boss)

    profit = final_revenue - var_cost - fixed_cost - promotion_cost - event_cost - action_cost

    if sd.product_sales:
        avg_fulfillment = sum(ps.fulfillment_rate for ps in sd.product_sales) / len(sd.product_sales)
    else:
        avg_fulfillment = 1.0
    has_supply = sd.supply.total_supply > 0
    orders = max(0, sd.total_sales)

    trust = _clamp(trust + min(0.08, math.log1p(orders) / 90) - (0.01 if inactive_weeks >= 4 else 0.0), 0.08, 1)

    rep_delta = 0.0
    if has_supply:
        rep_delta += stockout_effect(avg_fulfillment)[1] * (0.55 + trust * 0.45)
        if avg_fulfillment >= 0.97:
            rep_delta += 0.75
        elif avg_fulfillment >= 0.9:
            rep_delta += 0.35
        elif avg_fulfillment >= 0.8:
            rep_delta += 0.1
        elif avg_fulfillment < 0.55:
            rep_delta -= 1.8
        elif avg_fulfillment < 0.7:
            rep_delta -= 0.9
    svc = [s for s in state.staff if not s.is_onboarding and s.assigned_task in catalog.SERVICE_TASKS]
    if svc:
        avg_svc = sum(s.service_quality or 0.8 for s in svc) / len(svc)
        if avg_svc >= 0.92:
            rep_delta += 0.45
        elif avg_svc >= 0.85:
            rep_delta += 0.2
        if avg_svc < 0.6:
            rep_delta -= 0.9
    if prev_cleanliness >= 80:
        rep_delta += 0.35
    if prev_cleanliness < 40:
        rep_delta -= 0.8
    if prev_cleanliness < 20:
        rep_delta -= 1.8

    weighted = rep_delta * (0.35 + trust * 0.65)
    if weighted > 0 and reputation > 80:
        weighted *= max(0.2, 1 - (reputation - 80) / 25)
    reputation += weighted
    if event_reputation:
        reputation += event_reputation * (0.6 + trust * 0.4)
    reputation += event_buff_total(state, "reputation_weekly")

    repeat += weighted * 1.2
    repeat += (avg_fulfillment - 0.85) * 12
    repeat += (prev_cleanliness - 60) / 40 * 0.6
    if has_supply and avg_fulfillment < 0.7:
        repeat -= 1.2
    repeat = _clamp(repeat, 20, 95)

    launch_delta = 0.0
    if prev_marketing:
        launch_delta += 1.2
    if delivery.platforms:
        launch_delta += 0.8
    if orders > 120:
        launch_delta += 1.2
    elif orders > 60:
        launch_delta += 0.6
    if has_supply and avg_fulfillment >= 0.92:
        launch_delta += 1.6
    if has_supply and avg_fulfillment < 0.7:
        launch_delta -= 1.8
    if weighted > 0.4:
        launch_delta += 0.6
    if inactive_weeks >= 3:
        launch_delta -= min(2.5, (inactive_weeks - 2) * 0.5)
    launch = _clamp(launch + launch_delta, 0, 100)

    stock += max(0.0, (reputation - 50) / 50) * 0.9
    stock += max(0.0, (repeat - 55) / 45) * 0.8
    if has_supply and avg_fulfillment < 0.75:
        stock -= 0.9
    stock = _clamp(stock, floor, 95)
    if avg_fulfillment >= 0.95 and reputation >= 65:
        pulse += 0.8
    elif avg_fulfillment < 0.7:
        pulse -= 0.7
    pulse = _clamp(pulse * 0.92, 0, 45)
    reputation = _clamp(reputation, catalog.REPUTATION_FLOOR, 100)
    exposure = _clamp(stock + pulse + max(0.0, (repeat - 50) * 0.12) + event_buff_total(state, "exposure_weekly"), floor, 100)

    consecutive = state.consecutive_profits + 1 if profit > 0 else 0

    # cognition
    exp_sources: List[Dict[str, object]] = [{"label": "每周基础", "exp": catalog.PASSIVE_EXP_BASE}]
    exp_gained = float(catalog.PASSIVE_EXP_BASE)
    if profit > 0:
        exp_gained += catalog.PASSIVE_EXP_PROFIT
        exp_sources.append({"label": "盈利奖励", "exp": catalog.PASSIVE_EXP_PROFIT})
        scale = min(math.floor(profit / 1000) * catalog.PASSIVE_EXP_PER_1000_PROFIT, catalog.PASSIVE_EXP_PROFIT_SCALE_MAX)
        if scale > 0:
            exp_gained += scale
            exp_sources.append({"label": "利润规模", "exp": scale})
        if consecutive >= catalog.PASSIVE_EXP_STREAK_WEEKS:
            exp_gained += catalog.PASSIVE_EXP_STREAK
            exp_sources.append({"label": "连续盈利", "exp": catalog.PASSIVE_EXP_STREAK})
    else:
        exp_gained += catalog.PASSIVE_EXP_LOSS
        exp_sources.append({"label": "亏损经验", "exp": catalog.PASSIVE_EXP_LOSS})
    if event is not None and event.event_id not in state.encountered_event_types:
        exp_gained += catalog.PASSIVE_EXP_FIRST_EVENT
        exp_sources.append({"label": "首次事件", "exp": catalog.PASSIVE_EXP_FIRST_EVENT})
        state.encountered_event_types.append(event.event_id)
    op_exp = min(operation_count * catalog.PASSIVE_EXP_PER_OPERATION, catalog.PASSIVE_EXP_OPERATION_MAX)
    if op_exp > 0:
        exp_gained += op_exp
        exp_sources.append({"label": "经营操作", "exp": op_exp})
    if shop_events:
        exp_gained += catalog.PASSIVE_EXP_SHOP_OBSERVATION
        exp_sources.append({"label": "商圈观察", "exp": catalog.PASSIVE_EXP_SHOP_OBSERVATION})
    for label, exp in boss_exp(state.boss, rng):
        exp_gained += exp
        exp_sources.append({"label": label, "exp": exp})
    history = list(state.cognition.mistake_history)
    for kind in mistakes:
        exp, description = MISTAKE_EXP[kind]
        exp_gained += exp
        exp_sources.append({"label": description, "exp": exp})
        history.append(MistakeRecord(kind=kind, exp=exp, week=new_week, description=description))
    cognition = apply_cognition_exp(state.cognition, exp_gained)
    cognition.weekly_operation_count = 0
    cognition.consults_this_week = 0
    cognition.mistake_history = history

    cumulative = state.cumulative_profit + profit
    is_win = (
        cumulative >= state.total_investment
        and consecutive >= catalog.WIN_STREAK
        and exposure >= catalog.WIN_EXPOSURE
        and reputation >= catalog.WIN_REPUTATION
    )
    reached_limit = state.total_weeks > 0 and new_week >= state.total_weeks
    cash = prev_cash + profit

    # staff
    has_manager = any(s.assigned_task == "manager" and not s.is_onboarding and not s.is_transitioning for s in state.staff)
    manager_morale = 2.0 if has_manager else 0.0
    manager_recovery = 0.05 if has_manager else 0.0
    if state.boss.current_action == "supervise":
        manager_morale += catalog.SUPERVISE_MORALE
    staff_out: List[Staff] = []
    quit_names: List[str] = []
    for s in state.staff:
        if s.is_onboarding and new_week >= s.onboarding_ends_week:
            s.is_onboarding = False
        if s.is_onboarding:
            staff_out.append(s)
            continue
        if s.is_transitioning and new_week >= s.transition_ends_week:
            s.is_transitioning = False

        hours = s.weekly_hours
        recovery = (s.fatigue * 0.15 + (7 - s.work_days) * 3) * (1 + manager_recovery)
        s.fatigue = _clamp(s.fatigue + fatigue_gain(s) + (3 if s.morale < 40 else 0) - recovery, 0, 100)
        f_eff, f_svc, quit_risk = fatigue_effect(s.fatigue)
        if profit > 0:
            profit_morale = min(4, math.ceil(profit / 2000))
        else:
            profit_morale = -2 if profit < -5000 else -1
        overtime = hours > 60
        s.morale = _clamp(
            s.morale - 0.5 + (-3 if s.fatigue > 70 else 0) + profit_morale
            + work_hours_morale_effect(s) + (-5 if overtime else 0) + manager_morale
            + s.salary_raise_morale_boost,
            0,
            100,
        )
        s.salary_raise_morale_boost = max(0.0, s.salary_raise_morale_boost - catalog.SALARY_RAISE_BOOST_DECAY)
        m_eff, m_svc = morale_effect(s.morale)
        overtime_mult = 0.9 if overtime else 1.0
        transition_mult = catalog.TRANSITION_PENALTY if s.is_transitioning else 1.0
        s.efficiency = s.base_efficiency * f_eff * m_eff * overtime_mult * transition_mult
        s.service_quality = s.base_service_quality * f_svc * m_svc * overtime_mult * transition_mult

        risk = quit_risk * 2 if overtime else quit_risk
        if risk > 0 and rng.random() < risk:
            if s.wants_to_quit:
                quit_names.append(s.name)
                continue
            s.wants_to_quit = True
        else:
            s.wants_to_quit = False

        s.task_exp += weekly_task_exp(s)
        required = skill_upgrade_requirement(s.skill_level)
        if s.task_exp >= required:
            st = STAFF_TYPES.get(s.type_id)
            if s.skill_level < (st.max_skill if st else 5):
                s.task_exp -= required
                s.skill_level += 1
                s.base_efficiency *= 1.03
                s.base_service_quality *= 1.02

        growth_base = round(3 * (hours / STANDARD_WEEKLY_HOURS) * s.efficiency)
        if s.focus_product_id:
            s.product_proficiency[s.focus_product_id] = min(100, s.product_proficiency.get(s.focus_product_id, 0) + growth_base)
        for pid, value in list(s.product_proficiency.items()):
            if pid != s.focus_product_id and value > 0:
                s.product_proficiency[pid] = max(0, value - 1)
        staff_out.append(s)

    # cleanliness
    dirt = BASE_DIRT + (state.store_area or 30) / AREA_DIRT_FACTOR + sd.total_sales / SALES_DIRT_FACTOR
    ratio = sd.demand.total_demand / sd.supply.total_supply if sd.supply.total_supply > 0 else 0.0
    waiter_busy = min(1.0, 0.3 + min(1.0, ratio) * 0.6)
    recovery = 0.0
    for s in staff_out:
        if s.is_onboarding:
            continue
        work_ratio = s.weekly_hours / STANDARD_WEEKLY_HOURS
        if s.assigned_task == "cleaner":
            recovery += s.efficiency * work_ratio * CLEANER_RATE
        elif s.assigned_task == "waiter":
            c = s.efficiency * work_ratio * WAITER_CLEAN_RATE
            recovery += c * WAITER_BUSY_PENALTY if waiter_busy > WAITER_BUSY_THRESHOLD else c
    cleanliness = _clamp(prev_cleanliness - dirt + recovery, 0, 100)

    # marketing expiry
    marketing = []
    for am in prev_marketing:
        am.active_weeks += 1
        cfg = MARKETING_ACTIVITIES.get(am.activity_id)
        if cfg is not None and cfg.activity_type == "one_time" and cfg.max_duration and am.active_weeks >= cfg.max_duration:
            continue
        marketing.append(am)

    # inventory
    waste_cost = holding_cost = restock_cost = 0.0
    for item in state.inventory.items:
        waste = int(math.floor(item.quantity * WASTE_RATE.get(item.storage, 0.05)))
        item.quantity = max(0, item.quantity - waste)
        item.last_week_waste = waste
        waste_cost += waste * item.unit_cost
        holding_cost += item.quantity * item.unit_cost * HOLDING_RATE.get(item.storage, 0.02)
        sale = sd.product(item.product_id)
        sold = sale.actual_sales if sale else 0
        item.quantity = max(0, item.quantity - sold)
        item.last_week_sales = sold
        if item.restock_strategy == "manual":
            item.restock_strategy = "auto_standard"
        qty = restock_quantity(item.quantity, sold, item.restock_strategy, cognition_level, rng)
        item.last_restock_quantity = qty
        item.last_restock_cost = qty * item.unit_cost
        item.quantity += qty
        restock_cost += item.last_restock_cost
    state.inventory.recompute_total()
    state.inventory.weekly_waste_cost = waste_cost
    state.inventory.weekly_holding_cost = holding_cost
    state.inventory.weekly_restock_cost = restock_cost

    cash -= restock_cost
    bankrupt = cash < catalog.MIN_OPERATING_CASH
    total_demand = sum(ps.demand for ps in sd.product_sales)

    summary = WeeklySummary(
        week=new_week,
        revenue=final_revenue,
        variable_cost=var_cost,
        fixed_cost=fixed_cost + promotion_cost + event_cost,
        profit=profit,
        cumulative_profit=cumulative,
        total_investment=state.total_investment,
        cash_remaining=cash,
        total_demand=total_demand,
        total_supply=sd.supply.total_supply,
        fulfillment_rate=avg_fulfillment,
        product_sales=[
            {"product_id": ps.product_id, "name": ps.product_name, "sales": ps.actual_sales, "revenue": ps.revenue}
            for ps in sd.product_sales
        ],
        staff_count=len(staff_out),
        avg_morale=sum(s.morale for s in staff_out) / len(staff_out) if staff_out else 0.0,
        avg_fatigue=sum(s.fatigue for s in staff_out) / len(staff_out) if staff_out else 0.0,
        quit_staff_names=quit_names,
        cognition_level=cognition.level,
        exp_gained=exp_gained,
        exp_sources=exp_sources,
        event_id=event.event_id if event else None,
        consecutive_profits=consecutive,
        return_on_investment_progress=cumulative / state.total_investment * 100 if state.total_investment > 0 else 0.0,
        cleanliness_change=cleanliness - prev_cleanliness,
        restock_cost=restock_cost,
        boss_action=state.boss.current_action,
        boss_action_cost=action_cost,
    )

    state.boss = settle_boss_week(state, state.consumer_rings, rng)
    for b in state.active_event_buffs:
        b.duration_weeks -= 1
    state.active_event_buffs = [b for b in state.active_event_buffs if b.duration_weeks > 0]

    state.current_week = new_week
    state.consecutive_profits = consecutive
    state.cash = cash
    state.weekly_revenue = final_revenue
    state.weekly_variable_cost = var_cost
    state.weekly_fixed_cost = fixed_cost
    state.weekly_restock_cost = restock_cost
    state.profit_history.append(profit)
    state.revenue_history.append(final_revenue)
    state.cognition = cognition
    state.staff = staff_out
    state.weekly_product_changes = 0
    state.weeks_since_last_action = inactive_weeks + 1
    state.marketing = marketing
    state.reputation = reputation
    state.exposure = exposure
    state.growth = GrowthSystem(launch, map_launch_to_awareness(launch), stock, pulse, trust, repeat)
    state.cleanliness = cleanliness
    state.last_week_fulfillment = avg_fulfillment
    state.weekly_summary = summary
    state.cumulative_profit = cumulative
    if bankrupt:
        state.game_over_reason = "bankrupt"
    elif is_win:
        state.game_over_reason = "win"
    elif reached_limit:
        state.game_over_reason = "time_limit"
    state.phase = "ended" if state.game_over_reason else "operating"
    state.weeks_since_last_morale_action += 1
    if state.phase == "operating":
        if chain_event_id is not None:
            state.pending_event_id = chain_event_id
        else:
            rolled = roll_interactive_event(state, new_week, rng)
            state.pending_event_id = rolled.event_id if rolled is not None else state.pending_event_id
        if state.pending_event_id is not None and state.pending_event_id not in state.event_history:
            state.event_history.append(state.pending_event_id)
    summary.interactive_event_id = state.pending_event_id
    return summary
