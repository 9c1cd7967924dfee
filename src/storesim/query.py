from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from storesim import catalog
from storesim.catalog import (
    BOSS_ACTIONS,
    BOSS_WORK_ROLES,
    BRANDS,
    DECORATIONS,
    DISCOUNT_TIERS,
    LOCATIONS,
    MARKETING_ACTIVITIES,
    MORALE_ACTIONS,
    NOTIFICATION_OPTION,
    PACKAGING_TIERS,
    PLATFORMS,
    PRICING_TIERS,
    PRODUCTS,
    PROMOTION_TIERS,
    RECRUITMENT_CHANNELS,
    RESTOCK_STRATEGIES,
    RETENTION_METHODS,
    SEASONS,
    STAFF_TYPES,
    TASKS,
)
from storesim.engine import FixedCostBreakdown, fixed_cost_breakdown, variable_cost, weekly_fixed_cost, weekly_promotion_cost
from storesim.models import GameState
from storesim.settlement import SUPPLY_PRIORITIES, SupplyDemandResult, calculate_supply_demand

SETUP_CONVERSION_ESTIMATE = 0.15  # optimistic newcomer guess


@dataclass
class CurrentStats:
    revenue: float = 0.0
    variable_cost: float = 0.0
    fixed_cost: float = 0.0
    fixed_cost_breakdown: FixedCostBreakdown = field(default_factory=FixedCostBreakdown)
    profit: float = 0.0
    margin: float = 0.0  # percent
    break_even_point: float = 0.0


@dataclass
class GameResult:
    is_win: bool
    reason: str  # win|bankrupt|time_limit
    total_profit: float
    total_investment: float
    roi: float  # percent
    cognition_level: int
    meets_streak_requirement: bool
    meets_return_requirement: bool
    meets_brand_requirement: bool


@dataclass
class AvailableAction:
    type: str
    description: str
    params: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def setup_estimated_revenue(state: GameState) -> float:
    location = state.location()
    products = state.products()
    if location is None or not products:
        return 0.0
    base = sum(location.foot_traffic.values()) * state.traffic_modifier()
    avg_price = sum(p.base_price for p in products) / len(products)
    return base * SETUP_CONVERSION_ESTIMATE * avg_price * 7


def stats(state: GameState, sd: Optional[SupplyDemandResult] = None) -> CurrentStats:
    """Weekly financial projection: an estimate during setup, the settlement model afterwards."""

    if state.phase == "setup":
        if state.location() is None or state.decoration() is None or not state.product_ids:
            return CurrentStats()
        revenue = setup_estimated_revenue(state)
        fixed = weekly_fixed_cost(state)
        var = variable_cost(revenue, state)
        margin = (revenue - var) / revenue * 100 if revenue > 0 else 0.0
        return CurrentStats(
            revenue=revenue,
            variable_cost=var,
            fixed_cost=fixed,
            fixed_cost_breakdown=fixed_cost_breakdown(state),
            profit=revenue - var - fixed,
            margin=margin,
            break_even_point=fixed / (margin / 100) if margin > 0 else float("inf"),
        )

    sd = sd or calculate_supply_demand(state)
    revenue = sd.total_revenue
    var = variable_cost(revenue, state, sd)
    breakdown = fixed_cost_breakdown(state)
    promotion = weekly_promotion_cost(state)
    total_fixed = breakdown.total + promotion
    margin = (revenue - var) / revenue * 100 if revenue > 0 else 0.0
    return CurrentStats(
        revenue=revenue,
        variable_cost=var,
        fixed_cost=total_fixed,
        fixed_cost_breakdown=replace(breakdown, promotion=promotion, total=total_fixed),
        profit=revenue - var - total_fixed,
        margin=margin,
        break_even_point=total_fixed / (margin / 100) if margin > 0 else float("inf"),
    )


def supply_demand(state: GameState) -> Optional[SupplyDemandResult]:
    if state.phase == "setup" or state.location() is None or not state.product_ids:
        return None
    return calculate_supply_demand(state)


def can_open(state: GameState) -> bool:
    return (
        state.brand() is not None
        and state.location() is not None
        and state.address() is not None
        and state.decoration() is not None
        and bool(state.product_ids)
        and bool(state.staff)
        and state.cash >= 0
    )


def game_result(state: GameState) -> Optional[GameResult]:
    if state.phase != "ended":
        return None
    total_profit = state.cumulative_profit
    reason = state.game_over_reason or "time_limit"
    return GameResult(
        is_win=reason == "win",
        reason=reason,
        total_profit=total_profit,
        total_investment=state.total_investment,
        roi=total_profit / state.total_investment * 100 if state.total_investment > 0 else 0.0,
        cognition_level=state.cognition.level,
        meets_streak_requirement=state.consecutive_profits >= catalog.WIN_STREAK,
        meets_return_requirement=total_profit >= state.total_investment,
        meets_brand_requirement=state.exposure >= catalog.WIN_EXPOSURE and state.reputation >= catalog.WIN_REPUTATION,
    )


# ---------------------------------------------------------------------------
# Available actions
# ---------------------------------------------------------------------------


def available_actions(state: GameState) -> List[AvailableAction]:
    """Legal action kinds for the current phase, with their parameter options."""

    if state.phase == "ended":
        return [AvailableAction("restart", "重新开始游戏")]
    if state.phase == "setup":
        return _setup_actions(state)
    return _operating_actions(state)


def _selectable_products(state: GameState) -> List[Dict[str, Any]]:
    brand = state.brand()
    allowed = brand.allowed_categories if brand else None
    return [
        {"id": p.product_id, "name": p.name, "category": p.category, "base_price": p.base_price}
        for p in PRODUCTS.values()
        if not allowed or p.category in allowed
    ]


def _staff_options(state: GameState) -> List[Dict[str, Any]]:
    return [{"id": s.staff_id, "name": s.name, "type_id": s.type_id, "salary": s.salary} for s in state.staff]


def _setup_actions(state: GameState) -> List[AvailableAction]:
    out: List[AvailableAction] = []
    brand = state.brand()
    out.append(
        AvailableAction(
            "select_brand",
            f"更换品牌（当前: {brand.name}，传 null 取消）" if brand else "选择品牌（加盟或自主创业）",
            {
                "current": state.brand_id,
                "options": [
                    {"id": b.brand_id, "name": b.name, "type": b.brand_type, "fee": b.franchise_fee}
                    for b in BRANDS.values()
                    if not b.is_quick_franchise
                ],
            },
        )
    )

    if not state.location_locked:
        out.append(
            AvailableAction(
                "select_location",
                "选择区位",
                {
                    "current": state.location_id,
                    "options": [
                        {"id": loc.location_id, "name": loc.name, "rent_per_sqm": loc.rent_per_sqm}
                        for loc in LOCATIONS.values()
                    ],
                },
            )
        )
        location = state.location()
        if location is not None:
            out.append(
                AvailableAction(
                    "select_address",
                    "选择具体地址",
                    {
                        "current": state.address_id,
                        "location_id": location.location_id,
                        "options": [
                            {
                                "id": a.address_id,
                                "name": a.name,
                                "area": a.area,
                                "traffic_modifier": a.traffic_modifier,
                                "rent_modifier": a.rent_modifier,
                            }
                            for a in location.addresses
                        ],
                    },
                )
            )

    if not state.decoration_locked:
        out.append(
            AvailableAction(
                "select_decoration",
                "选择装修风格",
                {
                    "current": state.decoration_id,
                    "options": [
                        {"id": d.decoration_id, "name": d.name, "cost_per_sqm": d.cost_per_sqm, "level": d.level}
                        for d in DECORATIONS.values()
                    ],
                },
            )
        )

    if not state.products_locked:
        out.append(
            AvailableAction(
                "toggle_product",
                f"添加/移除产品（当前 {len(state.product_ids)}/{catalog.MAX_PRODUCTS}）",
                {"selected": list(state.product_ids), "available": _selectable_products(state)},
            )
        )

    if state.location() is not None:
        out.append(
            AvailableAction(
                "add_staff",
                "添加员工",
                {
                    "current_count": len(state.staff),
                    "options": [{"id": st.type_id, "name": st.name, "base_salary": st.base_salary} for st in STAFF_TYPES.values()],
                },
            )
        )
    if state.staff:
        out.append(AvailableAction("fire_staff", "解雇员工（筹备阶段）", {"staff": _staff_options(state)}))

    if can_open(state):
        out.append(AvailableAction("open_store", "开店营业（可选择起始季节）", {"seasons": list(SEASONS)}))
    return out


def _operating_actions(state: GameState) -> List[AvailableAction]:
    out: List[AvailableAction] = [
        AvailableAction("next_week", "推进到下一周"),
        AvailableAction("restart", "重新开始游戏"),
        AvailableAction(
            "set_product_price",
            "调整产品价格",
            {
                "products": [
                    {
                        "id": p.product_id,
                        "name": p.name,
                        "current_price": state.price_of(p),
                        "base_price": p.base_price,
                        "reference_price": p.reference_price,
                    }
                    for p in state.products()
                ]
            },
        ),
    ]

    event = state.pending_event()
    if event is not None:
        out.insert(
            0,
            AvailableAction(
                "respond_to_event",
                f"响应事件：{event.name}",
                {
                    "event_id": event.event_id,
                    "description": event.description,
                    "options": [{"id": o.option_id, "text": o.text} for o in event.options]
                    or [{"id": NOTIFICATION_OPTION, "text": "知道了"}],
                },
            ),
        )

    if state.cognition.level >= 1:
        items = state.inventory.items
        out.append(
            AvailableAction(
                "set_product_inventory",
                "调整产品库存量",
                {
                    "items": [
                        {"product_id": it.product_id, "name": it.name, "quantity": it.quantity, "unit_cost": it.unit_cost}
                        for it in items
                    ]
                },
            )
        )
        out.append(
            AvailableAction(
                "set_restock_strategy",
                "设置补货策略",
                {
                    "items": [
                        {"product_id": it.product_id, "name": it.name, "current_strategy": it.restock_strategy}
                        for it in items
                    ],
                    "strategies": list(RESTOCK_STRATEGIES),
                },
            )
        )

    if state.staff:
        out.append(
            AvailableAction(
                "assign_staff_task",
                "分配员工岗位",
                {
                    "staff": [
                        {
                            "id": s.staff_id,
                            "name": s.name,
                            "type_id": s.type_id,
                            "current_task": s.assigned_task,
                            "available_tasks": list(STAFF_TYPES[s.type_id].tasks) if s.type_id in STAFF_TYPES else [],
                        }
                        for s in state.staff
                    ]
                },
            )
        )
        out.append(
            AvailableAction(
                "set_staff_work_hours",
                f"设置员工工时（天数{catalog.MIN_WORK_DAYS}-{catalog.MAX_WORK_DAYS}，小时{catalog.MIN_WORK_HOURS}-{catalog.MAX_WORK_HOURS}）",
                {"staff": [{"id": s.staff_id, "name": s.name, "days": s.work_days, "hours": s.work_hours} for s in state.staff]},
            )
        )
        out.append(AvailableAction("fire_staff", "解雇员工（经营阶段，影响其他员工士气）", {"staff": _staff_options(state)}))
        if state.cognition.level >= catalog.SALARY_MIN_LEVEL:
            out.append(
                AvailableAction(
                    "set_staff_salary",
                    f"调整月薪（基础薪资的{catalog.SALARY_MIN_RATIO:.0%}-{catalog.SALARY_MAX_RATIO:.0%}，兼职除外）",
                    {
                        "staff": [
                            {"id": s.staff_id, "name": s.name, "salary": s.salary}
                            for s in state.staff
                            if s.type_id in STAFF_TYPES and STAFF_TYPES[s.type_id].hourly_rate <= 0
                        ]
                    },
                )
            )
        if state.cognition.level >= catalog.MORALE_ACTION_MIN_LEVEL:
            out.append(
                AvailableAction(
                    "staff_morale_action",
                    "士气管理（奖金/团建/放假）",
                    {
                        "actions": list(MORALE_ACTIONS),
                        "bonus_amounts": list(catalog.BONUS_AMOUNTS),
                        "last_team_meal_week": state.last_team_meal_week,
                        "staff": [
                            {
                                "id": s.staff_id,
                                "name": s.name,
                                "morale": s.morale,
                                "fatigue": s.fatigue,
                                "last_bonus_week": s.last_bonus_week,
                                "last_day_off_week": s.last_day_off_week,
                            }
                            for s in state.staff
                        ],
                    },
                )
            )
        leaving = [s for s in state.staff if s.wants_to_quit]
        if leaving and state.cognition.level >= catalog.RETENTION_MIN_LEVEL:
            out.append(
                AvailableAction(
                    "retain_staff",
                    "挽留有离职意向的员工",
                    {
                        "staff": [{"id": s.staff_id, "name": s.name, "salary": s.salary} for s in leaving],
                        "methods": {m.method_id: m.success_rate for m in RETENTION_METHODS.values()},
                    },
                )
            )

    if state.location() is not None:
        out.append(
            AvailableAction(
                "recruit_staff",
                "招聘员工（新员工需入职培训1周）",
                {
                    "channels": [
                        {"id": c.channel_id, "name": c.name, "cost": c.cost, "skill_range": list(c.skill_range)}
                        for c in RECRUITMENT_CHANNELS.values()
                    ],
                    "staff_types": [{"id": st.type_id, "name": st.name, "base_salary": st.base_salary} for st in STAFF_TYPES.values()],
                },
            )
        )

    joined = {ap.platform_id for ap in state.delivery.platforms}
    brand = state.brand()
    brand_key = "franchise" if brand and (brand.brand_type == "franchise" or brand.is_quick_franchise) else "independent"
    joinable = [
        p for p in PLATFORMS.values()
        if p.platform_id not in joined and state.cognition.level >= p.min_cognition[brand_key]
    ]
    if joinable:
        out.append(
            AvailableAction(
                "join_platform",
                "上线外卖平台",
                {
                    "options": [
                        {
                            "id": p.platform_id,
                            "name": p.name,
                            "commission_rate": p.commission_rate,
                            "min_cognition_level": p.min_cognition[brand_key],
                        }
                        for p in joinable
                    ]
                },
            )
        )

    platforms = state.delivery.platforms
    if platforms:
        out.append(AvailableAction("leave_platform", "下线外卖平台", {"joined": [{"platform_id": ap.platform_id} for ap in platforms]}))
        out.append(
            AvailableAction(
                "toggle_promotion",
                "切换平台推广档位",
                {
                    "platforms": [{"platform_id": ap.platform_id, "current_tier": ap.promotion_tier_id} for ap in platforms],
                    "tiers": list(range(len(PROMOTION_TIERS))),
                },
            )
        )
        out.append(
            AvailableAction(
                "set_discount_tier",
                "设置满减活动档位",
                {
                    "platforms": [{"platform_id": ap.platform_id, "current_tier": ap.discount_tier_id} for ap in platforms],
                    "tiers": list(DISCOUNT_TIERS),
                },
            )
        )
        out.append(
            AvailableAction(
                "set_delivery_pricing",
                "设置外卖定价倍率",
                {
                    "platforms": [{"platform_id": ap.platform_id, "current_pricing": ap.pricing_id} for ap in platforms],
                    "options": list(PRICING_TIERS),
                },
            )
        )
        out.append(
            AvailableAction(
                "set_packaging_tier",
                "设置包装档次",
                {
                    "platforms": [{"platform_id": ap.platform_id, "current_tier": ap.packaging_tier_id} for ap in platforms],
                    "options": list(PACKAGING_TIERS),
                },
            )
        )
        out.append(
            AvailableAction(
                "set_supply_priority",
                "设置出餐分配策略（堂食优先/外卖优先/按需分配）",
                {"current": state.supply_priority, "options": list(SUPPLY_PRIORITIES)},
            )
        )

    active_ids = {m.activity_id for m in state.marketing}
    startable = [cfg for cfg in MARKETING_ACTIVITIES.values() if cfg.activity_id not in active_ids]
    if startable:
        out.append(
            AvailableAction(
                "start_marketing",
                "启动营销活动",
                {
                    "options": [
                        {
                            "id": cfg.activity_id,
                            "name": cfg.name,
                            "type": cfg.activity_type,
                            "category": cfg.category,
                            "base_cost": cfg.base_cost,
                        }
                        for cfg in startable
                    ]
                },
            )
        )
    if state.marketing:
        out.append(
            AvailableAction(
                "stop_marketing",
                "停止营销活动（可能有曝光度惩罚）",
                {
                    "active": [
                        {
                            "id": m.activity_id,
                            "name": MARKETING_ACTIVITIES[m.activity_id].name if m.activity_id in MARKETING_ACTIVITIES else m.activity_id,
                            "active_weeks": m.active_weeks,
                        }
                        for m in state.marketing
                    ]
                },
            )
        )

    if not state.products_locked:
        changes_left = catalog.MAX_WEEKLY_PRODUCT_CHANGES - state.weekly_product_changes
        if changes_left > 0:
            out.append(
                AvailableAction(
                    "toggle_product",
                    f"添加/移除产品（本周剩余 {changes_left} 次调整）",
                    {
                        "selected": list(state.product_ids),
                        "available": _selectable_products(state),
                        "changes_left": changes_left,
                    },
                )
            )

    out.append(
        AvailableAction(
            "consult_advisor",
            "咨询顾问（获得认知经验，消耗现金）",
            {"times_this_week": state.cognition.consults_this_week, "cost": catalog.CONSULT_COST},
        )
    )

    boss = state.boss
    out.append(
        AvailableAction(
            "set_boss_action",
            "设置老板本周行动",
            {
                "current": boss.current_action,
                "work_role": boss.work_role,
                "roles": list(BOSS_WORK_ROLES),
                "options": [
                    {"id": b.action_id, "name": b.name, "cost": b.cost}
                    for b in BOSS_ACTIONS.values()
                    if state.cognition.level >= b.min_cognition
                ],
                "shops": [
                    {"id": shop.shop_id, "name": shop.name}
                    for shop in state.nearby_shops
                    if not shop.is_closing and shop.closed_week is None
                ],
            },
        )
    )

    producers = [s for s in state.staff if s.assigned_task in TASKS and TASKS[s.assigned_task].production > 0]
    if producers and state.product_ids:
        out.append(
            AvailableAction(
                "set_staff_focus_product",
                "设置员工产品专注（80%工时集中于指定产品）",
                {
                    "staff": [{"id": s.staff_id, "name": s.name, "current_focus": s.focus_product_id} for s in producers],
                    "products": [{"id": p.product_id, "name": p.name, "category": p.category} for p in state.products()],
                },
            )
        )
    return out
