from __future__ import annotations

import math
import random
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, ClassVar, Dict, Optional, Union

from storesim import catalog
from storesim.catalog import (
    BOSS_ACTIONS,
    BOSS_WORK_ROLES,
    BRANDS,
    DECORATIONS,
    DISCOUNT_TIERS,
    INTERACTIVE_EVENTS,
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
    SEASON_START_MONTH,
    STAFF_TYPES,
    TASKS,
    RecruitmentChannel,
    exposure_floor,
    map_launch_to_awareness,
    season_from_month,
    stop_penalty,
)
from storesim.engine import advance_week, create_initial_state, weekly_fixed_cost
from storesim.events import apply_event_effects
from storesim.models import ActiveMarketing, ActivePlatform, GameState, GrowthSystem, InventoryItem, Staff, apply_cognition_exp
from storesim.rings import assign_shops_to_rings, generate_consumer_rings
from storesim.settlement import SUPPLY_PRIORITIES
from storesim.shops import generate_initial_shops

# ---------------------------------------------------------------------------
# Action variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SelectBrand:
    type: ClassVar[str] = "select_brand"
    brand_id: Optional[str]


@dataclass(frozen=True)
class SelectLocation:
    type: ClassVar[str] = "select_location"
    location_id: Optional[str]


@dataclass(frozen=True)
class SelectAddress:
    type: ClassVar[str] = "select_address"
    address_id: Optional[str]


@dataclass(frozen=True)
class SelectDecoration:
    type: ClassVar[str] = "select_decoration"
    decoration_id: Optional[str]


@dataclass(frozen=True)
class ToggleProduct:
    type: ClassVar[str] = "toggle_product"
    product_id: str


@dataclass(frozen=True)
class AddStaff:
    type: ClassVar[str] = "add_staff"
    staff_type_id: str
    task: Optional[str] = None


@dataclass(frozen=True)
class FireStaff:
    type: ClassVar[str] = "fire_staff"
    staff_id: str


@dataclass(frozen=True)
class OpenStore:
    type: ClassVar[str] = "open_store"
    season: Optional[str] = None


@dataclass(frozen=True)
class NextWeek:
    type: ClassVar[str] = "next_week"


@dataclass(frozen=True)
class Restart:
    type: ClassVar[str] = "restart"


@dataclass(frozen=True)
class JoinPlatform:
    type: ClassVar[str] = "join_platform"
    platform_id: str


@dataclass(frozen=True)
class LeavePlatform:
    type: ClassVar[str] = "leave_platform"
    platform_id: str


@dataclass(frozen=True)
class TogglePromotion:
    type: ClassVar[str] = "toggle_promotion"
    platform_id: str
    tier_index: int


@dataclass(frozen=True)
class SetDiscountTier:
    type: ClassVar[str] = "set_discount_tier"
    platform_id: str
    tier_id: str


@dataclass(frozen=True)
class SetDeliveryPricing:
    type: ClassVar[str] = "set_delivery_pricing"
    platform_id: str
    pricing_id: str


@dataclass(frozen=True)
class SetPackagingTier:
    type: ClassVar[str] = "set_packaging_tier"
    platform_id: str
    tier_id: str


@dataclass(frozen=True)
class SetSupplyPriority:
    type: ClassVar[str] = "set_supply_priority"
    priority: str


@dataclass(frozen=True)
class StartMarketing:
    type: ClassVar[str] = "start_marketing"
    activity_id: str


@dataclass(frozen=True)
class StopMarketing:
    type: ClassVar[str] = "stop_marketing"
    activity_id: str


@dataclass(frozen=True)
class SetProductPrice:
    type: ClassVar[str] = "set_product_price"
    product_id: str
    price: float


@dataclass(frozen=True)
class SetProductInventory:
    type: ClassVar[str] = "set_product_inventory"
    product_id: str
    quantity: int


@dataclass(frozen=True)
class SetRestockStrategy:
    type: ClassVar[str] = "set_restock_strategy"
    product_id: str
    strategy: str


@dataclass(frozen=True)
class AssignStaffTask:
    type: ClassVar[str] = "assign_staff_task"
    staff_id: str
    task: str


@dataclass(frozen=True)
class SetStaffWorkHours:
    type: ClassVar[str] = "set_staff_work_hours"
    staff_id: str
    days: int
    hours: int


@dataclass(frozen=True)
class SetStaffFocusProduct:
    type: ClassVar[str] = "set_staff_focus_product"
    staff_id: str
    product_id: Optional[str] = None


@dataclass(frozen=True)
class RecruitStaff:
    type: ClassVar[str] = "recruit_staff"
    channel_id: str
    staff_type_id: str
    task: Optional[str] = None


@dataclass(frozen=True)
class SetStaffSalary:
    type: ClassVar[str] = "set_staff_salary"
    staff_id: str
    salary: float


@dataclass(frozen=True)
class StaffMoraleAction:
    type: ClassVar[str] = "staff_morale_action"
    action: str
    staff_id: Optional[str] = None
    amount: Optional[int] = None


@dataclass(frozen=True)
class RetainStaff:
    type: ClassVar[str] = "retain_staff"
    staff_id: str
    method: str


@dataclass(frozen=True)
class ConsultAdvisor:
    type: ClassVar[str] = "consult_advisor"


@dataclass(frozen=True)
class SetBossAction:
    type: ClassVar[str] = "set_boss_action"
    action: str
    role: Optional[str] = None
    shop_id: Optional[str] = None


@dataclass(frozen=True)
class RespondToEvent:
    type: ClassVar[str] = "respond_to_event"
    event_id: str
    option_id: str


Action = Union[
    SelectBrand, SelectLocation, SelectAddress, SelectDecoration, ToggleProduct, AddStaff, FireStaff,
    OpenStore, NextWeek, Restart, JoinPlatform, LeavePlatform, TogglePromotion, SetDiscountTier,
    SetDeliveryPricing, SetPackagingTier, SetSupplyPriority, StartMarketing, StopMarketing,
    SetProductPrice, SetProductInventory, SetRestockStrategy, AssignStaffTask, SetStaffWorkHours,
    SetStaffFocusProduct, ConsultAdvisor, RecruitStaff, SetStaffSalary, StaffMoraleAction, RetainStaff,
    SetBossAction, RespondToEvent,
]

ACTION_TYPES: Dict[str, type] = {cls.type: cls for cls in Action.__args__}

# successful actions of these kinds count as player activity
ACTIVE_OPERATIONS = frozenset({
    "fire_staff", "join_platform", "leave_platform", "toggle_promotion", "set_discount_tier",
    "set_delivery_pricing", "set_packaging_tier", "start_marketing", "stop_marketing",
    "set_product_price", "set_product_inventory", "set_restock_strategy", "assign_staff_task",
    "set_staff_work_hours", "toggle_product", "consult_advisor", "set_staff_focus_product",
    "set_supply_priority", "recruit_staff", "set_staff_salary", "staff_morale_action", "retain_staff",
    "set_boss_action",
})


def action_to_dict(action: Action) -> Dict[str, Any]:
    d: Dict[str, Any] = {"type": action.type}
    d.update(asdict(action))
    return d


def action_from_dict(payload: Dict[str, Any]) -> Action:
    """Build an action from {"type": ..., **fields}. Raises ValueError on bad input."""

    kind = payload.get("type")
    cls = ACTION_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise ValueError(f"unknown action type: {kind!r}")
    names = {f.name for f in fields(cls)}
    unknown = set(payload) - names - {"type"}
    if unknown:
        raise ValueError(f"unexpected fields for {kind}: {sorted(unknown)}")
    try:
        return cls(**{k: v for k, v in payload.items() if k != "type"})
    except TypeError as e:
        raise ValueError(f"bad fields for {kind}: {e}") from e


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass
class ActionResult:
    changed: bool
    state: GameState
    error: Optional[str] = None


def _fail(state: GameState, error: str) -> ActionResult:
    return ActionResult(False, state, error)


def _ok(state: GameState) -> ActionResult:
    return ActionResult(True, state)


def _bump_ops(state: GameState) -> None:
    state.cognition.weekly_operation_count += 1


def _brand_kind(state: GameState) -> str:
    b = state.brand()
    return "franchise" if b and (b.brand_type == "franchise" or b.is_quick_franchise) else "independent"


# ---------------------------------------------------------------------------
# Setup handlers
# ---------------------------------------------------------------------------


def _select_brand(s: GameState, a: SelectBrand, rng: random.Random) -> ActionResult:
    if s.phase != "setup":
        return _fail(s, "仅筹备阶段可选择品牌")
    if a.brand_id is None:
        s.brand_id = None
        s.cash = catalog.INITIAL_CASH
        s.total_investment = 0.0
        s.reputation = 10.0
        s.exposure = 5.0
        s.growth = GrowthSystem(6.0, 0.3, 4.0, 1.0, 0.1, 40.0)
        return _ok(s)
    brand = BRANDS.get(a.brand_id)
    if brand is None:
        return _fail(s, f"Brand not found: {a.brand_id}")

    if brand.brand_type == "franchise":
        exposure = 35 + math.floor(rng.random() * 21)
    else:
        exposure = 5 + math.floor(rng.random() * 8)
    launch = 18.0 if brand.is_quick_franchise else 34.0 if brand.brand_type == "franchise" else 10.0
    rep = brand.initial_reputation or 10.0

    s.brand_id = brand.brand_id
    s.cash = catalog.INITIAL_CASH - brand.franchise_fee
    s.total_investment = brand.franchise_fee
    s.reputation = rep
    s.exposure = float(exposure)
    s.growth = GrowthSystem(
        launch_progress=launch,
        awareness_factor=map_launch_to_awareness(launch),
        awareness_stock=max(4.0, exposure * 0.65),
        campaign_pulse=max(1.0, exposure * 0.35),
        trust_confidence=0.22 if brand.brand_type == "franchise" else 0.12,
        repeat_intent=max(38.0, min(75.0, rep)),
    )
    return _ok(s)


def _select_location(s: GameState, a: SelectLocation, rng: random.Random) -> ActionResult:
    if s.phase != "setup":
        return _fail(s, "仅筹备阶段可选择区位")
    if s.location_locked:
        return _fail(s, "Location is locked by quick franchise")
    if a.location_id is None:
        s.location_id = None
        s.address_id = None
        return _ok(s)
    if a.location_id not in LOCATIONS:
        return _fail(s, f"Location not found: {a.location_id}")
    s.location_id = a.location_id
    s.address_id = None
    s.location_locked = s.is_quick_franchise()
    return _ok(s)


def _select_address(s: GameState, a: SelectAddress, rng: random.Random) -> ActionResult:
    if s.phase != "setup":
        return _fail(s, "仅筹备阶段可选择地址")
    if s.location_locked and s.address_id is not None:
        return _fail(s, "Location is locked by quick franchise")
    if a.address_id is None:
        s.address_id = None
        s.nearby_shops = []
        s.base_consumer_rings = []
        s.consumer_rings = []
        return _ok(s)
    location = s.location()
    if location is None:
        return _fail(s, "No location selected")
    address = location.address(a.address_id)
    if address is None:
        return _fail(s, f"Address not found: {a.address_id}")

    rent_base = location.rent_per_sqm * (address.rent_modifier or 1.0) * address.area
    shops = generate_initial_shops(s, location.location_id, rent_base, rng)
    rings = generate_consumer_rings(location, address, rng)
    s.address_id = address.address_id
    s.store_area = address.area or s.store_area
    s.nearby_shops = shops
    s.base_consumer_rings = rings
    s.consumer_rings = assign_shops_to_rings(rings, shops)
    return _ok(s)


def _select_decoration(s: GameState, a: SelectDecoration, rng: random.Random) -> ActionResult:
    if s.phase != "setup":
        return _fail(s, "仅筹备阶段可选择装修")
    if s.decoration_locked:
        return _fail(s, "Decoration is locked")
    prev = s.decoration()
    previous_cost = prev.cost_per_sqm * s.store_area * s.decoration_cost_markup if prev else 0.0
    if a.decoration_id is None:
        s.decoration_id = None
        s.cash += previous_cost
        s.total_investment -= previous_cost
        return _ok(s)
    deco = DECORATIONS.get(a.decoration_id)
    if deco is None:
        return _fail(s, f"Decoration not found: {a.decoration_id}")
    qf = s.is_quick_franchise()
    markup = 1.3 + rng.random() * 0.2 if qf else 1.0
    new_cost = deco.cost_per_sqm * s.store_area * markup
    s.decoration_id = deco.decoration_id
    s.cash += previous_cost - new_cost
    s.total_investment += new_cost - previous_cost
    s.decoration_locked = qf
    s.decoration_cost_markup = markup
    return _ok(s)


def _new_inventory_item(s: GameState, product_id: str, qty: int) -> InventoryItem:
    p = PRODUCTS[product_id]
    unit_cost = p.base_cost * s.supply_cost_modifier()
    return InventoryItem(
        product_id=p.product_id,
        name=p.name,
        quantity=qty,
        unit_cost=unit_cost,
        storage=p.storage,
        last_restock_quantity=qty,
        last_restock_cost=qty * unit_cost,
    )


def _toggle_product(s: GameState, a: ToggleProduct, rng: random.Random) -> ActionResult:
    if s.products_locked:
        return _fail(s, "Products locked")
    product = PRODUCTS.get(a.product_id)
    if product is None:
        return _fail(s, f"Product not found: {a.product_id}")
    exists = a.product_id in s.product_ids
    qf = s.is_quick_franchise()
    operating = s.phase == "operating"
    brand = s.brand()
    if brand and brand.allowed_categories and not exists and product.category not in brand.allowed_categories:
        return _fail(s, f"Category {product.category} not allowed")

    if exists:
        if qf:
            return _fail(s, "Cannot remove under quick franchise")
        if operating and len(s.product_ids) <= 1:
            return _fail(s, "Min products reached")
        if operating and s.weekly_product_changes >= catalog.MAX_WEEKLY_PRODUCT_CHANGES:
            return _fail(s, "Weekly change limit")
        s.product_ids.remove(a.product_id)
        if operating:
            s.weekly_product_changes += 1
            s.inventory.items = [it for it in s.inventory.items if it.product_id != a.product_id]
            s.inventory.recompute_total()
        return _ok(s)

    if len(s.product_ids) >= catalog.MAX_PRODUCTS:
        return _fail(s, "Max products reached")
    if operating and s.weekly_product_changes >= catalog.MAX_WEEKLY_PRODUCT_CHANGES:
        return _fail(s, "Weekly change limit")
    if operating and s.cash < catalog.PRODUCT_ADD_COST:
        return _fail(s, "Not enough cash")

    s.product_ids.append(a.product_id)
    s.products_locked = qf and len(s.product_ids) >= 3
    if operating:
        item = _new_inventory_item(s, a.product_id, catalog.PRODUCT_ADD_UNITS)
        s.cash -= catalog.PRODUCT_ADD_COST + item.last_restock_cost
        s.inventory.items.append(item)
        s.inventory.recompute_total()
        s.weekly_product_changes += 1
    return _ok(s)


def _make_staff(
    s: GameState, staff_type_id: str, task: Optional[str], rng: random.Random, channel: Optional[RecruitmentChannel] = None,
) -> Staff:
    st = STAFF_TYPES[staff_type_id]
    location = s.location()
    wage = location.wage_level if location else 1.0
    days, hours = 6, 8
    if st.hourly_rate > 0:
        salary = float(round(st.hourly_rate * days * hours * 4 * wage))
    else:
        salary = float(round(st.base_salary * wage))
    name = catalog.STAFF_NAMES[math.floor(rng.random() * len(catalog.STAFF_NAMES))]
    if channel is not None:
        lo, hi = channel.skill_range
        skill = lo + math.floor(rng.random() * (hi - lo + 1))
    else:
        skill = math.floor(rng.random() * 3) + 1
    eff = st.efficiency * (0.8 + skill * 0.1)
    svc = st.service_quality * (0.8 + skill * 0.1)
    default_task = "chef" if "chef" in st.tasks and "waiter" not in st.tasks else "waiter"
    return Staff(
        staff_id=s.new_id("staff"),
        type_id=staff_type_id,
        name=name,
        salary=salary,
        skill_level=skill,
        base_efficiency=eff,
        efficiency=eff,
        base_service_quality=svc,
        service_quality=svc,
        morale=float(70 + math.floor(rng.random() * 20)),
        hired_week=s.current_week,
        assigned_task=task if task and task in st.tasks else default_task,
        current_task_since=s.current_week,
        work_days=days,
        work_hours=hours,
        is_onboarding=channel is not None,
        onboarding_ends_week=s.current_week + (catalog.ONBOARDING_WEEKS if channel is not None else 0),
    )


def _add_staff(s: GameState, a: AddStaff, rng: random.Random) -> ActionResult:
    if s.phase != "setup":
        return _fail(s, "仅筹备阶段可直接添加员工")
    if a.staff_type_id not in STAFF_TYPES:
        return _fail(s, f"Staff type not found: {a.staff_type_id}")
    if s.location() is None:
        return _fail(s, "No location selected")
    if len(s.staff) >= catalog.MAX_SETUP_STAFF:
        return _fail(s, "筹备阶段最多招聘8人")
    s.staff.append(_make_staff(s, a.staff_type_id, a.task, rng))
    return _ok(s)


def _recruit_staff(s: GameState, a: RecruitStaff, rng: random.Random) -> ActionResult:
    channel = RECRUITMENT_CHANNELS.get(a.channel_id)
    if channel is None:
        return _fail(s, f"Channel not found: {a.channel_id}")
    if a.staff_type_id not in STAFF_TYPES:
        return _fail(s, f"Staff type not found: {a.staff_type_id}")
    if s.location() is None:
        return _fail(s, "No location selected")
    if s.cash < channel.cost:
        return _fail(s, "Not enough cash")
    s.staff.append(_make_staff(s, a.staff_type_id, a.task, rng, channel))
    s.cash -= channel.cost
    _bump_ops(s)
    return _ok(s)


def _fire_staff(s: GameState, a: FireStaff, rng: random.Random) -> ActionResult:
    fired = s.staff_member(a.staff_id)
    if fired is None:
        return _fail(s, f"Staff not found: {a.staff_id}")
    penalty = catalog.FIRE_MORALE_PENALTY
    if s.current_week - fired.hired_week >= 8:
        penalty += catalog.FIRE_TENURE_PENALTY
    if fired.skill_level >= 3:
        penalty += catalog.FIRE_SKILL_PENALTY
    s.staff = [m for m in s.staff if m.staff_id != a.staff_id]
    for m in s.staff:
        m.morale = max(0.0, min(100.0, m.morale + penalty))
    _bump_ops(s)
    return _ok(s)


def _open_store(s: GameState, a: OpenStore, rng: random.Random) -> ActionResult:
    if s.phase != "setup":
        return _fail(s, "仅筹备阶段可开店")
    if s.brand() is None:
        return _fail(s, "请先选择品牌")
    if s.location() is None:
        return _fail(s, "请先选择区位")
    if s.address() is None:
        return _fail(s, "请先选择地址")
    if s.decoration() is None:
        return _fail(s, "请先选择装修")
    if not s.product_ids:
        return _fail(s, "请先选择产品")
    if not s.staff:
        return _fail(s, "请先招聘员工")
    if a.season is not None and a.season not in SEASON_START_MONTH:
        return _fail(s, f"Season not found: {a.season}")

    location = s.location()
    address = s.address()
    start_month = SEASON_START_MONTH[a.season] if a.season else math.floor(rng.random() * 12) + 1
    monthly_rent = location.rent_per_sqm * (address.area or s.store_area) * (address.rent_modifier or 1.0)
    setup_cost = (
        catalog.LICENSE_COST + catalog.EQUIPMENT_COST + catalog.FIRST_BATCH_COST
        + monthly_rent * (catalog.RENT_DEPOSIT_MONTHS + catalog.RENT_PREPAID_MONTHS)
    )
    stock_weeks = 4 if s.cognition.level < 1 else 1.5
    qty = math.ceil(catalog.DEFAULT_SALES_ESTIMATE * stock_weeks)
    items = [_new_inventory_item(s, pid, qty) for pid in s.product_ids if pid in PRODUCTS]
    restock = sum(it.last_restock_cost for it in items)

    s.phase = "operating"
    s.start_month = start_month
    s.season = season_from_month(start_month)
    s.weekly_fixed_cost = weekly_fixed_cost(s)
    s.total_investment += setup_cost
    s.cash -= restock + setup_cost
    s.inventory.items = items
    s.inventory.recompute_total()
    s.inventory.weekly_holding_cost = 0.0
    s.inventory.weekly_waste_cost = 0.0
    s.inventory.weekly_restock_cost = restock
    return _ok(s)


def _next_week(s: GameState, a: NextWeek, rng: random.Random) -> ActionResult:
    if s.phase != "operating":
        return _fail(s, "仅经营阶段可推进周")
    advance_week(s, rng)
    return _ok(s)


def _restart(s: GameState, a: Restart, rng: random.Random) -> ActionResult:
    return _ok(create_initial_state())


# ---------------------------------------------------------------------------
# Delivery handlers
# ---------------------------------------------------------------------------


def _join_platform(s: GameState, a: JoinPlatform, rng: random.Random) -> ActionResult:
    platform = PLATFORMS.get(a.platform_id)
    if platform is None:
        return _fail(s, f"Platform not found: {a.platform_id}")
    if s.cognition.level < platform.min_cognition[_brand_kind(s)]:
        return _fail(s, "Cognition level too low")
    if s.delivery.platform(a.platform_id) is not None:
        return _fail(s, "Already joined")
    s.delivery.platforms.append(ActivePlatform(platform_id=a.platform_id))
    s.delivery.recompute_total()
    _bump_ops(s)
    return _ok(s)


def _joined(s: GameState, platform_id: str, what: str) -> Optional[str]:
    if s.phase != "operating":
        return f"仅经营阶段可操作{what}"
    if s.delivery.platform(platform_id) is None:
        return f"未加入该平台: {platform_id}"
    return None


def _leave_platform(s: GameState, a: LeavePlatform, rng: random.Random) -> ActionResult:
    err = _joined(s, a.platform_id, "外卖平台")
    if err:
        return _fail(s, err)
    s.delivery.platforms = [p for p in s.delivery.platforms if p.platform_id != a.platform_id]
    s.delivery.recompute_total()
    _bump_ops(s)
    return _ok(s)


def _toggle_promotion(s: GameState, a: TogglePromotion, rng: random.Random) -> ActionResult:
    err = _joined(s, a.platform_id, "推广")
    if err:
        return _fail(s, err)
    if not 0 <= a.tier_index < len(PROMOTION_TIERS):
        return _fail(s, f"Tier not found: {a.tier_index}")
    tier = PROMOTION_TIERS[a.tier_index]
    ap = s.delivery.platform(a.platform_id)
    ap.promotion_tier_id = tier.tier_id
    ap.weekly_promotion_cost = tier.weekly_cost
    _bump_ops(s)
    return _ok(s)


def _set_discount_tier(s: GameState, a: SetDiscountTier, rng: random.Random) -> ActionResult:
    err = _joined(s, a.platform_id, "满减")
    if err:
        return _fail(s, err)
    if a.tier_id not in DISCOUNT_TIERS:
        return _fail(s, f"Discount tier not found: {a.tier_id}")
    s.delivery.platform(a.platform_id).discount_tier_id = a.tier_id
    _bump_ops(s)
    return _ok(s)


def _set_delivery_pricing(s: GameState, a: SetDeliveryPricing, rng: random.Random) -> ActionResult:
    err = _joined(s, a.platform_id, "外卖定价")
    if err:
        return _fail(s, err)
    if a.pricing_id not in PRICING_TIERS:
        return _fail(s, f"Delivery pricing not found: {a.pricing_id}")
    s.delivery.platform(a.platform_id).pricing_id = a.pricing_id
    _bump_ops(s)
    return _ok(s)


def _set_packaging_tier(s: GameState, a: SetPackagingTier, rng: random.Random) -> ActionResult:
    err = _joined(s, a.platform_id, "包装")
    if err:
        return _fail(s, err)
    if a.tier_id not in PACKAGING_TIERS:
        return _fail(s, f"Packaging tier not found: {a.tier_id}")
    s.delivery.platform(a.platform_id).packaging_tier_id = a.tier_id
    _bump_ops(s)
    return _ok(s)


def _set_supply_priority(s: GameState, a: SetSupplyPriority, rng: random.Random) -> ActionResult:
    if s.phase != "operating":
        return _fail(s, "仅经营阶段可设置出餐分配")
    if a.priority not in SUPPLY_PRIORITIES:
        return _fail(s, f"Supply priority not found: {a.priority}")
    if s.supply_priority == a.priority:
        return _fail(s, "已是当前模式")
    s.supply_priority = a.priority
    return _ok(s)


# ---------------------------------------------------------------------------
# Marketing handlers
# ---------------------------------------------------------------------------


def _start_marketing(s: GameState, a: StartMarketing, rng: random.Random) -> ActionResult:
    cfg = MARKETING_ACTIVITIES.get(a.activity_id)
    if cfg is None:
        return _fail(s, f"Activity not found: {a.activity_id}")
    if any(m.activity_id == a.activity_id for m in s.marketing):
        return _fail(s, "Already active")
    if cfg.unique and a.activity_id in s.used_unique_activities:
        return _fail(s, "Already used")
    one_time = cfg.activity_type == "one_time"
    if one_time and cfg.cooldown_weeks:
        last = s.last_activity_week.get(a.activity_id)
        if last is not None and s.current_week - last < cfg.cooldown_weeks:
            return _fail(s, "In cooldown")
    if one_time and s.cash < cfg.base_cost:
        return _fail(s, "Not enough cash")

    s.marketing.append(ActiveMarketing(activity_id=a.activity_id, start_week=s.current_week))
    if one_time:
        s.cash -= cfg.base_cost
        s.used_unique_activities.append(a.activity_id)
        s.last_activity_week[a.activity_id] = s.current_week
    _bump_ops(s)
    return _ok(s)


def _stop_marketing(s: GameState, a: StopMarketing, rng: random.Random) -> ActionResult:
    active = next((m for m in s.marketing if m.activity_id == a.activity_id), None)
    if active is None:
        return _fail(s, f"Activity not found: {a.activity_id}")
    cfg = MARKETING_ACTIVITIES.get(a.activity_id)
    penalty = stop_penalty(cfg, active.active_weeks) if cfg else 0.0
    s.marketing = [m for m in s.marketing if m.activity_id != a.activity_id]
    s.exposure = max(exposure_floor(s.traffic_modifier()), s.exposure * (1 - penalty))
    _bump_ops(s)
    return _ok(s)


# ---------------------------------------------------------------------------
# Product / inventory handlers
# ---------------------------------------------------------------------------


def _set_product_price(s: GameState, a: SetProductPrice, rng: random.Random) -> ActionResult:
    if s.phase != "operating":
        return _fail(s, "仅经营阶段可调价")
    if a.product_id not in s.product_ids or a.product_id not in PRODUCTS:
        return _fail(s, f"产品不存在: {a.product_id}")
    if not math.isfinite(a.price) or a.price <= 0:
        return _fail(s, "价格必须为正数")
    product = PRODUCTS[a.product_id]
    max_price = (product.reference_price or product.base_price) * 3
    s.product_prices[a.product_id] = max(1.0, min(max_price, round(a.price * 100) / 100))
    _bump_ops(s)
    return _ok(s)


def _set_product_inventory(s: GameState, a: SetProductInventory, rng: random.Random) -> ActionResult:
    if s.cognition.level < 1:
        return _fail(s, "Cognition level too low for inventory ops")
    if a.product_id not in s.product_ids or a.product_id not in PRODUCTS:
        return _fail(s, f"Product not found: {a.product_id}")
    unit_cost = PRODUCTS[a.product_id].base_cost * s.supply_cost_modifier()
    existing = s.inventory.item(a.product_id)
    current = existing.quantity if existing else 0
    new_qty = max(0, int(a.quantity))
    purchase = max(0, new_qty - current) * unit_cost
    if purchase > 0 and s.cash < purchase:
        return _fail(s, "Not enough cash")
    if existing:
        existing.quantity = new_qty
    else:
        s.inventory.items.append(_new_inventory_item(s, a.product_id, new_qty))
    s.cash -= purchase
    s.inventory.recompute_total()
    _bump_ops(s)
    return _ok(s)


def _set_restock_strategy(s: GameState, a: SetRestockStrategy, rng: random.Random) -> ActionResult:
    if s.cognition.level < 1:
        return _fail(s, "Cognition level too low for inventory ops")
    if a.strategy not in RESTOCK_STRATEGIES:
        return _fail(s, f"Restock strategy not found: {a.strategy}")
    for it in s.inventory.items:
        if it.product_id == a.product_id:
            it.restock_strategy = a.strategy
    _bump_ops(s)
    return _ok(s)


# ---------------------------------------------------------------------------
# Staff handlers
# ---------------------------------------------------------------------------


def _assign_staff_task(s: GameState, a: AssignStaffTask, rng: random.Random) -> ActionResult:
    m = s.staff_member(a.staff_id)
    if m is None:
        return _fail(s, f"Staff not found: {a.staff_id}")
    if m.assigned_task == a.task:
        return _fail(s, "Already on this task")
    st = STAFF_TYPES.get(m.type_id)
    if a.task not in TASKS or (st is not None and a.task not in st.tasks):
        return _fail(s, f"该员工类型不支持岗位: {a.task}")
    m.previous_tasks[m.assigned_task] = m.task_exp
    history = m.previous_tasks.get(a.task)
    if history is not None:
        m.task_exp = float(math.floor(history * catalog.TRANSITION_RETURN_RETAIN))
    else:
        m.task_exp = float(math.floor(m.task_exp * catalog.TRANSITION_RETAIN))
    m.assigned_task = a.task
    m.current_task_since = s.current_week
    m.is_transitioning = s.phase == "operating"
    m.transition_ends_week = s.current_week + catalog.TRANSITION_WEEKS
    _bump_ops(s)
    return _ok(s)


def _set_staff_work_hours(s: GameState, a: SetStaffWorkHours, rng: random.Random) -> ActionResult:
    m = s.staff_member(a.staff_id)
    if m is None:
        return _fail(s, f"Staff not found: {a.staff_id}")
    days = max(catalog.MIN_WORK_DAYS, min(catalog.MAX_WORK_DAYS, int(a.days)))
    hours = max(catalog.MIN_WORK_HOURS, min(catalog.MAX_WORK_HOURS, int(a.hours)))
    st = STAFF_TYPES.get(m.type_id)
    if st is not None and st.hourly_rate > 0:
        location = s.location()
        wage = location.wage_level if location else 1.0
        m.salary = float(round(st.hourly_rate * days * hours * 4 * wage))
    m.work_days = days
    m.work_hours = hours
    _bump_ops(s)
    return _ok(s)


def _set_staff_focus_product(s: GameState, a: SetStaffFocusProduct, rng: random.Random) -> ActionResult:
    m = s.staff_member(a.staff_id)
    if m is None:
        return _fail(s, f"Staff not found: {a.staff_id}")
    task = TASKS.get(m.assigned_task)
    if task is None or task.production <= 0:
        return _fail(s, "当前岗位无产能，无法设置产品专注")
    if a.product_id is None:
        m.focus_product_id = None
        _bump_ops(s)
        return _ok(s)
    if a.product_id not in s.product_ids or a.product_id not in PRODUCTS:
        return _fail(s, "该产品不在当前选品列表中")
    st = STAFF_TYPES.get(m.type_id)
    if st is not None and PRODUCTS[a.product_id].category not in st.handles:
        return _fail(s, "该员工无法处理此品类产品")
    m.focus_product_id = a.product_id
    _bump_ops(s)
    return _ok(s)


def _consult_advisor(s: GameState, a: ConsultAdvisor, rng: random.Random) -> ActionResult:
    times = s.cognition.consults_this_week
    if times >= catalog.CONSULT_WEEKLY_LIMIT:
        return _fail(s, "Weekly consult limit reached")
    if s.cash < catalog.CONSULT_COST:
        return _fail(s, "Not enough cash")
    s.cognition = apply_cognition_exp(s.cognition, catalog.CONSULT_EXP)
    s.cognition.consults_this_week = times + 1
    s.cash -= catalog.CONSULT_COST
    return _ok(s)


def _set_staff_salary(s: GameState, a: SetStaffSalary, rng: random.Random) -> ActionResult:
    if s.cognition.level < catalog.SALARY_MIN_LEVEL:
        return _fail(s, "认知等级不足，需要达到Lv2才能调整薪资")
    m = s.staff_member(a.staff_id)
    if m is None:
        return _fail(s, f"Staff not found: {a.staff_id}")
    st = STAFF_TYPES.get(m.type_id)
    if st is None:
        return _fail(s, "Staff type not found")
    if st.hourly_rate > 0:
        return _fail(s, "兼职员工按时薪计费，请通过调整工时来控制成本")
    if not math.isfinite(a.salary):
        return _fail(s, "薪资必须为有限数值")
    location = s.location()
    base = round(st.base_salary * (location.wage_level if location else 1.0))
    salary = float(max(round(base * catalog.SALARY_MIN_RATIO), min(round(base * catalog.SALARY_MAX_RATIO), round(a.salary))))
    if salary == m.salary:
        return _fail(s, "Salary unchanged")

    ratio = abs(salary - m.salary) / m.salary if m.salary > 0 else 1.0
    if salary > m.salary:
        boost = min(catalog.SALARY_RAISE_MAX_BOOST, round(ratio * catalog.SALARY_RAISE_COEF))
        m.morale = min(100.0, m.morale + boost)
        m.salary_raise_morale_boost = float(boost)
    else:
        m.morale = max(0.0, m.morale - round(ratio * catalog.SALARY_CUT_COEF))
        if rng.random() < catalog.SALARY_CUT_QUIT_CHANCE:
            m.wants_to_quit = True
    m.salary = salary
    _bump_ops(s)
    return _ok(s)


def _on_cooldown(last: Optional[int], week: int, cooldown: int) -> Optional[int]:
    if last is None or week - last >= cooldown:
        return None
    return cooldown - (week - last)


def _staff_morale_action(s: GameState, a: StaffMoraleAction, rng: random.Random) -> ActionResult:
    if a.action not in MORALE_ACTIONS:
        return _fail(s, f"Unknown morale action: {a.action}")
    if s.cognition.level < catalog.MORALE_ACTION_MIN_LEVEL:
        return _fail(s, "认知等级不足，需要达到Lv1才能使用士气管理工具")

    if a.action == "team_meal":
        wait = _on_cooldown(s.last_team_meal_week, s.current_week, catalog.TEAM_MEAL_COOLDOWN_WEEKS)
        if wait:
            return _fail(s, f"团建冷却中，还需{wait}周")
        cost = catalog.TEAM_MEAL_COST_PER_PERSON * len(s.staff)
        if s.cash < cost:
            return _fail(s, "现金不足")
        for m in s.staff:
            m.morale = min(100.0, m.morale + catalog.TEAM_MEAL_MORALE)
            m.fatigue = max(0.0, m.fatigue - catalog.TEAM_MEAL_FATIGUE)
        s.cash -= cost
        s.last_team_meal_week = s.current_week
    else:
        if a.staff_id is None:
            return _fail(s, f"{a.action} requires target staff")
        target = s.staff_member(a.staff_id)
        if target is None:
            return _fail(s, f"Staff not found: {a.staff_id}")
        if a.action == "bonus":
            wait = _on_cooldown(target.last_bonus_week, s.current_week, catalog.BONUS_COOLDOWN_WEEKS)
            if wait:
                return _fail(s, f"奖金冷却中，还需{wait}周")
            # unknown amounts fall back to the smallest tier
            idx = catalog.BONUS_AMOUNTS.index(a.amount) if a.amount in catalog.BONUS_AMOUNTS else 0
            amount = catalog.BONUS_AMOUNTS[idx]
            if s.cash < amount:
                return _fail(s, "现金不足")
            for m in s.staff:
                gain = catalog.BONUS_MORALE[idx] if m is target else catalog.BONUS_OTHERS_MORALE
                m.morale = min(100.0, m.morale + gain)
            target.last_bonus_week = s.current_week
            s.cash -= amount
        else:
            wait = _on_cooldown(target.last_day_off_week, s.current_week, catalog.DAY_OFF_COOLDOWN_WEEKS)
            if wait:
                return _fail(s, f"放假冷却中，还需{wait}周")
            target.fatigue = max(0.0, target.fatigue - catalog.DAY_OFF_FATIGUE)
            target.morale = min(100.0, target.morale + catalog.DAY_OFF_MORALE)
            target.last_day_off_week = s.current_week

    s.staff_morale_action_count += 1
    s.weeks_since_last_morale_action = 0
    _bump_ops(s)
    return _ok(s)


def _retain_staff(s: GameState, a: RetainStaff, rng: random.Random) -> ActionResult:
    """Try to keep a staff member who wants to quit. A failed attempt still
    costs what the method costs; the staff member keeps wanting to quit."""

    method = RETENTION_METHODS.get(a.method)
    if method is None:
        return _fail(s, f"Unknown retention method: {a.method}")
    if s.cognition.level < catalog.RETENTION_MIN_LEVEL:
        return _fail(s, "认知等级不足，需要达到Lv2才能挽留员工")
    m = s.staff_member(a.staff_id)
    if m is None:
        return _fail(s, f"Staff not found: {a.staff_id}")
    if not m.wants_to_quit:
        return _fail(s, "该员工没有离职意向")
    cost = round(m.salary * method.cost_ratio)
    if s.cash < cost:
        return _fail(s, "现金不足")

    success = rng.random() < method.success_rate
    s.cash -= cost
    if method.salary_increase:
        m.salary = float(round(m.salary * (1 + method.salary_increase)))
    if success:
        m.morale = min(100.0, m.morale + method.morale_boost)
        m.fatigue = max(0.0, m.fatigue - method.fatigue_reduction)
        if method.target_days:
            m.work_days = method.target_days
            m.work_hours = method.target_hours
        m.wants_to_quit = False
    _bump_ops(s)
    return _ok(s)


# ---------------------------------------------------------------------------
# Boss and event handlers
# ---------------------------------------------------------------------------


def _set_boss_action(s: GameState, a: SetBossAction, rng: random.Random) -> ActionResult:
    if s.phase != "operating":
        return _fail(s, "仅经营阶段可设置老板行动")
    cfg = BOSS_ACTIONS.get(a.action)
    if cfg is None:
        return _fail(s, f"未知行动类型: {a.action}")
    if s.cognition.level < cfg.min_cognition:
        return _fail(s, f"认知等级不足，需要达到 Lv{cfg.min_cognition}")
    # charged by the weekly tick
    if s.cash < cfg.cost:
        return _fail(s, "现金不足")

    boss = s.boss
    # choosing the current action again switches back to supervising
    if boss.current_action == a.action and a.action != "work_in_store" and a.shop_id is None:
        boss.current_action = catalog.DEFAULT_BOSS_ACTION
        boss.work_role = None
        boss.target_shop_id = None
        return _ok(s)

    boss.current_action = a.action
    boss.last_action_week = s.current_week
    if a.action == "work_in_store":
        boss.work_role = a.role if a.role in BOSS_WORK_ROLES else "waiter"
    else:
        boss.work_role = None
    boss.target_shop_id = a.shop_id if a.action in ("investigate_nearby", "count_traffic") else None
    _bump_ops(s)
    return _ok(s)


def _respond_to_event(s: GameState, a: RespondToEvent, rng: random.Random) -> ActionResult:
    event = s.pending_event()
    if event is None:
        return _fail(s, "没有待响应的事件")
    if event.event_id != a.event_id:
        return _fail(s, f"事件ID不匹配: {a.event_id}")
    if not event.options:
        if a.option_id != NOTIFICATION_OPTION:
            return _fail(s, f"选项不存在: {a.option_id}")
        effects = event.notification_effects
    else:
        option = event.option(a.option_id)
        if option is None:
            return _fail(s, f"选项不存在: {a.option_id}")
        effects = option.effects
    if effects is not None:
        apply_event_effects(s, effects, event.event_id, rng)
    s.pending_event_id = None
    return _ok(s)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_HANDLERS: Dict[type, Callable[[GameState, Any, random.Random], ActionResult]] = {
    SelectBrand: _select_brand,
    SelectLocation: _select_location,
    SelectAddress: _select_address,
    SelectDecoration: _select_decoration,
    ToggleProduct: _toggle_product,
    AddStaff: _add_staff,
    FireStaff: _fire_staff,
    OpenStore: _open_store,
    NextWeek: _next_week,
    Restart: _restart,
    JoinPlatform: _join_platform,
    LeavePlatform: _leave_platform,
    TogglePromotion: _toggle_promotion,
    SetDiscountTier: _set_discount_tier,
    SetDeliveryPricing: _set_delivery_pricing,
    SetPackagingTier: _set_packaging_tier,
    SetSupplyPriority: _set_supply_priority,
    StartMarketing: _start_marketing,
    StopMarketing: _stop_marketing,
    SetProductPrice: _set_product_price,
    SetProductInventory: _set_product_inventory,
    SetRestockStrategy: _set_restock_strategy,
    AssignStaffTask: _assign_staff_task,
    SetStaffWorkHours: _set_staff_work_hours,
    SetStaffFocusProduct: _set_staff_focus_product,
    ConsultAdvisor: _consult_advisor,
    RecruitStaff: _recruit_staff,
    SetStaffSalary: _set_staff_salary,
    StaffMoraleAction: _staff_morale_action,
    RetainStaff: _retain_staff,
    SetBossAction: _set_boss_action,
    RespondToEvent: _respond_to_event,
}


def dispatch(state: GameState, action: Action, rng: random.Random) -> ActionResult:
    """Apply one action to a copy of state. The input state is never mutated.

    Rejections come back as ActionResult(changed=False, error=...) with the
    original state. Objects that are not Action variants raise TypeError.
    """

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"not an action: {action!r}")
    result = handler(state.clone(), action, rng)
    if not result.changed:
        return ActionResult(False, state, result.error)
    if action.type in ACTIVE_OPERATIONS:
        result.state.weeks_since_last_action = 0
    return result
