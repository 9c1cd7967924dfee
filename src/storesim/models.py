from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from storesim import catalog
from storesim.catalog import Address, Brand, Decoration, Location, Product


@dataclass
class GrowthSystem:
    launch_progress: float = 8.0  # 0-100
    awareness_factor: float = 0.25  # 0.25-1.0, mapped from launch_progress
    awareness_stock: float = 12.0  # slow variable
    campaign_pulse: float = 8.0  # fast variable
    trust_confidence: float = 0.12  # 0-1
    repeat_intent: float = 45.0  # 0-100

    def clone(self) -> GrowthSystem:
        return replace(self)


@dataclass
class Staff:
    staff_id: str
    type_id: str
    name: str
    salary: float
    skill_level: int
    base_efficiency: float
    efficiency: float
    base_service_quality: float
    service_quality: float
    morale: float
    hired_week: int
    assigned_task: str
    fatigue: float = 0.0
    task_exp: float = 0.0
    current_task_since: int = 0
    work_days: int = 6
    work_hours: int = 8
    is_onboarding: bool = False
    onboarding_ends_week: int = 0
    wants_to_quit: bool = False
    is_transitioning: bool = False
    transition_ends_week: int = 0
    previous_tasks: Dict[str, float] = field(default_factory=dict)
    focus_product_id: Optional[str] = None
    product_proficiency: Dict[str, float] = field(default_factory=dict)
    salary_raise_morale_boost: float = 0.0  # decays each week
    last_bonus_week: Optional[int] = None
    last_day_off_week: Optional[int] = None

    @property
    def weekly_hours(self) -> int:
        return self.work_days * self.work_hours

    def clone(self) -> Staff:
        return replace(
            self,
            previous_tasks=dict(self.previous_tasks),
            product_proficiency=dict(self.product_proficiency),
        )


@dataclass
class InventoryItem:
    product_id: str
    name: str
    quantity: int
    unit_cost: float
    storage: str
    restock_strategy: str = "auto_standard"  # manual|auto_conservative|auto_standard|auto_aggressive
    last_week_sales: int = 0
    last_week_waste: int = 0
    last_restock_quantity: int = 0
    last_restock_cost: float = 0.0

    def clone(self) -> InventoryItem:
        return replace(self)


@dataclass
class InventoryState:
    items: List[InventoryItem] = field(default_factory=list)
    total_value: float = 0.0
    weekly_holding_cost: float = 0.0
    weekly_waste_cost: float = 0.0
    weekly_restock_cost: float = 0.0

    def item(self, product_id: str) -> Optional[InventoryItem]:
        for it in self.items:
            if it.product_id == product_id:
                return it
        return None

    def recompute_total(self) -> None:
        self.total_value = sum(it.quantity * it.unit_cost for it in self.items)

    def clone(self) -> InventoryState:
        return replace(self, items=[it.clone() for it in self.items])


@dataclass
class ActivePlatform:
    platform_id: str
    active_weeks: int = 0
    platform_exposure: float = catalog.INITIAL_PLATFORM_EXPOSURE  # weight score 0-90
    promotion_tier_id: str = "none"
    discount_tier_id: str = "none"
    pricing_id: str = "same"
    packaging_tier_id: str = "basic"
    weekly_promotion_cost: float = 0.0
    recent_weekly_orders: List[int] = field(default_factory=list)  # last 4 weeks
    last_weight_base: float = catalog.INITIAL_PLATFORM_EXPOSURE
    last_weight_sales: float = 0.0
    last_weight_rating: float = 0.0
    last_weight_promotion: float = 0.0
    last_weight_discount: float = -5.0

    def clone(self) -> ActivePlatform:
        return replace(self, recent_weekly_orders=list(self.recent_weekly_orders))


@dataclass
class DeliveryState:
    platforms: List[ActivePlatform] = field(default_factory=list)
    total_platform_exposure: float = 0.0
    platform_rating: float = 0.0  # 0-5
    weekly_delivery_orders: int = 0
    weekly_delivery_revenue: float = 0.0
    weekly_commission_paid: float = 0.0
    weekly_package_cost: float = 0.0
    weekly_discount_cost: float = 0.0

    def platform(self, platform_id: str) -> Optional[ActivePlatform]:
        for p in self.platforms:
            if p.platform_id == platform_id:
                return p
        return None

    def recompute_total(self) -> None:
        self.total_platform_exposure = sum(p.platform_exposure for p in self.platforms)

    def clone(self) -> DeliveryState:
        return replace(self, platforms=[p.clone() for p in self.platforms])


@dataclass
class ActiveMarketing:
    activity_id: str
    start_week: int
    active_weeks: int = 0
    total_cost: float = 0.0

    def clone(self) -> ActiveMarketing:
        return replace(self)


@dataclass
class MistakeRecord:
    kind: str
    exp: float
    week: int
    description: str


@dataclass
class Cognition:
    level: int = 0
    exp: float = 0.0
    exp_to_next: float = float(catalog.COGNITION_EXP_REQUIRED[1])
    total_exp: float = 0.0
    mistake_history: List[MistakeRecord] = field(default_factory=list)
    weekly_operation_count: int = 0
    consults_this_week: int = 0

    def clone(self) -> Cognition:
        return replace(self, mistake_history=[replace(m) for m in self.mistake_history])


def apply_cognition_exp(cognition: Cognition, gain: float) -> Cognition:
    cog = cognition.clone()
    cog.exp += gain
    cog.total_exp += gain
    while cog.level < catalog.MAX_COGNITION_LEVEL and cog.exp >= cog.exp_to_next:
        cog.exp -= cog.exp_to_next
        cog.level += 1
        cog.exp_to_next = catalog.cognition_exp_to_next(cog.level)
    return cog


@dataclass
class BossBuff:
    buff_type: str  # supply_cost_reduction
    value: float
    remaining_weeks: int
    source: str


@dataclass
class Observation:
    """One investigation or traffic count. display_value may be wrong when not is_accurate."""

    shop_id: str
    shop_name: str
    dimension: str  # traffic|price|category|decoration|staff_count
    display_value: str
    is_accurate: bool
    week: int


@dataclass
class DinnerInsight:
    content: str
    is_accurate: bool
    week: int
    buff: Optional[BossBuff] = None


@dataclass
class BossActionState:
    current_action: str = "supervise"  # resets to supervise after every week
    work_role: Optional[str] = None
    target_shop_id: Optional[str] = None
    last_action_week: int = 0
    consecutive_study_weeks: int = 0
    active_buffs: List[BossBuff] = field(default_factory=list)
    investigation_history: List[Observation] = field(default_factory=list)
    insight_history: List[DinnerInsight] = field(default_factory=list)

    def clone(self) -> BossActionState:
        return replace(
            self,
            active_buffs=[replace(b) for b in self.active_buffs],
            investigation_history=[replace(o) for o in self.investigation_history],
            insight_history=[replace(i, buff=replace(i.buff) if i.buff else None) for i in self.insight_history],
        )


@dataclass
class EventBuff:
    buff_type: str  # revenue_multiplier|cost_multiplier|reputation_weekly|exposure_weekly
    value: float
    duration_weeks: int
    source: str


@dataclass
class DelayedEffect:
    execute_at_week: int
    effects: catalog.EventEffects
    source_event_id: str
    description: str = ""


@dataclass
class ChainTrigger:
    event_id: str
    trigger_at_week: int
    probability: float


@dataclass
class ShopProduct:
    name: str
    category: str
    sub_type: str
    price: float
    base_cost: float
    quality: float
    appeal: float


@dataclass
class NearbyShop:
    shop_id: str
    name: str
    shop_category: str  # drink|food|snack|meal|grocery|service
    brand_type: str  # chain|independent
    brand_tier: str  # budget|standard|premium
    products: List[ShopProduct]
    exposure: float
    service_quality: float
    decoration_level: int
    opened_week: int
    monthly_rent: float
    price_volatility: float
    ring: str
    has_delivery: bool
    is_closing: bool = False
    closed_week: Optional[int] = None
    weekly_profit: float = 0.0

    def clone(self) -> NearbyShop:
        return replace(self, products=[replace(p) for p in self.products])


@dataclass
class ConsumerRing:
    ring_id: str
    label: str
    consumers: Dict[str, float]
    base_conversion: float
    nearby_shop_ids: List[str] = field(default_factory=list)

    def clone(self) -> ConsumerRing:
        return replace(self, consumers=dict(self.consumers), nearby_shop_ids=list(self.nearby_shop_ids))


@dataclass
class WeeklySummary:
    week: int
    revenue: float
    variable_cost: float
    fixed_cost: float
    profit: float
    cumulative_profit: float
    total_investment: float
    cash_remaining: float
    total_demand: int
    total_supply: int
    fulfillment_rate: float
    product_sales: List[Dict[str, Any]] = field(default_factory=list)
    staff_count: int = 0
    avg_morale: float = 0.0
    avg_fatigue: float = 0.0
    quit_staff_names: List[str] = field(default_factory=list)
    cognition_level: int = 0
    exp_gained: float = 0.0
    exp_sources: List[Dict[str, Any]] = field(default_factory=list)
    event_id: Optional[str] = None
    consecutive_profits: int = 0
    return_on_investment_progress: float = 0.0
    cleanliness_change: float = 0.0
    restock_cost: float = 0.0
    boss_action: str = "supervise"
    boss_action_cost: float = 0.0
    interactive_event_id: Optional[str] = None

    def clone(self) -> WeeklySummary:
        return replace(
            self,
            product_sales=[dict(p) for p in self.product_sales],
            quit_staff_names=list(self.quit_staff_names),
            exp_sources=[dict(e) for e in self.exp_sources],
        )


@dataclass
class GameState:
    phase: str = "setup"  # setup|operating|ended
    game_over_reason: Optional[str] = None  # bankrupt|win|time_limit
    current_week: int = 0
    total_weeks: int = catalog.TOTAL_WEEKS
    start_month: int = 3
    season: str = "spring"

    cash: float = catalog.INITIAL_CASH
    total_investment: float = 0.0
    cumulative_profit: float = 0.0
    consecutive_profits: int = 0

    exposure: float = 20.0
    reputation: float = 20.0
    cleanliness: float = 60.0
    growth: GrowthSystem = field(default_factory=GrowthSystem)

    brand_id: Optional[str] = None
    location_id: Optional[str] = None
    address_id: Optional[str] = None
    decoration_id: Optional[str] = None
    store_area: float = 30.0
    location_locked: bool = False
    decoration_locked: bool = False
    products_locked: bool = False
    decoration_cost_markup: float = 1.0

    product_ids: List[str] = field(default_factory=list)
    product_prices: Dict[str, float] = field(default_factory=dict)
    weekly_product_changes: int = 0

    staff: List[Staff] = field(default_factory=list)
    inventory: InventoryState = field(default_factory=InventoryState)
    delivery: DeliveryState = field(default_factory=DeliveryState)
    supply_priority: str = "dine_in_first"  # dine_in_first|delivery_first|proportional

    marketing: List[ActiveMarketing] = field(default_factory=list)
    used_unique_activities: List[str] = field(default_factory=list)
    last_activity_week: Dict[str, int] = field(default_factory=dict)

    cognition: Cognition = field(default_factory=Cognition)
    encountered_event_types: List[str] = field(default_factory=list)

    boss: BossActionState = field(default_factory=BossActionState)

    pending_event_id: Optional[str] = None
    event_history: List[str] = field(default_factory=list)
    active_event_buffs: List[EventBuff] = field(default_factory=list)
    pending_delayed_effects: List[DelayedEffect] = field(default_factory=list)
    pending_chain_events: List[ChainTrigger] = field(default_factory=list)

    last_team_meal_week: Optional[int] = None
    weeks_since_last_morale_action: int = 0
    staff_morale_action_count: int = 0

    nearby_shops: List[NearbyShop] = field(default_factory=list)
    base_consumer_rings: List[ConsumerRing] = field(default_factory=list)
    consumer_rings: List[ConsumerRing] = field(default_factory=list)

    weeks_since_last_action: int = 0
    last_week_fulfillment: float = 1.0

    weekly_revenue: float = 0.0
    weekly_variable_cost: float = 0.0
    weekly_fixed_cost: float = 0.0
    weekly_restock_cost: float = 0.0
    weekly_summary: Optional[WeeklySummary] = None
    revenue_history: List[float] = field(default_factory=list)
    profit_history: List[float] = field(default_factory=list)

    id_counter: int = 0

    # ---- catalog lookups ----

    def brand(self) -> Optional[Brand]:
        return catalog.BRANDS.get(self.brand_id) if self.brand_id else None

    def location(self) -> Optional[Location]:
        return catalog.LOCATIONS.get(self.location_id) if self.location_id else None

    def address(self) -> Optional[Address]:
        loc = self.location()
        if loc is None or not self.address_id:
            return None
        return loc.address(self.address_id)

    def decoration(self) -> Optional[Decoration]:
        return catalog.DECORATIONS.get(self.decoration_id) if self.decoration_id else None

    def products(self) -> List[Product]:
        return [catalog.PRODUCTS[pid] for pid in self.product_ids if pid in catalog.PRODUCTS]

    def price_of(self, product: Product) -> float:
        return float(self.product_prices.get(product.product_id, product.base_price))

    def is_quick_franchise(self) -> bool:
        b = self.brand()
        return bool(b and b.is_quick_franchise)

    def traffic_modifier(self) -> float:
        a = self.address()
        return a.traffic_modifier if a else 1.0

    def supply_cost_modifier(self) -> float:
        modifier = catalog.effective_supply_cost_modifier(self.brand(), self.current_week)
        for b in self.boss.active_buffs:
            if b.buff_type == "supply_cost_reduction":
                modifier *= 1 - b.value
        return modifier

    def pending_event(self) -> Optional[catalog.InteractiveEvent]:
        return catalog.INTERACTIVE_EVENTS.get(self.pending_event_id) if self.pending_event_id else None

    def staff_member(self, staff_id: str) -> Optional[Staff]:
        for s in self.staff:
            if s.staff_id == staff_id:
                return s
        return None

    def new_id(self, prefix: str) -> str:
        self.id_counter += 1
        return f"{prefix}_{self.id_counter}"

    def clone(self) -> GameState:
        """Structurally independent copy; nothing mutable is shared with self."""

        return replace(
            self,
            growth=self.growth.clone(),
            product_ids=list(self.product_ids),
            product_prices=dict(self.product_prices),
            staff=[s.clone() for s in self.staff],
            inventory=self.inventory.clone(),
            delivery=self.delivery.clone(),
            marketing=[m.clone() for m in self.marketing],
            used_unique_activities=list(self.used_unique_activities),
            last_activity_week=dict(self.last_activity_week),
            cognition=self.cognition.clone(),
            encountered_event_types=list(self.encountered_event_types),
            boss=self.boss.clone(),
            event_history=list(self.event_history),
            active_event_buffs=[replace(b) for b in self.active_event_buffs],
            pending_delayed_effects=[replace(d) for d in self.pending_delayed_effects],
            pending_chain_events=[replace(c) for c in self.pending_chain_events],
            nearby_shops=[s.clone() for s in self.nearby_shops],
            base_consumer_rings=[r.clone() for r in self.base_consumer_rings],
            consumer_rings=[r.clone() for r in self.consumer_rings],
            weekly_summary=self.weekly_summary.clone() if self.weekly_summary else None,
            revenue_history=list(self.revenue_history),
            profit_history=list(self.profit_history),
        )
