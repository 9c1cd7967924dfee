from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from storesim.catalog import DISCOUNT_TIERS, MARKETING_ACTIVITIES, PACKAGING_TIERS, PLATFORMS, PRICING_TIERS
from storesim.delivery import calculate_delivery_demand, platform_shares
from storesim.demand import DemandBreakdown, attraction_score, awareness_factor, calculate_demand, ring_coverage, traffic_reach_multiplier
from storesim.models import GameState
from storesim.supply import SupplyBreakdown, calculate_supply

SUPPLY_PRIORITIES = ("dine_in_first", "delivery_first", "proportional")


@dataclass
class ProductSaleResult:
    product_id: str
    product_name: str
    demand: int
    supply: int
    actual_sales: int
    unit_price: float
    revenue: float
    bottleneck: str  # demand|supply_inventory|supply_capacity|balanced
    fulfillment_rate: float
    dine_in_demand: int = 0
    delivery_demand: int = 0
    dine_in_sales: int = 0
    delivery_sales: int = 0
    dine_in_revenue: float = 0.0
    delivery_revenue: float = 0.0


@dataclass
class PlatformSettlement:
    platform_id: str
    share: float
    orders: float = 0.0
    revenue: float = 0.0
    commission: float = 0.0
    discount_cost: float = 0.0
    packaging_cost: float = 0.0


@dataclass
class Bottleneck:
    kind: str  # demand|supply|balanced
    description: str
    suggestion: str


@dataclass
class SupplyDemandResult:
    demand: DemandBreakdown
    supply: SupplyBreakdown
    product_sales: List[ProductSaleResult] = field(default_factory=list)
    platform_settlements: List[PlatformSettlement] = field(default_factory=list)
    dine_in_revenue: float = 0.0
    delivery_revenue: float = 0.0
    delivery_commission: float = 0.0
    delivery_package_cost: float = 0.0
    delivery_discount_cost: float = 0.0
    total_revenue: float = 0.0
    total_sales: int = 0
    total_demand: int = 0
    delivery_sales: int = 0
    attraction_score: float = 0.0
    ring_coverage: Dict[str, float] = field(default_factory=dict)
    awareness_factor: float = 0.0
    traffic_reach_multiplier: float = 1.0
    supply_priority: str = "dine_in_first"
    overall_bottleneck: Optional[Bottleneck] = None

    def product(self, product_id: str) -> Optional[ProductSaleResult]:
        for ps in self.product_sales:
            if ps.product_id == product_id:
                return ps
        return None

    @property
    def fulfillment_rate(self) -> float:
        if self.total_demand <= 0:
            return 1.0
        return max(0.0, min(1.0, self.total_sales / self.total_demand))


def allocate(priority: str, dine_in_demand: int, delivery_demand: int, supply: int) -> Tuple[int, int]:
    """Split supply between dine-in and delivery. Returns (dine_in_sales, delivery_sales)."""

    if delivery_demand <= 0:
        return min(dine_in_demand, supply), 0
    if priority == "delivery_first":
        delivery = min(delivery_demand, supply)
        return min(dine_in_demand, max(0, supply - delivery)), delivery
    if priority == "proportional":
        total = dine_in_demand + delivery_demand
        if total <= supply:
            return dine_in_demand, delivery_demand
        dine_in = int(round(supply * dine_in_demand / total))
        return dine_in, supply - dine_in
    dine_in = min(dine_in_demand, supply)
    return dine_in, min(delivery_demand, max(0, supply - dine_in))


def marketing_price_modifier(state: GameState) -> float:
    discounts = []
    for am in state.marketing:
        cfg = MARKETING_ACTIVITIES.get(am.activity_id)
        if cfg is not None and cfg.price_modifier < 1:
            discounts.append(cfg.price_modifier)
    return min(discounts) if discounts else 1.0


def overall_bottleneck(total_demand: int, total_supply: int, sales: List[ProductSaleResult], has_delivery: bool) -> Bottleneck:
    if total_demand < total_supply * 0.8:
        return Bottleneck(
            "demand",
            "需求不足是主要瓶颈",
            "建议提升口碑、增加平台推广或调整选址" if has_delivery else "建议提升口碑、开通外卖平台或开展营销活动",
        )
    if total_supply < total_demand * 0.8:
        inventory_limited = sum(1 for ps in sales if ps.bottleneck == "supply_inventory")
        capacity_limited = sum(1 for ps in sales if ps.bottleneck == "supply_capacity")
        if inventory_limited > capacity_limited:
            return Bottleneck("supply", "库存不足是主要瓶颈", "建议增加库存采购量")
        return Bottleneck("supply", "产能不足是主要瓶颈", "建议增加员工或提升员工效率")
    return Bottleneck(
        "balanced",
        "供需基本平衡",
        "可以考虑扩大规模或优化产品组合" if has_delivery else "可以考虑开通外卖平台拓展收入渠道",
    )


def calculate_supply_demand(state: GameState) -> SupplyDemandResult:
    """Settle one week of dine-in and delivery sales. Pure function of state."""

    demand = calculate_demand(state)
    platforms = state.delivery.platforms
    has_delivery = bool(platforms)
    delivery = calculate_delivery_demand(state) if has_delivery else None

    products = state.products()
    hints: Dict[str, float] = {}
    for p in products:
        hints[p.product_id] = demand.demand_of(p.product_id) + (delivery.demand_of(p.product_id) if delivery else 0)
    supply = calculate_supply(state, hints)

    priority = state.supply_priority if state.supply_priority in SUPPLY_PRIORITIES else "dine_in_first"
    price_mod = marketing_price_modifier(state)
    shares = platform_shares(platforms)
    settlements = [PlatformSettlement(ap.platform_id, share) for ap, share in shares]

    sales: List[ProductSaleResult] = []
    for p in products:
        dine_demand = demand.demand_of(p.product_id)
        deliv_demand = delivery.demand_of(p.product_id) if delivery else 0
        ps_supply = supply.product(p.product_id)
        supply_qty = ps_supply.final_supply if ps_supply else 0

        dine_sales, deliv_sales = allocate(priority, dine_demand, deliv_demand, supply_qty)

        unit_price = state.price_of(p)
        dine_price = unit_price * price_mod
        dine_revenue = dine_sales * dine_price

        deliv_revenue = 0.0
        if deliv_sales > 0:
            for (ap, share), st in zip(shares, settlements):
                orders = deliv_sales * share
                pricing = PRICING_TIERS.get(ap.pricing_id)
                menu_price = unit_price * (pricing.multiplier if pricing else 1.0)
                disc = DISCOUNT_TIERS.get(ap.discount_tier_id)
                subsidy = disc.subsidy_rate if disc else 0.0
                paid = orders * menu_price * (1 - subsidy)
                st.orders += orders
                st.revenue += paid
                st.discount_cost += orders * menu_price * subsidy
                deliv_revenue += paid

        total_demand = dine_demand + deliv_demand
        actual = dine_sales + deliv_sales
        if total_demand < supply_qty * 0.9:
            bottleneck = "demand"
        elif supply_qty < total_demand * 0.9:
            bottleneck = "supply_inventory" if ps_supply and ps_supply.bottleneck == "inventory" else "supply_capacity"
        else:
            bottleneck = "balanced"

        sales.append(
            ProductSaleResult(
                product_id=p.product_id,
                product_name=p.name,
                demand=total_demand,
                supply=supply_qty,
                actual_sales=actual,
                unit_price=dine_price,
                revenue=dine_revenue + deliv_revenue,
                bottleneck=bottleneck,
                fulfillment_rate=min(1.0, actual / total_demand) if total_demand > 0 else 1.0,
                dine_in_demand=dine_demand,
                delivery_demand=deliv_demand,
                dine_in_sales=dine_sales,
                delivery_sales=deliv_sales,
                dine_in_revenue=dine_revenue,
                delivery_revenue=deliv_revenue,
            )
        )

    for st in settlements:
        platform = PLATFORMS.get(st.platform_id)
        if platform is not None:
            st.commission = st.revenue * platform.commission_rate
        ap = state.delivery.platform(st.platform_id)
        pkg = PACKAGING_TIERS.get(ap.packaging_tier_id) if ap else None
        st.packaging_cost = st.orders * (pkg.cost_per_order if pkg else 2.0)

    total_demand = sum(ps.demand for ps in sales)
    return SupplyDemandResult(
        demand=demand,
        supply=supply,
        product_sales=sales,
        platform_settlements=settlements,
        dine_in_revenue=sum(ps.dine_in_revenue for ps in sales),
        delivery_revenue=sum(ps.delivery_revenue for ps in sales),
        delivery_commission=sum(st.commission for st in settlements),
        delivery_package_cost=sum(st.packaging_cost for st in settlements),
        delivery_discount_cost=sum(st.discount_cost for st in settlements),
        total_revenue=sum(ps.revenue for ps in sales),
        total_sales=sum(ps.actual_sales for ps in sales),
        total_demand=total_demand,
        delivery_sales=sum(ps.delivery_sales for ps in sales),
        attraction_score=attraction_score(state),
        ring_coverage=ring_coverage(attraction_score(state)),
        awareness_factor=awareness_factor(state),
        traffic_reach_multiplier=traffic_reach_multiplier(state.exposure, state.reputation),
        supply_priority=priority,
        overall_bottleneck=overall_bottleneck(total_demand, supply.total_supply, sales, has_delivery),
    )
