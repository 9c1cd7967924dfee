from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from storesim import catalog
from storesim.catalog import (
    CONVERSION_RATE,
    CUSTOMER_CATEGORY_AFFINITY,
    CUSTOMER_TYPES,
    DEMAND_VARIANCE,
    INNER_RING_WEIGHT,
    LOCATION_CATEGORY_OCCASION,
    MAX_SUBSTITUTION_PRESSURE,
    OUTER_RING_WEIGHT,
    PRICE_ELASTICITY,
    SAME_RING_WEIGHT,
    SEASON_MODIFIER,
    SEASON_SUBTYPE_BONUS,
    SERVICE_TASKS,
    SHARE_BASELINE,
    SUBSTITUTION,
    Product,
    exposure_coefficient,
    reputation_coefficient,
    stockout_effect,
)
from storesim.models import ConsumerRing, GameState, NearbyShop, Staff
from storesim.rings import ring_index
from storesim.shops import shop_reputation


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def _stable_u32(s: str) -> int:
    return zlib.crc32(s.encode("utf-8")) & 0xFFFFFFFF


@dataclass
class ProductDemandBreakdown:
    product_id: str
    product_name: str
    base_traffic_by_type: Dict[str, float]
    appeal_ratio: float
    demand_modifier_total: float
    final_demand: int


@dataclass
class DemandBreakdown:
    base_traffic: Dict[str, float] = field(default_factory=dict)
    total_base_traffic: float = 0.0
    modifiers: Dict[str, float] = field(default_factory=dict)
    modifier_total: float = 0.0
    product_demands: List[ProductDemandBreakdown] = field(default_factory=list)
    total_demand: int = 0

    def demand_of(self, product_id: str) -> int:
        for pd in self.product_demands:
            if pd.product_id == product_id:
                return pd.final_demand
        return 0


# ---------------------------------------------------------------------------
# Coefficients
# ---------------------------------------------------------------------------


def absolute_price_effect(price: float, reference_price: float) -> float:
    if reference_price <= 0:
        return 1.0
    ratio = price / reference_price
    if ratio <= 0.8:
        return min(1.15, 1 + (0.8 - ratio) * 0.5)
    if ratio <= 1.25:
        return 1.0
    return max(0.05, (1.25 / ratio) ** 3)


def traffic_reach_multiplier(exposure: float, reputation: float) -> float:
    exposure_reach = min(0.28, max(0.0, exposure - 10) / 90 * 0.28)
    reputation_reach = min(0.14, max(0.0, reputation - 30) / 70 * 0.14)
    return 1 + exposure_reach + reputation_reach


def awareness_factor(state: GameState) -> float:
    return _clamp(state.growth.awareness_factor, 0.25, 1.0)


def attraction_score(state: GameState) -> float:
    deco = state.decoration()
    level = deco.level if deco else 1
    score = (
        level / 5 * 35
        + min(25.0, state.current_week * 0.8)
        + state.reputation / 100 * 20
        + state.exposure / 100 * 20
    )
    return min(100.0, score)


def ring_coverage(attraction: float) -> Dict[str, float]:
    return {
        "ring0": 1.0,
        "ring1": _clamp((attraction - 15) / 50, 0.0, 1.0),
        "ring2": _clamp((attraction - 50) / 40, 0.0, 1.0),
        "ring3": 0.0,
    }


def service_staff(state: GameState) -> List[Staff]:
    return [s for s in state.staff if not s.is_onboarding and s.assigned_task in SERVICE_TASKS]


def demand_modifiers(state: GameState) -> Dict[str, float]:
    """Additive modifiers around 1.0; competition is not one of them."""

    season = SEASON_MODIFIER.get(state.season, 1.0) - 1

    service_quality = 0.0
    if state.staff:
        svc = service_staff(state)
        if not svc:
            service_quality = -0.15
        else:
            avg = sum(s.service_quality or 0.8 for s in svc) / len(svc)
            service_quality = (avg - 0.8) * 0.5

    inactive = max(0, state.weeks_since_last_action - 5)
    base_penalty = min(0.25, inactive * 0.015)
    protection = min(0.1, max(0.0, state.reputation - 60) / 40 * 0.1)
    inactivity = -max(0.0, base_penalty - protection)

    cleanliness = (state.cleanliness - 50) / 50 * 0.08

    return {
        "season": season,
        "marketing": 0.0,
        "service_quality": service_quality,
        "cleanliness": cleanliness,
        "inactivity": inactivity,
    }


def _occasion(location_id: str, category: str, customer_type: str) -> float:
    loc = LOCATION_CATEGORY_OCCASION.get(location_id or "community", LOCATION_CATEGORY_OCCASION["community"])
    cust = CUSTOMER_CATEGORY_AFFINITY.get(customer_type, {})
    return _clamp(loc.get(category, 1.0) * cust.get(category, 1.0), 0.75, 1.35)


def _menu_balance(products: List[Product], category: str) -> float:
    if not products:
        return 1.0
    categories = {p.category for p in products}
    share = sum(1 for p in products if p.category == category) / len(products)
    if len(categories) == 1:
        return 0.92
    if share > 0.7:
        return 0.95
    if 0.25 <= share <= 0.55:
        return 1.06
    return 1.0


def appeal_ratio(state: GameState, product: Product, products: List[Product], customer_type: str) -> float:
    deco = state.decoration()
    season_bonus = SEASON_SUBTYPE_BONUS.get(state.season, {})

    def _appeal(p: Product) -> float:
        a = p.appeal.get(customer_type, 0.0)
        if deco:
            a += deco.appeal_bonus.get(customer_type, 0.0) + deco.category_bonus.get(p.category, 0.0)
        return a * season_bonus.get(p.sub_type, 1.0)

    total = sum(_appeal(p) for p in products)
    return _appeal(product) / total if total > 0 else 0.0


def _price_score(category_avg: float, price: float, customer_type: str) -> float:
    if category_avg <= 0:
        return 1.0
    return (category_avg / price) ** PRICE_ELASTICITY[customer_type]


def player_competitiveness(
    price: float,
    category_avg: float,
    exposure: float,
    reputation: float,
    appeal: float,
    service_quality: float,
    weeks_since_last_action: int,
    customer_type: str,
) -> float:
    inactive = max(0, weeks_since_last_action - 2)
    heat_penalty = min(0.5, inactive * 0.035)
    protection = min(0.2, max(0.0, reputation - 60) / 40 * 0.2)
    heat = 1 - max(0.0, heat_penalty - protection)
    return (
        _price_score(category_avg, price, customer_type)
        * exposure_coefficient(exposure)
        * reputation_coefficient(reputation)
        * (appeal / 100)
        * max(0.3, service_quality)
        * heat
    )


def shop_competitiveness(shop: NearbyShop, customer_type: str, category_avg: float, category: str) -> float:
    if shop.is_closing:
        return 0.0
    same = [p for p in shop.products if p.category == category]
    relevant = same or shop.products
    avg_price = sum(p.price for p in relevant) / len(relevant) if relevant else 10.0
    avg_appeal = sum(p.appeal for p in relevant) / len(relevant) if relevant else 50.0
    return (
        _price_score(category_avg, avg_price, customer_type)
        * exposure_coefficient(shop.exposure)
        * reputation_coefficient(shop_reputation(shop))
        * (avg_appeal / 100)
        * max(0.3, shop.service_quality)
    )


def weighted_competitors(state: GameState, ring_id: str) -> List[Tuple[NearbyShop, float]]:
    """Shops competing for a ring's customers with their distance weight.

    Same ring counts fully. An adjacent inner-ring shop weighs 0.60, an adjacent
    outer-ring shop 0.40. A shop reachable several ways keeps its largest weight.
    """

    target = ring_index(ring_id)
    by_id = {s.shop_id: s for s in state.nearby_shops}
    weights: Dict[str, float] = {}

    def _ring_shops(rid: str) -> List[NearbyShop]:
        for r in state.consumer_rings:
            if r.ring_id == rid and r.nearby_shop_ids:
                return [by_id[sid] for sid in r.nearby_shop_ids if sid in by_id]
        return [s for s in state.nearby_shops if s.ring == rid]

    for rid in catalog.RING_IDS:
        idx = ring_index(rid)
        if idx == target:
            w = SAME_RING_WEIGHT
        elif idx == target - 1:
            w = INNER_RING_WEIGHT
        elif idx == target + 1:
            w = OUTER_RING_WEIGHT
        else:
            continue
        for shop in _ring_shops(rid):
            if shop.is_closing:
                continue
            weights[shop.shop_id] = max(weights.get(shop.shop_id, 0.0), w)

    return [(by_id[sid], w) for sid, w in weights.items()]


def substitution_pressure(competitors: List[Tuple[NearbyShop, float]], category: str) -> float:
    rule = SUBSTITUTION.get(category, {})
    score = 0.0
    for shop, w in competitors:
        sub = rule.get(shop.shop_category, 0.0)
        if sub <= 0:
            continue
        score += (shop.exposure / 100) * max(0.3, shop.service_quality) * w * sub
    return min(MAX_SUBSTITUTION_PRESSURE, score)


def variance_factor(product_id: str, week: int) -> float:
    u = _stable_u32(f"{product_id}:{week}") / 2**32
    return 1 + (u - 0.5) * 2 * DEMAND_VARIANCE


def calculate_demand(state: GameState) -> DemandBreakdown:
    """Weekly dine-in demand per selected product."""

    location = state.location()
    products = state.products()
    if location is None or not products:
        return DemandBreakdown(
            base_traffic={ct: 0.0 for ct in CUSTOMER_TYPES},
            modifiers={k: 0.0 for k in ("season", "marketing", "service_quality", "cleanliness", "inactivity")},
        )

    rings = state.consumer_rings
    coverage = ring_coverage(attraction_score(state))
    tm = state.traffic_modifier()
    reach = traffic_reach_multiplier(state.exposure, state.reputation)

    if rings:
        base_traffic = dict(rings[0].consumers)
        rings_to_process = [r for r in rings if r.ring_id != "ring3"]
    else:
        base_traffic = {ct: location.foot_traffic.get(ct, 0.0) * tm for ct in CUSTOMER_TYPES}
        rings_to_process = [ConsumerRing("ring0", "", dict(base_traffic), 1.0)]
    total_base_traffic = sum(base_traffic.values())

    modifiers = demand_modifiers(state)
    modifier_total = sum(modifiers.values())

    svc = service_staff(state)
    avg_service = sum(s.service_quality or 0.8 for s in svc) / len(svc) if svc else 0.5

    brand = state.brand()
    brand_traffic = brand.traffic_multiplier if brand else 1.0
    conv_bonus = brand.conversion_bonus if brand else 0.0
    awareness = awareness_factor(state)
    stockout_mod, _ = stockout_effect(state.last_week_fulfillment)

    demands: List[ProductDemandBreakdown] = []
    for product in products:
        by_type = {ct: 0.0 for ct in CUSTOMER_TYPES}
        price = state.price_of(product)
        price_effect = absolute_price_effect(price, product.reference_price)
        avg_appeal = sum(product.appeal.get(ct, 0.0) for ct in CUSTOMER_TYPES) / 4
        menu_balance = _menu_balance(products, product.category)
        total = 0.0

        for ring in rings_to_process:
            cov = coverage.get(ring.ring_id, 0.0)
            if cov <= 0:
                continue
            competitors = weighted_competitors(state, ring.ring_id)
            direct = [(s, w) for s, w in competitors if s.shop_category == product.category]

            price_sum, weight_sum = price, 1.0
            for shop, w in direct:
                same = [p.price for p in shop.products if p.category == product.category]
                if not same:
                    continue
                price_sum += sum(same) / len(same) * w
                weight_sum += w
            category_avg = price_sum / weight_sum
            subst = substitution_pressure(competitors, product.category)

            for ct in CUSTOMER_TYPES:
                consumers = ring.consumers.get(ct, 0.0) * (1.0 if ring.ring_id == "ring0" else reach)
                if consumers <= 0:
                    continue
                area_demand = (
                    consumers * cov * ring.base_conversion * brand_traffic
                    * (CONVERSION_RATE + conv_bonus)
                    * _occasion(location.location_id, product.category, ct)
                    * menu_balance
                )
                pc = player_competitiveness(
                    price, category_avg, state.exposure, state.reputation,
                    avg_appeal, avg_service, state.weeks_since_last_action, ct,
                )
                shop_total = sum(shop_competitiveness(s, ct, category_avg, product.category) * w for s, w in direct)
                share = pc / (pc + shop_total + SHARE_BASELINE)
                type_demand = (
                    area_demand
                    * appeal_ratio(state, product, products, ct)
                    * share
                    * (1 + modifier_total)
                    * (1 - subst)
                    * price_effect
                )
                by_type[ct] += type_demand
                total += type_demand

        weekly = total * 7 * variance_factor(product.product_id, state.current_week) * awareness * stockout_mod
        demands.append(
            ProductDemandBreakdown(
                product_id=product.product_id,
                product_name=product.name,
                base_traffic_by_type=by_type,
                appeal_ratio=appeal_ratio(state, product, products, "students"),
                demand_modifier_total=modifier_total,
                final_demand=max(0, int(round(weekly))),
            )
        )

    return DemandBreakdown(
        base_traffic=base_traffic,
        total_base_traffic=total_base_traffic,
        modifiers=modifiers,
        modifier_total=modifier_total,
        product_demands=demands,
        total_demand=sum(d.final_demand for d in demands),
    )
