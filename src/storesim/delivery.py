from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from storesim.catalog import (
    CUSTOMER_TYPES,
    DEFAULT_COMPETITION_BASE,
    DELIVERY_COMPETITION_BASE,
    DELIVERY_CONVERSION,
    DELIVERY_RING_DECAY,
    DISCOUNT_TIERS,
    PLATFORMS,
    RING_IDS,
    SEASON_MODIFIER,
    Product,
    discount_pricing_multiplier,
    promotion_tier,
    stockout_effect,
)
from storesim.demand import absolute_price_effect, awareness_factor, traffic_reach_multiplier
from storesim.models import ActivePlatform, GameState


@dataclass
class WeightScore:
    total: float
    base: float
    sales: float
    rating: float
    promotion: float
    discount: float


@dataclass
class DeliveryDemandBreakdown:
    platform_count: int = 0
    platform_coefficient: float = 0.0
    rating_coefficient: float = 0.0
    discount_pricing_multiplier: float = 0.0
    product_demands: Dict[str, int] = field(default_factory=dict)
    total_demand: int = 0

    def demand_of(self, product_id: str) -> int:
        return self.product_demands.get(product_id, 0)


# ---------------------------------------------------------------------------
# Weight score
# ---------------------------------------------------------------------------


def base_score(active_weeks: int, boost_weeks: int) -> float:
    if active_weeks <= boost_weeks:
        return 15.0
    if active_weeks <= boost_weeks + 2:
        return 8.0
    return 3.0


def sales_score(recent_weekly_orders: List[float]) -> float:
    if not recent_weekly_orders:
        return 0.0
    avg_daily = sum(recent_weekly_orders) / len(recent_weekly_orders) / 7
    if avg_daily <= 0:
        return 0.0
    if avg_daily <= 10:
        return avg_daily * 0.5
    if avg_daily <= 30:
        return 5 + (avg_daily - 10) * 0.5
    if avg_daily <= 60:
        return 15 + (avg_daily - 30) * 0.333
    return min(30.0, 25 + (avg_daily - 60) * 0.1)


def rating_weight_score(rating: float) -> float:
    if rating >= 4.5:
        return 15.0
    if rating >= 4.0:
        return 10.0
    if rating >= 3.5:
        return 5.0
    return 0.0


def platform_weight_score(ap: ActivePlatform, rating: float) -> WeightScore:
    platform = PLATFORMS.get(ap.platform_id)
    boost_weeks = platform.boost_weeks if platform else 2
    base = base_score(ap.active_weeks, boost_weeks)
    sales = sales_score(ap.recent_weekly_orders)
    rating_w = rating_weight_score(rating)
    promotion = promotion_tier(ap.promotion_tier_id).weight_bonus
    disc = DISCOUNT_TIERS.get(ap.discount_tier_id)
    discount = disc.weight_bonus if disc else 0.0
    total = max(0.0, min(90.0, base + sales + rating_w + promotion + discount))
    return WeightScore(total, base, sales, rating_w, promotion, discount)


# ---------------------------------------------------------------------------
# Coefficients
# ---------------------------------------------------------------------------


def platform_exposure_coefficient(weight: float) -> float:
    return 0.03 + 0.95 * (1 - math.exp(-weight / 40))


def rating_coefficient(rating: float) -> float:
    if rating <= 0:
        return 0.20
    if rating <= 1:
        return 0.30
    if rating <= 2:
        return 0.40
    if rating <= 3:
        return 0.50
    if rating <= 3.5:
        return 0.50 + (rating - 3) / 0.5 * 0.15
    if rating <= 4:
        return 0.65 + (rating - 3.5) / 0.5 * 0.15
    if rating <= 4.5:
        return 0.80 + (rating - 4) / 0.5 * 0.13
    return 0.93 + (rating - 4.5) / 0.5 * 0.07


def overlap_discount(platform_count: int) -> float:
    if platform_count <= 1:
        return 1.0
    if platform_count == 2:
        return 0.7
    return 0.5


def platform_shares(platforms: List[ActivePlatform]) -> List[Tuple[ActivePlatform, float]]:
    """Weight-score share per platform; every platform counts at least 1."""
    total = sum(max(1.0, ap.platform_exposure) for ap in platforms)
    if total <= 0:
        return [(ap, 0.0) for ap in platforms]
    return [(ap, max(1.0, ap.platform_exposure) / total) for ap in platforms]


def average_discount_pricing_multiplier(state: GameState) -> float:
    platforms = state.delivery.platforms
    if not platforms:
        return 0.3
    return sum(
        discount_pricing_multiplier(ap.pricing_id, ap.discount_tier_id) * share
        for ap, share in platform_shares(platforms)
    )


def _delivery_appeal_ratio(product: Product, products: List[Product], customer_type: str) -> float:
    total = sum(p.appeal.get(customer_type, 0.0) for p in products)
    return product.appeal.get(customer_type, 0.0) / total if total > 0 else 0.0


def delivery_market_share(state: GameState, ring_id: str) -> float:
    delivery = state.delivery
    if not delivery.platforms:
        return 0.0
    products = state.products()
    if products:
        avg_appeal = sum(sum(p.appeal.get(ct, 0.0) for ct in CUSTOMER_TYPES) / 4 for p in products) / len(products)
    else:
        avg_appeal = 50.0
    player = delivery.total_platform_exposure * rating_coefficient(delivery.platform_rating) * (avg_appeal / 100)

    idx = RING_IDS.index(ring_id)
    competitors = 0.0
    for shop in state.nearby_shops:
        if shop.is_closing or not shop.has_delivery:
            continue
        shop_idx = RING_IDS.index(shop.ring) if shop.ring in RING_IDS else 0
        if abs(shop_idx - idx) > 1:
            continue
        dist = 1.0 if shop_idx == idx else 0.5
        competitors += shop.exposure * 0.5 * shop.service_quality * dist

    base = DELIVERY_COMPETITION_BASE.get(state.location_id or "", DEFAULT_COMPETITION_BASE)
    total = player + competitors + base
    return player / total if total > 0 else 0.0


def delivery_demand_for_product(state: GameState, product: Product, products: List[Product]) -> int:
    delivery = state.delivery
    if not delivery.platforms or not state.consumer_rings:
        return 0

    price_effect = absolute_price_effect(state.price_of(product), product.reference_price)
    exposure_coef = platform_exposure_coefficient(delivery.total_platform_exposure)
    rating_coef = rating_coefficient(delivery.platform_rating)
    season_mult = SEASON_MODIFIER.get(state.season, 1.0)
    reach = traffic_reach_multiplier(state.exposure, state.reputation)
    dp_mult = average_discount_pricing_multiplier(state)
    count = len(delivery.platforms)

    total = 0.0
    for ring in state.consumer_rings:
        ring_reach = 1.0 if ring.ring_id == "ring0" else reach
        share = delivery_market_share(state, ring.ring_id)
        decay = DELIVERY_RING_DECAY.get(ring.ring_id, 0.12)
        for ct in CUSTOMER_TYPES:
            consumers = ring.consumers.get(ct, 0.0) * ring_reach
            if consumers <= 0:
                continue
            audience = 0.0
            for idx, ap in enumerate(delivery.platforms):
                platform = PLATFORMS.get(ap.platform_id)
                if platform is None:
                    continue
                audience += platform.audience.get(ct, 0.0) * (1.0 if idx == 0 else overlap_discount(count))
            total += (
                consumers * audience * DELIVERY_CONVERSION
                * exposure_coef * rating_coef
                * _delivery_appeal_ratio(product, products, ct)
                * share * decay * season_mult * price_effect * dp_mult
            )

    weekly = total * 7 * awareness_factor(state)
    weekly *= stockout_effect(state.last_week_fulfillment)[0]
    floor = 2 * sum(1 for ap in delivery.platforms if ap.discount_tier_id != "none")
    return max(floor, int(round(weekly)))


def calculate_delivery_demand(state: GameState) -> DeliveryDemandBreakdown:
    products = state.products()
    delivery = state.delivery
    demands = {p.product_id: delivery_demand_for_product(state, p, products) for p in products}
    return DeliveryDemandBreakdown(
        platform_count=len(delivery.platforms),
        platform_coefficient=platform_exposure_coefficient(delivery.total_platform_exposure) if delivery.platforms else 0.0,
        rating_coefficient=rating_coefficient(delivery.platform_rating) if delivery.platforms else 0.0,
        discount_pricing_multiplier=average_discount_pricing_multiplier(state),
        product_demands=demands,
        total_demand=sum(demands.values()),
    )
