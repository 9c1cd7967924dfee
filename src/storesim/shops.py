from __future__ import annotations

import math
import random
from typing import Dict, List, Optional, Tuple

from storesim.catalog import (
    CHAIN_CLOSE_RATE,
    CHAIN_TEMPLATES,
    CLOSING_NOTICE_WEEKS,
    INDEPENDENT_CLOSE_RATE,
    INDEPENDENT_DELIVERY_PROBABILITY,
    INDEPENDENT_TEMPLATES,
    MAX_ACTIVE_SHOPS,
    MIN_WEEKS_BEFORE_CLOSING,
    NEW_SHOP_PROBABILITY,
    SHOP_CATEGORY_WORDS,
    SHOP_DISTRIBUTIONS,
    SHOP_PREFIXES,
    SHOP_RING_WEIGHTS,
    SHOP_SURNAMES,
    ChainTemplate,
    exposure_coefficient,
    reputation_coefficient,
)
from storesim.models import GameState, NearbyShop, ShopProduct


def _uniform(rng: random.Random, lo: float, hi: float) -> float:
    return lo + rng.random() * (hi - lo)


def _randint(rng: random.Random, lo: int, hi: int) -> int:
    return int(math.floor(_uniform(rng, lo, hi + 1)))


def _pick(rng: random.Random, items: List):
    return items[int(math.floor(rng.random() * len(items)))]


def _round1(x: float) -> float:
    return round(x * 10) / 10


def random_shop_ring(rng: random.Random) -> str:
    r = rng.random()
    cum = 0.0
    for ring_id, w in SHOP_RING_WEIGHTS.items():
        cum += w
        if r <= cum:
            return ring_id
    return "ring0"


def _weighted_category(weights: Dict[str, float], rng: random.Random) -> str:
    total = sum(weights.values())
    r = rng.random() * total
    for cat, w in weights.items():
        r -= w
        if r <= 0:
            return cat
    return next(iter(weights))


def _weighted_tier(weights: Dict[str, float], rng: random.Random) -> str:
    r = rng.random()
    budget = weights.get("budget", 0.0)
    standard = weights.get("standard", 0.0)
    if r < budget:
        return "budget"
    if r < budget + standard:
        return "standard"
    return "premium"


def generate_shop_name(category: str, rng: random.Random) -> str:
    use_prefix = rng.random() > 0.5
    use_surname = rng.random() > 0.4
    word = _pick(rng, SHOP_CATEGORY_WORDS[category])
    if use_surname:
        return f"{_pick(rng, SHOP_SURNAMES)}记{word}"
    if use_prefix:
        return f"{_pick(rng, SHOP_PREFIXES)}{word}"
    return f"{word}小店"


def create_chain_shop(state: GameState, template: ChainTemplate, week: int, rent_base: float, rng: random.Random) -> NearbyShop:
    products = []
    for p in template.products:
        price = _uniform(rng, *p.price_range)
        products.append(
            ShopProduct(
                name=p.name,
                category=p.category,
                sub_type=p.sub_type,
                price=_round1(price),
                base_cost=_round1(price * p.cost_rate),
                quality=p.quality + _randint(rng, -5, 5),
                appeal=p.appeal + _randint(rng, -5, 5),
            )
        )
    exposure = template.exposure + _randint(rng, -5, 5)
    return NearbyShop(
        shop_id=state.new_id("shop"),
        name=template.name,
        shop_category=template.category,
        brand_type="chain",
        brand_tier=template.tier,
        products=products,
        exposure=float(exposure),
        service_quality=template.service_quality,
        decoration_level=template.decoration_level,
        opened_week=week,
        monthly_rent=rent_base * (template.decoration_level * 0.3 + 0.7),
        price_volatility=template.volatility,
        ring=random_shop_ring(rng),
        has_delivery=rng.random() < template.delivery_probability,
    )


def create_independent_shop(state: GameState, category: str, tier: str, week: int, rent_base: float, rng: random.Random) -> NearbyShop:
    templates = [t for t in INDEPENDENT_TEMPLATES if t.category == category]
    template = _pick(rng, templates) if templates else INDEPENDENT_TEMPLATES[0]

    tier_mult = 0.8 if tier == "budget" else 1.3 if tier == "premium" else 1.0
    products = []
    for p in template.products:
        price = _uniform(rng, *p.price_range) * tier_mult
        products.append(
            ShopProduct(
                name=p.name,
                category=category,
                sub_type=p.sub_type,
                price=_round1(price),
                base_cost=_round1(price * p.cost_rate),
                quality=float(round(p.quality * tier_mult + _randint(rng, -10, 10))),
                appeal=float(round(p.appeal * tier_mult + _randint(rng, -10, 10))),
            )
        )
    name = generate_shop_name(category, rng)
    return NearbyShop(
        shop_id=state.new_id("shop"),
        name=name,
        shop_category=category,
        brand_type="independent",
        brand_tier=tier,
        products=products,
        exposure=_uniform(rng, *template.exposure_range),
        service_quality=_uniform(rng, *template.service_range),
        decoration_level=_randint(rng, *template.decoration_range),
        opened_week=week,
        monthly_rent=rent_base * 0.6,
        price_volatility=template.volatility,
        ring=random_shop_ring(rng),
        has_delivery=rng.random() < INDEPENDENT_DELIVERY_PROBABILITY.get(category, 0.0),
    )


def _chain_by_id(template_id: str) -> Optional[ChainTemplate]:
    for t in CHAIN_TEMPLATES:
        if t.template_id == template_id:
            return t
    return None


def generate_initial_shops(state: GameState, location_id: str, rent_base: float, rng: random.Random) -> List[NearbyShop]:
    dist = SHOP_DISTRIBUTIONS.get(location_id)
    if dist is None:
        return []

    count = _randint(rng, *dist.count_range)
    shops: List[NearbyShop] = []
    for _ in range(count):
        is_chain = rng.random() < dist.chain_probability
        category = _weighted_category(dist.category_weights, rng)
        tier = _weighted_tier(dist.tier_weights, rng)

        if is_chain:
            preferred = [t for t in (_chain_by_id(cid) for cid in dist.preferred_chains) if t is not None]
            matching = [t for t in preferred if t.category == category]
            candidates = matching or preferred
            if candidates:
                template = _pick(rng, candidates)
                if not any(s.name == template.name for s in shops):
                    shops.append(create_chain_shop(state, template, 0, rent_base, rng))
                    continue

        shops.append(create_independent_shop(state, category, tier, 0, rent_base, rng))
    return shops


def try_generate_new_shop(
    state: GameState, location_id: str, shops: List[NearbyShop], week: int, rent_base: float, rng: random.Random
) -> Optional[NearbyShop]:
    if rng.random() > NEW_SHOP_PROBABILITY:
        return None
    active = [s for s in shops if not s.is_closing]
    if len(active) >= MAX_ACTIVE_SHOPS:
        return None
    dist = SHOP_DISTRIBUTIONS.get(location_id)
    if dist is None:
        return None

    is_chain = rng.random() < dist.chain_probability * 0.8
    category = _weighted_category(dist.category_weights, rng)
    tier = _weighted_tier(dist.tier_weights, rng)

    if is_chain:
        active_names = {s.name for s in active}
        candidates = [t for t in CHAIN_TEMPLATES if t.name not in active_names]
        if candidates:
            return create_chain_shop(state, _pick(rng, candidates), week, rent_base, rng)
    return create_independent_shop(state, category, tier, week, rent_base, rng)


def check_shop_closing(shops: List[NearbyShop], week: int, rng: random.Random) -> Tuple[List[NearbyShop], List[Dict[str, object]]]:
    """Mark shops for closing; drop those past their closing week.

    Returns (shops, events). Events are plain dicts {type, shop_id, shop_name, week}.
    """

    events: List[Dict[str, object]] = []
    updated: List[NearbyShop] = []
    for shop in shops:
        if shop.is_closing or week - shop.opened_week < MIN_WEEKS_BEFORE_CLOSING:
            updated.append(shop)
            continue
        rate = CHAIN_CLOSE_RATE if shop.brand_type == "chain" else INDEPENDENT_CLOSE_RATE
        if shop.weekly_profit < 0:
            rate *= 3
        if rng.random() < rate:
            events.append({"type": "closing", "shop_id": shop.shop_id, "shop_name": shop.name, "week": week})
            shop = shop.clone()
            shop.is_closing = True
            shop.closed_week = week + CLOSING_NOTICE_WEEKS
        updated.append(shop)

    kept = [s for s in updated if not (s.is_closing and s.closed_week is not None and week >= s.closed_week)]
    return kept, events


def update_shop_prices(shops: List[NearbyShop], rng: random.Random) -> List[NearbyShop]:
    out = []
    for shop in shops:
        if shop.is_closing:
            out.append(shop)
            continue
        ns = shop.clone()
        v = shop.price_volatility
        for p in ns.products:
            change = 1 + _uniform(rng, -v, v)
            p.price = _round1(max(p.base_cost * 1.1, p.price * change))
        out.append(ns)
    return out


def shop_reputation(shop: NearbyShop) -> float:
    rep = shop.service_quality * 60
    if shop.brand_type == "chain":
        rep += 25
    if shop.brand_tier == "premium":
        rep += 10
    elif shop.brand_tier == "standard":
        rep += 5
    return min(100.0, rep)


def update_shop_profits(shops: List[NearbyShop], area_total_demand: float) -> List[NearbyShop]:
    scores: Dict[str, Tuple[float, float, float]] = {}
    for shop in shops:
        if shop.is_closing:
            continue
        n = len(shop.products)
        avg_price = sum(p.price for p in shop.products) / n if n else 10.0
        avg_appeal = sum(p.appeal for p in shop.products) / n if n else 50.0
        avg_cost = sum(p.base_cost for p in shop.products) / n if n else 5.0
        score = (
            exposure_coefficient(shop.exposure)
            * reputation_coefficient(shop_reputation(shop))
            * (avg_appeal / 100.0)
            * max(0.3, shop.service_quality)
        )
        scores[shop.shop_id] = (score, avg_price, avg_cost)

    total = sum(v[0] for v in scores.values())
    out = []
    for shop in shops:
        entry = scores.get(shop.shop_id)
        if shop.is_closing or entry is None:
            out.append(shop)
            continue
        score, avg_price, avg_cost = entry
        share = score / total if total > 0 else 0.0
        ns = shop.clone()
        revenue = area_total_demand * share * avg_price
        cost = area_total_demand * share * avg_cost + shop.monthly_rent / 4
        ns.weekly_profit = revenue - cost
        out.append(ns)
    return out
