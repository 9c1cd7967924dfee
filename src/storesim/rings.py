from __future__ import annotations

import random
from typing import Iterable, List

from storesim.catalog import (
    CUSTOMER_RING_DECAY,
    CUSTOMER_TYPES,
    LOCATION_RING_MULTIPLIERS,
    RING_CONFIGS,
    RING_IDS,
    SEASON_TRAFFIC_MOD,
    Address,
    Location,
)
from storesim.models import ConsumerRing, NearbyShop


def ring_index(ring_id: str) -> int:
    try:
        return RING_IDS.index(ring_id)
    except ValueError:
        return 0


def generate_consumer_rings(location: Location, address: Address, rng: random.Random) -> List[ConsumerRing]:
    """Build the four consumer rings for a chosen address.

    ring0 is the door-front population (foot traffic × address modifier). Outer
    rings scale it by a per-location multiplier, a ±20% random factor and the
    customer type's distance decay.
    """

    tm = address.traffic_modifier
    rings: List[ConsumerRing] = []
    for ring_id in RING_IDS:
        label, base_conversion = RING_CONFIGS[ring_id]
        consumers = {}
        for ct in CUSTOMER_TYPES:
            foot = float(location.foot_traffic.get(ct, 0.0))
            if ring_id == "ring0":
                consumers[ct] = float(round(foot * tm))
                continue
            lo, hi = LOCATION_RING_MULTIPLIERS.get(location.location_id, {}).get(ring_id, (1.0, 1.0))
            mult = rng.uniform(lo, hi)
            jitter = 0.8 + rng.random() * 0.4
            decay = CUSTOMER_RING_DECAY[ct][ring_id]
            consumers[ct] = float(round(foot * tm * mult * jitter * decay))
        rings.append(ConsumerRing(ring_id=ring_id, label=label, consumers=consumers, base_conversion=base_conversion))
    return rings


def apply_season(rings: Iterable[ConsumerRing], season: str) -> List[ConsumerRing]:
    mods = SEASON_TRAFFIC_MOD.get(season, {})
    out = []
    for r in rings:
        nr = r.clone()
        nr.consumers = {ct: float(round(v * mods.get(ct, 1.0))) for ct, v in r.consumers.items()}
        out.append(nr)
    return out


def assign_shops_to_rings(rings: Iterable[ConsumerRing], shops: Iterable[NearbyShop]) -> List[ConsumerRing]:
    shops = list(shops)
    out = []
    for r in rings:
        nr = r.clone()
        nr.nearby_shop_ids = [s.shop_id for s in shops if s.ring == r.ring_id and not s.is_closing]
        out.append(nr)
    return out


def total_ring_consumers(ring: ConsumerRing) -> float:
    return float(sum(ring.consumers.values()))
