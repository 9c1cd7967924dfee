from __future__ import annotations

import random
from typing import List, Optional, Tuple

from storesim.catalog import (
    BOSS_ACTIONS,
    BOSS_HISTORY_CAP,
    CATEGORY_NAMES,
    COUNT_TRAFFIC_STREAK_EXP,
    COUNT_TRAFFIC_STREAK_WEEKS,
    DEFAULT_BOSS_ACTION,
    DINNER_BUFF_CHANCE,
    DINNER_BUFF_VALUE,
    DINNER_BUFF_WEEKS,
    DINNER_INSIGHTS_ACCURATE,
    DINNER_INSIGHTS_INACCURATE,
    DINNER_RELIABILITY,
    INVESTIGATION_ACCURACY,
    INVESTIGATION_DIMENSIONS,
)
from storesim.models import BossActionState, BossBuff, ConsumerRing, DinnerInsight, GameState, NearbyShop, Observation

DECORATION_NAMES = ["简陋", "简约", "标准", "精装", "豪华"]


def _pick(seq, rng: random.Random):
    return seq[int(rng.random() * len(seq))]


def boss_exp(boss: BossActionState, rng: random.Random) -> List[Tuple[str, float]]:
    """(label, exp) pairs the boss's action earns this week."""

    cfg = BOSS_ACTIONS.get(boss.current_action)
    if cfg is None:
        return []
    lo, hi = cfg.exp_range
    out = [(cfg.name, float(lo if lo == hi else lo + int(rng.random() * (hi - lo + 1))))]
    if boss.current_action == "count_traffic" and boss.consecutive_study_weeks + 1 >= COUNT_TRAFFIC_STREAK_WEEKS:
        out.append(("蹲点洞察", float(COUNT_TRAFFIC_STREAK_EXP)))
    return out


def boss_cost(boss: BossActionState) -> float:
    cfg = BOSS_ACTIONS.get(boss.current_action)
    return cfg.cost if cfg else 0.0


# ---------------------------------------------------------------------------
# Observations
# ---------------------------------------------------------------------------


def _skewed(value: float, rng: random.Random, lo: float, span: float) -> int:
    factor = lo + rng.random() * span
    direction = 1 if rng.random() > 0.5 else -1
    return round(value * (1 + direction * factor))


def _shop_dimension(shop: NearbyShop, dimension: str, rng: random.Random) -> Tuple[str, str]:
    if dimension == "traffic":
        real = round(shop.exposure * 1.2 + 15)
        return f"约 {real} 人/天", f"约 {_skewed(real, rng, 0.4, 0.8)} 人/天"
    if dimension == "price":
        avg = round(sum(p.price for p in shop.products) / len(shop.products)) if shop.products else 20
        offset = round((3 + rng.random() * 10) * (1 if rng.random() > 0.5 else -1))
        return f"¥{avg}", f"¥{max(5, avg + offset)}"
    if dimension == "category":
        real = CATEGORY_NAMES.get(shop.shop_category, "综合")
        return real, _pick([c for c in CATEGORY_NAMES.values() if c != real], rng)
    if dimension == "decoration":
        real = DECORATION_NAMES[max(0, min(len(DECORATION_NAMES) - 1, shop.decoration_level - 1))]
        return real, _pick([d for d in DECORATION_NAMES if d != real], rng)
    real_count = (4 if shop.brand_type == "chain" else 2) + int(rng.random() * 3)
    fake_count = max(1, real_count + round(rng.random() * 4 - 2))
    if fake_count == real_count:
        fake_count += 2
    return f"{real_count} 人", f"{fake_count} 人"


def investigate(state: GameState, rng: random.Random) -> List[Observation]:
    shops = [s for s in state.nearby_shops if not s.is_closing and s.closed_week is None]
    if not shops:
        return []
    target = next((s for s in shops if s.shop_id == state.boss.target_shop_id), None) or _pick(shops, rng)
    level = state.cognition.level
    pool = list(INVESTIGATION_DIMENSIONS)
    out = []
    for _ in range(2 if level >= 3 else 1):
        dim = pool.pop(int(rng.random() * len(pool)))
        accurate = rng.random() < INVESTIGATION_ACCURACY[level]
        real, fake = _shop_dimension(target, dim, rng)
        out.append(Observation(target.shop_id, target.name, dim, real if accurate else fake, accurate, state.current_week))
    return out


def count_traffic(state: GameState, rings: List[ConsumerRing], rng: random.Random) -> Observation:
    target: Optional[NearbyShop] = None
    if state.boss.target_shop_id:
        target = next((s for s in state.nearby_shops if s.shop_id == state.boss.target_shop_id), None)
    if target is not None:
        daily = round(round(target.exposure * 1.2 + 15) / 7)
        shop_id, shop_name = target.shop_id, target.name
    else:
        weekly = sum(sum(r.consumers.values()) * r.base_conversion for r in rings)
        daily = round(weekly / 7)
        shop_id, shop_name = "_self", "本店周边"
    daily = max(1, daily)
    accurate = rng.random() < INVESTIGATION_ACCURACY[state.cognition.level]
    shown = daily if accurate else _skewed(daily, rng, 0.3, 0.5)
    return Observation(shop_id, shop_name, "traffic", f"日均客流约 {shown} 人", accurate, state.current_week)


def dinner_insight(state: GameState, rng: random.Random) -> DinnerInsight:
    level = state.cognition.level
    reliability = DINNER_RELIABILITY[level]
    accurate = rng.random() < reliability
    topic, content = _pick(DINNER_INSIGHTS_ACCURATE if accurate else DINNER_INSIGHTS_INACCURATE, rng)
    products = state.products()
    category = CATEGORY_NAMES.get(products[0].category, products[0].category) if products else "餐饮"
    buff = None
    if accurate and topic == "supply" and rng.random() < DINNER_BUFF_CHANCE / reliability:
        buff = BossBuff("supply_cost_reduction", DINNER_BUFF_VALUE, DINNER_BUFF_WEEKS, "同行推荐的供应商")
    return DinnerInsight(content.replace("{category}", category), accurate, state.current_week, buff)


# ---------------------------------------------------------------------------
# Week settlement
# ---------------------------------------------------------------------------


def settle_boss_week(state: GameState, rings: List[ConsumerRing], rng: random.Random) -> BossActionState:
    """Record what this week's action found, age buffs, and fall back to supervising."""

    prev = state.boss
    boss = prev.clone()
    if prev.current_action == "investigate_nearby":
        boss.investigation_history.extend(investigate(state, rng))
    elif prev.current_action == "count_traffic":
        boss.investigation_history.append(count_traffic(state, rings, rng))
    elif prev.current_action == "industry_dinner":
        insight = dinner_insight(state, rng)
        if insight.buff is not None:
            boss.active_buffs.append(BossBuff(
                insight.buff.buff_type, insight.buff.value, insight.buff.remaining_weeks, insight.buff.source,
            ))
        boss.insight_history.append(insight)

    for b in boss.active_buffs:
        b.remaining_weeks -= 1
    boss.active_buffs = [b for b in boss.active_buffs if b.remaining_weeks > 0]
    boss.consecutive_study_weeks = prev.consecutive_study_weeks + 1 if prev.current_action == "count_traffic" else 0
    boss.investigation_history = boss.investigation_history[-BOSS_HISTORY_CAP:]
    boss.insight_history = boss.insight_history[-BOSS_HISTORY_CAP:]
    boss.current_action = DEFAULT_BOSS_ACTION
    boss.work_role = None
    boss.target_shop_id = None
    return boss
