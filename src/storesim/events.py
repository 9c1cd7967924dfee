from __future__ import annotations

import random
from typing import Callable, Dict, List, Optional

from storesim.catalog import EVENT_GUARANTEE_WEEK, INTERACTIVE_EVENTS, EventEffects, InteractiveEvent, StaffEffect
from storesim.models import ChainTrigger, DelayedEffect, EventBuff, GameState, Staff, apply_cognition_exp


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


# ---------------------------------------------------------------------------
# Context checks
# ---------------------------------------------------------------------------


def _high_fatigue(s: GameState) -> bool:
    if not s.staff:
        return False
    return sum(m.fatigue for m in s.staff) / len(s.staff) > 60 or len(s.staff) < 3


def _morale_gap(s: GameState) -> bool:
    if len(s.staff) < 2:
        return False
    morales = [m.morale for m in s.staff]
    return max(morales) - min(morales) > 30


def _low_margin(s: GameState) -> bool:
    if s.weekly_revenue <= 0:
        return False
    return (s.weekly_revenue - s.weekly_variable_cost) / s.weekly_revenue < 0.20


CONTEXT_CHECKS: Dict[str, Callable[[GameState], bool]] = {
    "cleanliness_low": lambda s: s.cleanliness < 50,
    "staff_cost_exceeds_revenue": lambda s: s.weekly_revenue > 0 and sum(m.salary for m in s.staff) / 4 > s.weekly_revenue,
    "low_margin": _low_margin,
    "deep_loss": lambda s: s.total_investment > 0 and s.cumulative_profit < -s.total_investment * 0.4,
    "has_social_media_marketing": lambda s: any(m.activity_id == "social_media" for m in s.marketing),
    "high_fatigue": _high_fatigue,
    "supply_shortage": lambda s: s.last_week_fulfillment < 0.70,
    "high_skill_staff": lambda s: any(m.skill_level >= 3 for m in s.staff),
    "staff_morale_gap": _morale_gap,
    "high_reputation": lambda s: s.reputation >= 70,
    "operating_6_weeks": lambda s: s.current_week >= 6,
}


# ---------------------------------------------------------------------------
# Rolling
# ---------------------------------------------------------------------------


def event_candidates(state: GameState, week: int) -> List[InteractiveEvent]:
    """Events that may fire this week: not seen before, in their week window, context satisfied.
    Chain-only events (probability 0) never appear here."""

    out = []
    for event in INTERACTIVE_EVENTS.values():
        if event.event_id in state.event_history or event.probability <= 0:
            continue
        if week < event.min_week or (event.max_week is not None and week > event.max_week):
            continue
        check = CONTEXT_CHECKS.get(event.context_check) if event.context_check else None
        if check is not None and not check(state):
            continue
        out.append(event)
    return out


def roll_interactive_event(state: GameState, week: int, rng: random.Random) -> Optional[InteractiveEvent]:
    if state.pending_event_id is not None:
        return None
    candidates = event_candidates(state, week)
    if not candidates:
        return None
    rng.shuffle(candidates)
    for event in candidates:
        if rng.random() < event.probability:
            return event
    # a store that has never seen an event gets one from week 5 on
    if not state.event_history and week >= EVENT_GUARANTEE_WEEK:
        return candidates[0]
    return None


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


def select_target_staff(staff: List[Staff], effect: StaffEffect, rng: random.Random) -> Optional[Staff]:
    candidates = [m for m in staff if not m.is_onboarding]
    if effect.task_filter:
        candidates = [m for m in candidates if m.assigned_task == effect.task_filter]
    if not candidates:
        return None
    if effect.selector == "highest_skill":
        return max(candidates, key=lambda m: m.skill_level)
    if effect.selector == "lowest_morale":
        return min(candidates, key=lambda m: m.morale)
    if effect.selector == "highest_fatigue":
        return max(candidates, key=lambda m: m.fatigue)
    if effect.selector == "random":
        return candidates[int(rng.random() * len(candidates))]
    return candidates[0]


def apply_event_effects(state: GameState, effects: EventEffects, source_event_id: str, rng: random.Random) -> None:
    """Apply one option's effects in place. Delays and chains are measured from state.current_week."""

    state.cash += effects.cash
    if effects.reputation:
        state.reputation = _clamp(state.reputation + effects.reputation, 0, 100)
    if effects.exposure:
        state.exposure = _clamp(state.exposure + effects.exposure, 0, 100)
    if effects.cleanliness:
        state.cleanliness = _clamp(state.cleanliness + effects.cleanliness, 0, 100)
    if effects.morale:
        for m in state.staff:
            m.morale = _clamp(m.morale + effects.morale, 0, 100)
    if effects.cognition_exp:
        state.cognition = apply_cognition_exp(state.cognition, effects.cognition_exp)

    te = effects.target_staff
    target = select_target_staff(state.staff, te, rng) if te is not None else None
    if target is not None:
        if te.remove:
            state.staff = [m for m in state.staff if m.staff_id != target.staff_id]
        else:
            target.morale = _clamp(target.morale + te.morale, 0, 100)
            target.fatigue = _clamp(target.fatigue + te.fatigue, 0, 100)
            target.salary = max(0.0, target.salary + te.salary)
            if te.wants_to_quit is not None:
                target.wants_to_quit = te.wants_to_quit

    for d in effects.delayed:
        state.pending_delayed_effects.append(
            DelayedEffect(state.current_week + d.delay_weeks, d.effects, source_event_id, d.description)
        )
    for b in effects.buffs:
        state.active_event_buffs.append(EventBuff(b.buff_type, b.value, b.duration_weeks, b.source))
    if effects.chain is not None:
        c = effects.chain
        state.pending_chain_events.append(ChainTrigger(c.event_id, state.current_week + c.delay_weeks, c.probability))


def event_buff_total(state: GameState, buff_type: str) -> float:
    return sum(b.value for b in state.active_event_buffs if b.buff_type == buff_type)


def revenue_buff_multiplier(state: GameState) -> float:
    mult = 1.0
    for b in state.active_event_buffs:
        if b.buff_type == "revenue_multiplier":
            mult *= 1 + b.value
    return mult
