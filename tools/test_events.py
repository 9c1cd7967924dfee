from __future__ import annotations

import random

from storesim.actions import NextWeek, RespondToEvent, SetBossAction, dispatch
from storesim.catalog import INTERACTIVE_EVENTS, NOTIFICATION_OPTION, BuffSpec, EventEffects
from storesim.engine import advance_week, create_initial_state
from storesim.events import event_candidates, roll_interactive_event
from storesim.models import ChainTrigger, DelayedEffect, EventBuff, GameState
from storesim.presets import SCENARIOS, build_initial_state
from storesim.supply import calculate_supply


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


class _Fixed(random.Random):
    """random() always returns the same value; shuffles still use the seed."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


def _opened(seed: int = 21) -> GameState:
    return build_initial_state(SCENARIOS["mixue_community"], seed).clone()


# ---------------------------------------------------------------------------
# Boss actions
# ---------------------------------------------------------------------------


def test_boss_action_rules() -> None:
    r = dispatch(create_initial_state(), SetBossAction("count_traffic"), random.Random(1))
    _assert(r.error == "仅经营阶段可设置老板行动", f"setup phase has no boss actions: {r.error}")

    s = _opened()
    r = dispatch(s, SetBossAction("nap"), random.Random(1))
    _assert(r.error == "未知行动类型: nap", f"unexpected error: {r.error}")

    s.cognition.level = 0
    r = dispatch(s, SetBossAction("industry_dinner"), random.Random(1))
    _assert(r.error == "认知等级不足，需要达到 Lv1", f"dinner needs Lv1: {r.error}")
    s.cognition.level = 1
    s.cash = 100.0
    r = dispatch(s, SetBossAction("industry_dinner"), random.Random(1))
    _assert(r.error == "现金不足", f"dinner needs cash for its cost: {r.error}")


def test_boss_action_toggle_and_roles() -> None:
    s = _opened()
    s.cognition.level = 1
    ops = s.cognition.weekly_operation_count
    r = dispatch(s, SetBossAction("investigate_nearby"), random.Random(1))
    _assert(r.changed and r.state.boss.current_action == "investigate_nearby", f"boss should go investigate: {r.error}")
    _assert(r.state.cognition.weekly_operation_count == ops + 1, "choosing an action is an operation")
    _assert(r.state.cash == s.cash, "the action cost is charged by the weekly tick, not up front")

    back = dispatch(r.state, SetBossAction("investigate_nearby"), random.Random(1))
    _assert(back.state.boss.current_action == "supervise", "choosing the same action again switches back to supervising")
    _assert(back.state.cognition.weekly_operation_count == ops + 1, "switching back is not counted as an operation")

    r = dispatch(s, SetBossAction("work_in_store", role="manager"), random.Random(1))
    _assert(r.state.boss.work_role == "waiter", "unknown roles fall back to waiter")
    r = dispatch(s, SetBossAction("work_in_store", role="chef"), random.Random(1))
    _assert(r.state.boss.work_role == "chef", "a valid role is kept")
    r = dispatch(s, SetBossAction("industry_dinner", shop_id="shop-1"), random.Random(1))
    _assert(r.state.boss.target_shop_id is None, "only investigations keep a target shop")


def test_week_charges_boss_and_resets() -> None:
    s = _opened()
    s.pending_event_id = None
    r = dispatch(s, SetBossAction("investigate_nearby"), random.Random(2))
    nxt = dispatch(r.state, NextWeek(), random.Random(2))
    _assert(nxt.changed, f"week should advance: {nxt.error}")
    summary = nxt.state.weekly_summary
    _assert(summary.boss_action == "investigate_nearby", "the summary records the week's boss action")
    _assert(summary.boss_action_cost == 200, f"investigation costs 200: {summary.boss_action_cost}")
    _assert(nxt.state.boss.current_action == "supervise", "the boss goes back to supervising after a week")


def test_working_boss_supplies_an_empty_store() -> None:
    s = _opened()
    s.staff = []
    _assert(calculate_supply(s).total_supply == 0, "no staff and a supervising boss produce nothing")
    s.boss.current_action = "work_in_store"
    s.boss.work_role = "chef"
    _assert(calculate_supply(s).total_supply > 0, "a boss working the kitchen produces")


# ---------------------------------------------------------------------------
# Interactive events
# ---------------------------------------------------------------------------


def test_respond_to_event_rules() -> None:
    s = _opened()
    s.pending_event_id = None
    r = dispatch(s, RespondToEvent("supplier_price_hike", "accept_hike"), random.Random(1))
    _assert(r.error == "没有待响应的事件", f"nothing is pending: {r.error}")

    s.pending_event_id = "supplier_price_hike"
    r = dispatch(s, RespondToEvent("landlord_pressure", "accept_rent"), random.Random(1))
    _assert(r.error == "事件ID不匹配: landlord_pressure", f"unexpected error: {r.error}")
    r = dispatch(s, RespondToEvent("supplier_price_hike", "shrug"), random.Random(1))
    _assert(r.error == "选项不存在: shrug", f"unexpected error: {r.error}")

    ops = s.cognition.weekly_operation_count
    r = dispatch(s, RespondToEvent("supplier_price_hike", "find_new_supplier"), random.Random(1))
    _assert(r.changed and r.state.pending_event_id is None, f"answering clears the event: {r.error}")
    _assert(r.state.cash == s.cash - 2000, "option cash effect is applied")
    _assert([b.buff_type for b in r.state.active_event_buffs] == ["cost_multiplier"], "option buff is started")
    delayed = r.state.pending_delayed_effects
    _assert(len(delayed) == 1 and delayed[0].execute_at_week == s.current_week + 3, "delayed effect is scheduled")
    _assert(r.state.cognition.weekly_operation_count == ops, "answering an event is not an operation")


def test_notification_is_acknowledged() -> None:
    s = _opened()
    s.pending_event_id = "morning_cant_wake"
    r = dispatch(s, RespondToEvent("morning_cant_wake", "apologize"), random.Random(1))
    _assert(r.error == "选项不存在: apologize", "notifications only take the acknowledge option")
    r = dispatch(s, RespondToEvent("morning_cant_wake", NOTIFICATION_OPTION), random.Random(1))
    _assert(r.changed and r.state.pending_event_id is None, f"acknowledging clears the notification: {r.error}")
    _assert(r.state.reputation == max(0.0, s.reputation - 5), "notification effects are applied")
    _assert(any(b.buff_type == "revenue_multiplier" for b in r.state.active_event_buffs), "notification buff is started")


def test_event_roll_rules() -> None:
    s = _opened()
    s.staff[0].skill_level = 3
    s.event_history = []
    s.pending_event_id = None
    week = 5
    candidates = event_candidates(s, week)
    _assert("staff_salary_demand" in {e.event_id for e in candidates}, "a skilled staff member enables the salary event")
    _assert(all(e.probability > 0 for e in candidates), "chain-only events are never rolled")

    _assert(roll_interactive_event(s, week, _Fixed(0.0)) is not None, "a certain roll picks an event")
    _assert(roll_interactive_event(s, week, _Fixed(0.99)) is not None, "a store with no events is guaranteed one from week 5")
    _assert(roll_interactive_event(s, 4, _Fixed(0.99)) is None, "no guarantee before week 5")

    s.event_history = ["footbasin_juice"]
    _assert(roll_interactive_event(s, week, _Fixed(0.99)) is None, "the guarantee only applies to a store with no events")
    s.pending_event_id = "footbasin_juice"
    _assert(roll_interactive_event(s, week, _Fixed(0.0)) is None, "nothing is rolled while an event is pending")

    s.event_history = [e.event_id for e in candidates]
    s.pending_event_id = None
    _assert(not event_candidates(s, week), "events already seen are not rolled again")


def test_chain_event_becomes_pending() -> None:
    s = _opened()
    s.pending_event_id = None
    s.pending_chain_events = [ChainTrigger("influencer_refund_success", s.current_week + 1, 1.0)]
    advance_week(s, random.Random(4))
    _assert(not s.pending_chain_events, "due chains are consumed")
    if s.phase == "operating":
        _assert(s.pending_event_id == "influencer_refund_success", f"a certain chain becomes the pending event: {s.pending_event_id}")
        _assert("influencer_refund_success" in s.event_history, "the chained event is recorded")
        cash = s.cash
        r = dispatch(s, RespondToEvent("influencer_refund_success", NOTIFICATION_OPTION), random.Random(4))
        _assert(r.state.cash == cash + INTERACTIVE_EVENTS["influencer_refund_success"].notification_effects.cash, "refund is paid")


def test_delayed_effect_applies_when_due() -> None:
    s = _opened()
    later = EventEffects(buffs=(BuffSpec("exposure_weekly", 0.0, 5, "later"),))
    due = EventEffects(buffs=(BuffSpec("exposure_weekly", 0.0, 3, "due"),))
    s.pending_delayed_effects = [
        DelayedEffect(s.current_week + 1, due, "test"),
        DelayedEffect(s.current_week + 4, later, "test"),
    ]
    advance_week(s, random.Random(6))
    sources = {b.source: b.duration_weeks for b in s.active_event_buffs}
    _assert(sources.get("due") == 2, f"a due effect applies at the start of the week and ages with it: {sources}")
    _assert("later" not in sources, "a future effect waits")
    _assert([d.execute_at_week for d in s.pending_delayed_effects] == [s.current_week + 3], "only the future effect stays queued")


def test_event_buffs_apply_and_expire() -> None:
    base = _opened()
    buffed = base.clone()
    buffed.active_event_buffs = [EventBuff("cost_multiplier", 0.5, 1, "test")]
    a = advance_week(base, random.Random(8))
    b = advance_week(buffed, random.Random(8))
    _assert(b.variable_cost > a.variable_cost, f"a cost buff raises variable cost: {b.variable_cost} vs {a.variable_cost}")
    _assert(not any(x.source == "test" for x in buffed.active_event_buffs), "a one-week buff is gone after its week")


def main() -> None:
    tests = [
        test_boss_action_rules,
        test_boss_action_toggle_and_roles,
        test_week_charges_boss_and_resets,
        test_working_boss_supplies_an_empty_store,
        test_respond_to_event_rules,
        test_notification_is_acknowledged,
        test_event_roll_rules,
        test_chain_event_becomes_pending,
        test_delayed_effect_applies_when_due,
        test_event_buffs_apply_and_expire,
    ]
    for t in tests:
        t()
        print(f"OK  {t.__name__}")
    print(f"ALL OK ({len(tests)} tests)")


if __name__ == "__main__":
    main()
