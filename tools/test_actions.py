from __future__ import annotations

import random
from dataclasses import asdict

from storesim.actions import (
    ACTION_TYPES,
    _HANDLERS,
    AddStaff,
    ConsultAdvisor,
    JoinPlatform,
    NextWeek,
    OpenStore,
    RecruitStaff,
    RetainStaff,
    SelectBrand,
    SelectLocation,
    SetProductPrice,
    SetStaffSalary,
    SetSupplyPriority,
    StaffMoraleAction,
    StartMarketing,
    action_from_dict,
    action_to_dict,
    dispatch,
)
from storesim.catalog import (
    BONUS_MORALE,
    ONBOARDING_WEEKS,
    RECRUITMENT_CHANNELS,
    STAFF_TYPES,
    TEAM_MEAL_COST_PER_PERSON,
    TEAM_MEAL_MORALE,
)
from storesim.engine import create_initial_state
from storesim.presets import SCENARIOS, build_initial_state


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


def _rng(seed: int = 5) -> random.Random:
    return random.Random(seed)


class _Fixed(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


def test_dispatch_never_mutates_input() -> None:
    s = create_initial_state()
    before = asdict(s)
    r = dispatch(s, SelectBrand("mixue"), _rng())
    _assert(r.changed and r.error is None, f"select_brand should succeed: {r.error}")
    _assert(r.state is not s, "dispatch should return a new state")
    _assert(asdict(s) == before, "input state must stay untouched")
    _assert(r.state.brand_id == "mixue", "brand should be set on the result")
    _assert(r.state.cash == 400000 - 150000, "franchise fee should be paid from initial cash")
    _assert(35 <= r.state.exposure <= 55, "franchise exposure should be in 35-55")


def test_rejection_returns_original_state() -> None:
    s = create_initial_state()
    r = dispatch(s, SelectBrand("no_such_brand"), _rng())
    _assert(not r.changed, "unknown brand should be rejected")
    _assert(r.state is s, "rejection should hand back the input state")
    _assert(r.error == "Brand not found: no_such_brand", f"unexpected error: {r.error}")


def test_dispatch_rejects_non_action() -> None:
    try:
        dispatch(create_initial_state(), {"type": "next_week"}, _rng())  # type: ignore[arg-type]
    except TypeError:
        return
    raise AssertionError("a plain dict is not an action and should raise TypeError")


def test_next_week_requires_operating() -> None:
    r = dispatch(create_initial_state(), NextWeek(), _rng())
    _assert(not r.changed and r.error == "仅经营阶段可推进周", f"unexpected result: {r.error}")


def test_open_store_requirements() -> None:
    r = dispatch(create_initial_state(), OpenStore(), _rng())
    _assert(r.error == "请先选择品牌", f"brand should be checked first: {r.error}")
    s = dispatch(create_initial_state(), SelectBrand("independent"), _rng()).state
    r = dispatch(s, OpenStore(), _rng())
    _assert(r.error == "请先选择区位", f"location should be checked next: {r.error}")


def test_setup_staff_limit() -> None:
    s = create_initial_state()
    r = dispatch(s, AddStaff("fulltime"), _rng())
    _assert(r.error == "No location selected", "hiring needs a location")
    s = dispatch(s, SelectLocation("school"), _rng()).state
    rng = _rng()
    for _ in range(8):
        r = dispatch(s, AddStaff("parttime"), rng)
        _assert(r.changed, f"hiring should succeed: {r.error}")
        s = r.state
    r = dispatch(s, AddStaff("parttime"), rng)
    _assert(r.error == "筹备阶段最多招聘8人", "ninth hire during setup should fail")
    _assert(len({m.staff_id for m in s.staff}) == 8, "staff ids should be unique")


def test_join_platform_rules() -> None:
    s = build_initial_state(SCENARIOS["indie_school_drinks"], 3)
    r = dispatch(s, JoinPlatform("meituan"), _rng())
    _assert(r.error == "Cognition level too low", "independent store needs cognition to join")

    s = build_initial_state(SCENARIOS["mixue_community"], 3)
    r = dispatch(s, JoinPlatform("nope"), _rng())
    _assert(r.error == "Platform not found: nope", f"unexpected error: {r.error}")
    r = dispatch(s, JoinPlatform("meituan"), _rng())
    _assert(r.changed, f"franchise store should join meituan: {r.error}")
    s2 = r.state
    _assert(len(s2.delivery.platforms) == 1, "one platform joined")
    _assert(abs(s2.delivery.total_platform_exposure - s2.delivery.platforms[0].platform_exposure) < 1e-9, "total exposure should be recomputed")
    r = dispatch(s2, JoinPlatform("meituan"), _rng())
    _assert(not r.changed and r.error == "Already joined", "duplicate join should fail")
    _assert(len(r.state.delivery.platforms) == 1, "duplicate join must not add a platform")


def test_product_price_is_clamped() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 3)
    r = dispatch(s, SetProductPrice("milktea", 1000.0), _rng())
    _assert(r.changed, f"price change should succeed: {r.error}")
    _assert(r.state.product_prices["milktea"] == 45.0, "price should clamp to 3x reference")
    r = dispatch(s, SetProductPrice("milktea", 13.456), _rng())
    _assert(r.state.product_prices["milktea"] == 13.46, "price should round to 2 decimals")
    r = dispatch(s, SetProductPrice("milktea", -1.0), _rng())
    _assert(r.error == "价格必须为正数", "negative price should be rejected")
    r = dispatch(s, SetProductPrice("burger", 20.0), _rng())
    _assert(not r.changed, "unselected product cannot be priced")


def test_active_operation_resets_idle_counter() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 3).clone()
    s.weeks_since_last_action = 5
    r = dispatch(s, SetProductPrice("milktea", 14.0), _rng())
    _assert(r.state.weeks_since_last_action == 0, "an active operation resets the idle counter")
    ops = r.state.cognition.weekly_operation_count
    _assert(ops == s.cognition.weekly_operation_count + 1, "an active operation bumps the weekly count")

    r = dispatch(s, SetSupplyPriority("dine_in_first"), _rng())
    _assert(r.error == "已是当前模式", "unchanged supply priority should fail")
    _assert(r.state.weeks_since_last_action == 5, "a rejected action leaves the idle counter alone")


def test_marketing_rules() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 3)
    r = dispatch(s, StartMarketing("social_media"), _rng())
    _assert(r.changed, f"continuous activity should start: {r.error}")
    r = dispatch(r.state, StartMarketing("social_media"), _rng())
    _assert(r.error == "Already active", "an active activity cannot start twice")

    r = dispatch(s, StartMarketing("grand_opening"), _rng())
    _assert(r.changed and r.state.cash == s.cash - 12000, "one-time activity is paid upfront")
    _assert("grand_opening" in r.state.used_unique_activities, "unique activity should be recorded")


def test_consult_advisor_limit() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 3)
    rng = _rng()
    for _ in range(2):
        r = dispatch(s, ConsultAdvisor(), rng)
        _assert(r.changed, f"consult should succeed: {r.error}")
        s = r.state
    r = dispatch(s, ConsultAdvisor(), rng)
    _assert(r.error == "Weekly consult limit reached", "third consult in a week should fail")


def test_action_dict_conversion() -> None:
    a = SetProductPrice("milktea", 14.5)
    d = action_to_dict(a)
    _assert(d == {"type": "set_product_price", "product_id": "milktea", "price": 14.5}, f"unexpected dict: {d}")
    _assert(action_from_dict(d) == a, "dict should convert back to the same action")
    _assert(action_from_dict({"type": "next_week"}) == NextWeek(), "field-less action should parse")
    for bad in ({"type": "fly"}, {"type": "next_week", "x": 1}, {"type": "join_platform"}, {}):
        try:
            action_from_dict(bad)
        except ValueError:
            continue
        raise AssertionError(f"{bad} should be rejected")


def test_every_action_has_a_handler() -> None:
    _assert(set(_HANDLERS) == set(ACTION_TYPES.values()), "every action type needs exactly one handler")


# ---------------------------------------------------------------------------
# Staff management
# ---------------------------------------------------------------------------


def _opened():
    return build_initial_state(SCENARIOS["mixue_community"], 3).clone()


def test_recruit_staff() -> None:
    s = _opened()
    r = dispatch(s, RecruitStaff("agency", "fulltime", "chef"), _rng())
    _assert(r.changed, f"agency hire should succeed: {r.error}")
    hired = r.state.staff[-1]
    _assert(len(r.state.staff) == len(s.staff) + 1, "one new staff member")
    _assert(hired.is_onboarding and hired.onboarding_ends_week == s.current_week + ONBOARDING_WEEKS, "recruits start onboarding")
    lo, hi = RECRUITMENT_CHANNELS["agency"].skill_range
    _assert(lo <= hired.skill_level <= hi, f"skill {hired.skill_level} should come from the channel range")
    _assert(r.state.cash == s.cash - RECRUITMENT_CHANNELS["agency"].cost, "channel cost is paid")

    r = dispatch(s, RecruitStaff("poster", "fulltime"), _rng())
    _assert(r.error == "Channel not found: poster", f"unexpected error: {r.error}")
    s.cash = 100.0
    r = dispatch(s, RecruitStaff("agency", "fulltime"), _rng())
    _assert(r.error == "Not enough cash", f"unexpected error: {r.error}")


def test_staff_salary_rules() -> None:
    s = _opened()
    chef = next(m for m in s.staff if m.type_id == "fulltime")
    part = next(m for m in s.staff if m.type_id == "parttime")
    s.cognition.level = 1
    r = dispatch(s, SetStaffSalary(chef.staff_id, 6000.0), _rng())
    _assert(r.error == "认知等级不足，需要达到Lv2才能调整薪资", f"salary needs Lv2: {r.error}")

    s.cognition.level = 2
    r = dispatch(s, SetStaffSalary(part.staff_id, 6000.0), _rng())
    _assert(r.error == "兼职员工按时薪计费，请通过调整工时来控制成本", "hourly staff have no monthly salary")
    r = dispatch(s, SetStaffSalary(chef.staff_id, chef.salary), _rng())
    _assert(r.error == "Salary unchanged", f"unexpected error: {r.error}")

    base = round(STAFF_TYPES["fulltime"].base_salary * s.location().wage_level)
    r = dispatch(s, SetStaffSalary(chef.staff_id, 1e9), _rng())
    raised = r.state.staff_member(chef.staff_id)
    _assert(raised.salary == round(base * 2.0), f"salary clamps to twice the base: {raised.salary}")
    boost = min(20, round((raised.salary - chef.salary) / chef.salary * 15))
    _assert(raised.morale == min(100.0, chef.morale + boost), "a raise lifts morale")
    _assert(raised.salary_raise_morale_boost == boost, "the raise boost is remembered for decay")

    r = dispatch(s, SetStaffSalary(chef.staff_id, 1.0), _Fixed(0.0))
    cut = r.state.staff_member(chef.staff_id)
    _assert(cut.salary == round(base * 0.8), f"salary clamps to 80% of the base: {cut.salary}")
    _assert(cut.morale < chef.morale and cut.wants_to_quit, "a cut lowers morale and may make them want to quit")


def test_morale_actions() -> None:
    s = _opened()
    s.cognition.level = 0
    r = dispatch(s, StaffMoraleAction("team_meal"), _rng())
    _assert(r.error == "认知等级不足，需要达到Lv1才能使用士气管理工具", f"morale tools need Lv1: {r.error}")
    r = dispatch(s, StaffMoraleAction("party"), _rng())
    _assert(r.error == "Unknown morale action: party", f"unexpected error: {r.error}")

    s.cognition.level = 1
    r = dispatch(s, StaffMoraleAction("team_meal"), _rng())
    _assert(r.changed, f"team meal should succeed: {r.error}")
    _assert(r.state.cash == s.cash - TEAM_MEAL_COST_PER_PERSON * len(s.staff), "team meal is paid per person")
    for before, after in zip(s.staff, r.state.staff):
        _assert(after.morale == min(100.0, before.morale + TEAM_MEAL_MORALE), "team meal lifts everyone")
    _assert(r.state.staff_morale_action_count == s.staff_morale_action_count + 1, "morale actions are counted")
    r = dispatch(r.state, StaffMoraleAction("team_meal"), _rng())
    _assert(r.error is not None and r.error.startswith("团建冷却中"), f"team meal has a cooldown: {r.error}")

    target = s.staff[0]
    r = dispatch(s, StaffMoraleAction("bonus"), _rng())
    _assert(r.error == "bonus requires target staff", f"unexpected error: {r.error}")
    r = dispatch(s, StaffMoraleAction("bonus", target.staff_id, 1000), _rng())
    _assert(r.state.cash == s.cash - 1000, "the chosen bonus is paid")
    for before, after in zip(s.staff, r.state.staff):
        gain = BONUS_MORALE[1] if before.staff_id == target.staff_id else 3
        _assert(after.morale == min(100.0, before.morale + gain), "bonus lifts the target most and the team a little")
    r = dispatch(r.state, StaffMoraleAction("bonus", target.staff_id, 1000), _rng())
    _assert(r.error is not None and r.error.startswith("奖金冷却中"), f"bonus has a per-staff cooldown: {r.error}")

    s.staff[0].fatigue = 40.0
    r = dispatch(s, StaffMoraleAction("day_off", target.staff_id), _rng())
    rested = r.state.staff_member(target.staff_id)
    _assert(rested.fatigue == 25.0, f"a day off removes fatigue: {rested.fatigue}")
    _assert(r.state.weeks_since_last_morale_action == 0, "the morale idle counter resets")


def test_retain_staff() -> None:
    s = _opened()
    m = s.staff[0]
    s.cognition.level = 2
    r = dispatch(s, RetainStaff(m.staff_id, "bonus"), _rng())
    _assert(r.error == "该员工没有离职意向", f"only quitting staff can be retained: {r.error}")

    s.staff[0].wants_to_quit = True
    r = dispatch(s, RetainStaff(m.staff_id, "bonus"), _Fixed(0.0))
    kept = r.state.staff_member(m.staff_id)
    _assert(not kept.wants_to_quit, "a successful retention clears the quit wish")
    _assert(r.state.cash == s.cash - round(m.salary * 0.5), "bonus retention costs half a month's salary")
    _assert(kept.morale == min(100.0, m.morale + 20), "bonus retention lifts morale")

    r = dispatch(s, RetainStaff(m.staff_id, "raise"), _Fixed(0.99))
    lost = r.state.staff_member(m.staff_id)
    _assert(lost.wants_to_quit, "a failed retention leaves the quit wish")
    _assert(lost.salary == round(m.salary * 1.2), "the raise is paid even when retention fails")

    r = dispatch(s, RetainStaff(m.staff_id, "reduce_hours"), _Fixed(0.0))
    eased = r.state.staff_member(m.staff_id)
    _assert((eased.work_days, eased.work_hours) == (5, 8), "reduced hours change the schedule")


def main() -> None:
    tests = [
        test_dispatch_never_mutates_input,
        test_rejection_returns_original_state,
        test_dispatch_rejects_non_action,
        test_next_week_requires_operating,
        test_open_store_requirements,
        test_setup_staff_limit,
        test_join_platform_rules,
        test_product_price_is_clamped,
        test_active_operation_resets_idle_counter,
        test_marketing_rules,
        test_consult_advisor_limit,
        test_action_dict_conversion,
        test_every_action_has_a_handler,
        test_recruit_staff,
        test_staff_salary_rules,
        test_morale_actions,
        test_retain_staff,
    ]
    for t in tests:
        t()
        print(f"OK  {t.__name__}")
    print(f"ALL OK ({len(tests)} tests)")


if __name__ == "__main__":
    main()
