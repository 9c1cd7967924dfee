from __future__ import annotations

import random

from storesim import runner
from storesim.actions import FireStaff, dispatch, JoinPlatform, RespondToEvent, SetBossAction, SetProductPrice, StopMarketing, TogglePromotion
from storesim.aggregate import build_aggregate_summary, build_balance_alerts, has_critical
from storesim.catalog import INTERACTIVE_EVENTS, NOTIFICATION_OPTION, PRODUCTS, promotion_index
from storesim.engine import create_initial_state
from storesim.evaluator import evaluate_plan
from storesim.findings import Category, FindingCode, Severity
from storesim.invariants import check_week
from storesim.models import ActiveMarketing, ActivePlatform
from storesim.planner import CandidatePlan, _delivery_actions, build_candidate_plans
from storesim.policy import AutomationConfig, PlannerPolicy
from storesim.presets import SCENARIOS, ScenarioSetupError, SetupBlueprint, build_initial_state
from storesim.query import CurrentStats, stats, supply_demand
from storesim.runner import RunSummary, plan_seed, run_single_simulation, scenario_seeds


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


def _codes(findings) -> set:
    return {f.code for f in findings}


def _run(
    scenario_id: str, win: bool = False, bankrupt: bool = False, weeks: int = 10, low_rise: int = 0, fulfillment: float = 0.9,
) -> RunSummary:
    return RunSummary(
        scenario_id=scenario_id,
        scenario_name=scenario_id,
        seed=1,
        weeks_played=weeks,
        final_phase="ended" if (win or bankrupt) else "operating",
        game_over_reason="win" if win else "bankrupt" if bankrupt else None,
        is_win=win,
        is_bankrupt=bankrupt,
        final_cash=1000.0,
        cumulative_profit=500.0,
        total_investment=1000.0,
        roi=50.0,
        avg_weekly_profit=50.0,
        avg_fulfillment=fulfillment,
        final_exposure=30.0,
        final_reputation=30.0,
        cognition_level=1,
        low_fulfillment_exposure_rise_weeks=low_rise,
    )


# ---------------------------------------------------------------------------
# Scenario setup
# ---------------------------------------------------------------------------


def test_every_preset_opens() -> None:
    _assert("risk_high_cost" in SCENARIOS, "risk scenario must exist")
    for sid, bp in SCENARIOS.items():
        s = build_initial_state(bp, 17)
        _assert(s.phase == "operating", f"{sid}: store should be open")
        _assert(len(s.staff) == len(bp.staff), f"{sid}: every blueprint hire should exist")
        for member, (_, task) in zip(s.staff, bp.staff):
            _assert(task is None or member.assigned_task == task, f"{sid}: staff task not applied")


def test_setup_failure_raises() -> None:
    bp = SetupBlueprint("broken", "broken", "", "nope", "school", "school_gate", "simple", ("milktea",), (("fulltime", None),))
    try:
        build_initial_state(bp, 1)
    except ScenarioSetupError as e:
        _assert(str(e) == "Setup failed (brand): Brand not found: nope", f"unexpected message: {e}")
        return
    raise AssertionError("a broken blueprint should raise ScenarioSetupError")


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------


def test_candidate_plans_shape() -> None:
    s = build_initial_state(SCENARIOS["tastien_office"], 5)
    plans = build_candidate_plans(s)
    _assert(plans[0].plan_id == "baseline_hold" and not plans[0].actions, "baseline hold comes first and is empty")
    sigs = [p.signature() for p in plans]
    _assert(len(sigs) == len(set(sigs)), "plans should be deduplicated")
    for p in plans[1:]:
        _assert(len(p.actions) > 0, f"{p.plan_id}: only the baseline may be empty")
    _assert(build_candidate_plans(s) == plans, "plan generation should be deterministic")


def test_pricing_actions_respect_bounds() -> None:
    for sid in SCENARIOS:
        s = build_initial_state(SCENARIOS[sid], 9)
        for plan in build_candidate_plans(s):
            for a in plan.actions:
                if not isinstance(a, SetProductPrice):
                    continue
                p = PRODUCTS[a.product_id]
                floor = max(p.base_cost * 1.3, 3)
                ceiling = max(floor + 1, p.reference_price * 1.35)
                _assert(floor - 0.05 <= a.price <= ceiling + 0.05, f"{sid}/{plan.plan_id}: price {a.price} out of bounds")
                _assert(abs(a.price * 10 - round(a.price * 10)) < 1e-6, "price should be rounded to 0.1")
                _assert(abs(a.price - s.price_of(p)) >= 0.8, "small price moves should not be emitted")


def test_cash_guard_plan() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5).clone()
    s.marketing.append(ActiveMarketing(activity_id="social_media", start_week=0))
    s.delivery.platforms.append(ActivePlatform(platform_id="meituan", promotion_tier_id="basic", weekly_promotion_cost=500))
    s.delivery.recompute_total()
    plans = {p.plan_id: p for p in build_candidate_plans(s)}
    guard = plans.get("cash_guard")
    _assert(guard is not None, "cash guard should be offered when marketing or promotion is running")
    _assert(guard.actions[0] == StopMarketing("social_media"), "cash guard stops the costliest activity first")
    _assert(guard.actions[1] == TogglePromotion("meituan", 0), "cash guard switches promotion off")


def test_promo_off_rule_only_when_nothing_else_applies() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5).clone()
    s.cash = 15000.0
    s.delivery.platforms.append(ActivePlatform(platform_id="meituan", active_weeks=2, platform_exposure=5.0))
    s.delivery.recompute_total()
    losing = CurrentStats(profit=-3000.0)
    actions = _delivery_actions(s, 0.9, losing, PlannerPolicy())
    _assert(actions == [TogglePromotion("meituan", promotion_index("basic"))], f"low exposure should win over the loss rule: {actions}")

    s.delivery.platforms[0].platform_exposure = 30.0
    s.delivery.platforms[0].promotion_tier_id = "basic"
    actions = _delivery_actions(s, 0.9, losing, PlannerPolicy())
    _assert(actions == [TogglePromotion("meituan", promotion_index("none"))], f"a losing week with no other rule turns promotion off: {actions}")


def test_event_and_boss_plans() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5).clone()
    plans = {p.plan_id: p for p in build_candidate_plans(s)}
    boss = plans.get("boss_learning")
    _assert(boss is not None and isinstance(boss.actions[0], SetBossAction), "a supervising boss is offered a learning plan")
    _assert(not any(pid.startswith("event_") for pid in plans), "no event plans without a pending event")

    s.pending_event_id = "supplier_price_hike"
    event = INTERACTIVE_EVENTS["supplier_price_hike"]
    plans = {p.plan_id: p for p in build_candidate_plans(s)}
    for o in event.options:
        plan = plans.get(f"event_{o.option_id}")
        _assert(plan is not None, f"option {o.option_id} should get its own plan")
        _assert(plan.actions == (RespondToEvent(event.event_id, o.option_id),), "an event plan only answers the event")

    s.pending_event_id = "morning_cant_wake"
    plans = {p.plan_id: p for p in build_candidate_plans(s)}
    _assert(plans["event_acknowledge"].actions == (RespondToEvent("morning_cant_wake", NOTIFICATION_OPTION),), "notifications are acknowledged")


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


def test_fresh_store_has_no_critical_findings() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5)
    findings, low_rise = check_week(s, s, stats(s), supply_demand(s))
    critical = [f for f in findings if f.severity == Severity.CRITICAL]
    _assert(not critical, f"unexpected critical findings: {[f.message for f in critical]}")
    _assert(not low_rise, "no platforms means no exposure rise")


def test_negative_cash_not_ended_is_critical() -> None:
    prev = build_initial_state(SCENARIOS["mixue_community"], 5)
    nxt = prev.clone()
    nxt.cash = -6000.0
    findings, _ = check_week(prev, nxt, stats(nxt), supply_demand(nxt))
    hit = [f for f in findings if f.code == FindingCode.NEGATIVE_CASH_NOT_ENDED]
    _assert(len(hit) == 1, "negative cash below the bankrupt line should be flagged")
    _assert(hit[0].severity == Severity.CRITICAL and hit[0].category == Category.ENGINE_BUG, "should be a critical engine bug")
    _assert("-6000" in hit[0].message, f"message should carry the cash value: {hit[0].message}")

    nxt.phase = "ended"
    findings, _ = check_week(prev, nxt, stats(nxt), supply_demand(nxt))
    _assert(FindingCode.NEGATIVE_CASH_NOT_ENDED not in _codes(findings), "an ended game is not flagged")


def test_range_and_idle_findings() -> None:
    prev = build_initial_state(SCENARIOS["mixue_community"], 5).clone()
    prev.weeks_since_last_action = 4
    prev.exposure = 40.0
    nxt = prev.clone()
    nxt.exposure = 120.0
    nxt.growth.trust_confidence = 1.5
    findings, _ = check_week(prev, nxt, stats(nxt), supply_demand(nxt))
    codes = _codes(findings)
    _assert(FindingCode.EXPOSURE_OUT_OF_RANGE in codes, "exposure above 100 should be flagged")
    _assert(FindingCode.GROWTH_SYSTEM_OUT_OF_RANGE in codes, "trust above 1 should be flagged")
    _assert(FindingCode.IDLE_EXPOSURE_SPIKE in codes, "idle exposure jump should be flagged")

    nxt.delivery.platforms.append(ActivePlatform(platform_id="meituan", platform_exposure=20.0))
    nxt.delivery.total_platform_exposure = 5.0
    findings, _ = check_week(prev, nxt, stats(nxt), supply_demand(nxt))
    _assert(FindingCode.DELIVERY_EXPOSURE_SUM_MISMATCH in _codes(findings), "platform exposure sum mismatch should be flagged")


def test_sales_above_demand_flagged_per_product() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5)
    sd = supply_demand(s)
    first = sd.product_sales[0]
    first.actual_sales = first.demand + 5
    for other in sd.product_sales[1:]:
        other.actual_sales = max(0, other.actual_sales - 5)
    sd.total_sales = sum(ps.actual_sales for ps in sd.product_sales)
    findings, _ = check_week(s, s, stats(s), sd)
    hit = [f for f in findings if f.code == FindingCode.SALES_EXCEED_DEMAND]
    _assert(any(f.payload.get("product_id") == first.product_id for f in hit), f"per-product overselling should be flagged: {hit}")


# ---------------------------------------------------------------------------
# Evaluator / runner
# ---------------------------------------------------------------------------


def test_failed_action_penalty() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5)
    base = evaluate_plan(s, CandidatePlan("baseline_hold", "", ()), random.Random(99))
    bad = evaluate_plan(s, CandidatePlan("bad", "", (JoinPlatform("nope"),)), random.Random(99))
    _assert(bad.failed_actions == ["join_platform: Platform not found: nope"], f"unexpected failures: {bad.failed_actions}")
    _assert(abs((base.score - bad.score) - 700) < 1e-6, "each failed action costs 700 points")
    _assert(s.current_week == 0 and bad.state.current_week == 1, "evaluation advances a copy by one week")


def test_next_week_failure_scores_worst() -> None:
    s = create_initial_state()
    ev = evaluate_plan(s, CandidatePlan("baseline_hold", "", ()), random.Random(1))
    _assert(ev.score == -1e12 and not ev.advanced, "a week that cannot advance gets the worst score")
    _assert(len(ev.findings) == 1, "one finding for the failed advance")
    f = ev.findings[0]
    _assert(f.code == FindingCode.NEXT_WEEK_FAILED and f.severity == Severity.CRITICAL, "NEXT_WEEK_FAILED should be critical")
    _assert(f.week == 1, "finding week is the week that failed to run")


def test_seed_schedule() -> None:
    cfg = AutomationConfig.for_mode("quick", seeds_per_scenario=2, scenario_ids=["mixue_community", "tastien_office"])
    jobs = scenario_seeds(cfg)
    _assert([sid for sid, _ in jobs] == ["mixue_community"] * 2 + ["tastien_office"] * 2, "jobs ordered by scenario then seed")
    _assert(jobs[1][1] - jobs[0][1] == 9973, "seeds step by 9973")
    _assert(jobs[0][1] == 20260213 + 31 * len("mixue_community"), "run seed offset by the scenario id length")
    _assert(plan_seed(1, 0, "x", 0) != plan_seed(1, 0, "x", 1), "plan index changes the seed")
    _assert(0 <= plan_seed(2 ** 40, 5, "baseline_hold", 0) < 2 ** 32, "plan seed stays in 32 bits")


def test_run_is_deterministic() -> None:
    cfg = AutomationConfig.for_mode("quick", max_weeks=3)
    a = run_single_simulation(SCENARIOS["mixue_community"], 7, cfg)
    b = run_single_simulation(SCENARIOS["mixue_community"], 7, cfg)
    _assert(a.to_dict() == b.to_dict(), "same seed and config should give identical runs")
    _assert(a.weeks_played <= 3 and len(a.decisions) == a.weeks_played, "one decision per played week")
    for d in a.decisions:
        _assert(d.candidates[0][0] == "baseline_hold", "every week evaluates the baseline first")
        _assert(d.score == max(sc for _, sc in d.candidates), "the chosen plan has the best score")


def test_firing_only_producer_loses_to_baseline() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5).clone()
    s.staff = [m for m in s.staff if m.assigned_task == "chef"][:1]
    producer = s.staff[0]
    r = dispatch(s, FireStaff(producer.staff_id), random.Random(1))
    _assert(r.changed and not r.state.staff, f"firing should succeed: {r.error}")
    _assert(supply_demand(r.state).supply.total_supply == 0, "no producers means no supply")
    base = evaluate_plan(s, CandidatePlan("baseline_hold", "", ()), random.Random(99))
    fired = evaluate_plan(s, CandidatePlan("fire", "", (FireStaff(producer.staff_id),)), random.Random(99))
    _assert(not fired.failed_actions, f"firing should not fail: {fired.failed_actions}")
    _assert(fired.score < base.score, f"firing the only producer should score below holding: {fired.score} vs {base.score}")


def test_duplicate_join_is_a_failed_action() -> None:
    s = build_initial_state(SCENARIOS["mixue_community"], 5)
    ev = evaluate_plan(s, CandidatePlan("join_twice", "", (JoinPlatform("meituan"), JoinPlatform("meituan"))), random.Random(3))
    _assert(ev.failed_actions == ["join_platform: Already joined"], f"unexpected failures: {ev.failed_actions}")
    _assert(len(ev.state.delivery.platforms) == 1, "the first join still applies")


def test_run_averages_fulfillment() -> None:
    cfg = AutomationConfig.for_mode("quick", max_weeks=3)
    run = run_single_simulation(SCENARIOS["mixue_community"], 7, cfg)
    _assert(run.weeks_played > 0, "the run should play at least one week")
    expected = sum(d.fulfillment for d in run.decisions) / len(run.decisions)
    _assert(abs(run.avg_fulfillment - expected) < 1e-9, f"avg_fulfillment {run.avg_fulfillment} should be the weekly mean {expected}")
    _assert(0.0 <= run.avg_fulfillment <= 1.0, "average fulfillment is a rate")


def test_batch_reports_each_run_as_it_finishes() -> None:
    events = []

    def fake_run(blueprint, seed, config=None):
        events.append(("run", blueprint.scenario_id))
        return _run(blueprint.scenario_id)

    original = runner.run_single_simulation
    runner.run_single_simulation = fake_run
    try:
        cfg = AutomationConfig.for_mode("quick", workers=1, seeds_per_scenario=1, scenario_ids=["mixue_community", "tastien_office"])
        runs = runner.run_batch(cfg, on_run=lambda run, i, total: events.append(("line", run.scenario_id)))
    finally:
        runner.run_single_simulation = original
    _assert(len(runs) == 2, "one summary per job")
    _assert(events == [
        ("run", "mixue_community"), ("line", "mixue_community"),
        ("run", "tastien_office"), ("line", "tastien_office"),
    ], f"each progress line should follow its own run: {events}")


# ---------------------------------------------------------------------------
# Aggregate / alerts
# ---------------------------------------------------------------------------


def test_aggregate_rates() -> None:
    runs = [_run("a", win=True), _run("a", bankrupt=True), _run("b", bankrupt=True), _run("b", low_rise=5)]
    agg = build_aggregate_summary(runs)
    _assert(agg.total_runs == 4 and agg.wins == 1, "counts")
    _assert(agg.win_rate == 0.25 and agg.bankrupt_rate == 0.5, "rates")
    _assert(abs(agg.low_fulfillment_exposure_rise_rate - 0.125) < 1e-9, "low-rise rate averages per-run ratios")
    _assert([s.scenario_id for s in agg.scenarios] == ["a", "b"], "scenario stats keep run order")
    alerts = build_balance_alerts(runs, agg)
    codes = _codes(alerts)
    _assert(FindingCode.BANKRUPT_RATE_HIGH not in codes, "exactly 50% bankrupt is not above the threshold")
    _assert(FindingCode.DELIVERY_RANK_PENALTY_WEAK in codes, "12.5% low-rise weeks exceeds 10%")
    _assert(not has_critical(alerts), "win rate within bounds and no engine bugs")


def test_balance_alerts() -> None:
    _assert(build_balance_alerts([], build_aggregate_summary([])) == [], "empty batch raises no alerts")

    losing = [_run("a") for _ in range(4)]
    alerts = build_balance_alerts(losing, build_aggregate_summary(losing))
    low = [a for a in alerts if a.code == FindingCode.WIN_RATE_TOO_LOW]
    _assert(len(low) == 1 and low[0].severity == Severity.CRITICAL, "zero wins is a critical balance alert")
    _assert(has_critical(alerts), "critical alert should be detected")

    risky = [_run("risk_high_cost", win=True) for _ in range(3)]
    alerts = build_balance_alerts(risky, build_aggregate_summary(risky))
    codes = _codes(alerts)
    _assert(FindingCode.WIN_RATE_TOO_HIGH in codes, "all wins is too easy")
    _assert(FindingCode.RISK_SCENARIO_TOO_SAFE in codes, "winning risk scenario should be flagged")
    _assert(FindingCode.WIN_RATE_TOO_LOW not in codes, "low and high win rate are exclusive")


def test_aggregate_fulfillment_and_empty_severities() -> None:
    runs = [_run("a", fulfillment=0.9), _run("a", fulfillment=0.5), _run("b", fulfillment=0.6)]
    agg = build_aggregate_summary(runs)
    _assert(abs(agg.avg_fulfillment - (0.9 + 0.5 + 0.6) / 3) < 1e-9, f"aggregate fulfillment is the run mean: {agg.avg_fulfillment}")
    by_id = {s.scenario_id: s for s in agg.scenarios}
    _assert(abs(by_id["a"].avg_fulfillment - 0.7) < 1e-9, "scenario fulfillment averages that scenario's runs")

    empty = build_aggregate_summary([])
    _assert(empty.findings_by_severity == {"critical": 0, "warning": 0, "info": 0}, f"every severity is reported: {empty.findings_by_severity}")
    _assert(agg.findings_by_severity == {"critical": 0, "warning": 0, "info": 0}, "severities with no findings still appear")


def main() -> None:
    tests = [
        test_every_preset_opens,
        test_setup_failure_raises,
        test_candidate_plans_shape,
        test_pricing_actions_respect_bounds,
        test_cash_guard_plan,
        test_promo_off_rule_only_when_nothing_else_applies,
        test_event_and_boss_plans,
        test_fresh_store_has_no_critical_findings,
        test_negative_cash_not_ended_is_critical,
        test_range_and_idle_findings,
        test_sales_above_demand_flagged_per_product,
        test_failed_action_penalty,
        test_next_week_failure_scores_worst,
        test_seed_schedule,
        test_run_is_deterministic,
        test_firing_only_producer_loses_to_baseline,
        test_duplicate_join_is_a_failed_action,
        test_run_averages_fulfillment,
        test_batch_reports_each_run_as_it_finishes,
        test_aggregate_rates,
        test_balance_alerts,
        test_aggregate_fulfillment_and_empty_severities,
    ]
    for t in tests:
        t()
        print(f"OK  {t.__name__}")
    print(f"ALL OK ({len(tests)} tests)")


if __name__ == "__main__":
    main()
