from __future__ import annotations

import random
import zlib
from dataclasses import asdict, dataclass, field
from multiprocessing import Pool, cpu_count
from typing import Any, Callable, Dict, List, Optional, Tuple

from storesim.actions import action_to_dict
from storesim.evaluator import PlanEvaluation, evaluate_plan
from storesim.findings import AutomationFinding
from storesim.planner import build_candidate_plans
from storesim.policy import AutomationConfig
from storesim.presets import SCENARIOS, SetupBlueprint, build_initial_state
from storesim.query import game_result


@dataclass
class DecisionSnapshot:
    week: int
    plan_id: str
    rationale: str
    score: float
    actions: List[Dict[str, Any]] = field(default_factory=list)
    failed_actions: List[str] = field(default_factory=list)
    candidates: List[Tuple[str, float]] = field(default_factory=list)
    cash: float = 0.0
    profit: float = 0.0
    fulfillment: float = 1.0
    exposure: float = 0.0
    reputation: float = 0.0


@dataclass
class RunSummary:
    scenario_id: str
    scenario_name: str
    seed: int
    weeks_played: int
    final_phase: str
    game_over_reason: Optional[str]
    is_win: bool
    is_bankrupt: bool
    final_cash: float
    cumulative_profit: float
    total_investment: float
    roi: float  # percent
    avg_weekly_profit: float
    avg_fulfillment: float
    final_exposure: float
    final_reputation: float
    cognition_level: int
    dual_top_by_week20: bool = False
    low_fulfillment_exposure_rise_weeks: int = 0
    findings: List[AutomationFinding] = field(default_factory=list)
    decisions: List[DecisionSnapshot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["findings"] = [f.to_dict() for f in self.findings]
        return d


def plan_seed(seed: int, week: int, plan_id: str, index: int) -> int:
    return (seed + (week + 1) * 131 + zlib.crc32(f"{plan_id}_{index}".encode("utf-8"))) % (2 ** 32)


def _best(evals: List[PlanEvaluation]) -> PlanEvaluation:
    best = evals[0]
    for ev in evals[1:]:
        if ev.score > best.score:
            best = ev
    return best


def run_single_simulation(blueprint: SetupBlueprint, seed: int, config: Optional[AutomationConfig] = None) -> RunSummary:
    """Play one scenario greedily: each week, simulate every candidate plan and keep the best.

    Deterministic for a given (blueprint, seed, config).
    """

    config = config or AutomationConfig()
    state = build_initial_state(blueprint, seed)
    findings: List[AutomationFinding] = []
    decisions: List[DecisionSnapshot] = []
    low_rise_weeks = 0
    dual_top = False
    profits: List[float] = []
    fulfillment_sum = 0.0
    weeks = 0

    while state.phase == "operating" and weeks < config.max_weeks:
        plans = build_candidate_plans(state, config.planner)
        evals = [
            evaluate_plan(
                state, plan, random.Random(plan_seed(seed, state.current_week, plan.plan_id, i)),
                config.scoring, config.invariants,
            )
            for i, plan in enumerate(plans)
        ]
        best = _best(evals)
        findings.extend(best.findings)
        if not best.advanced:
            break

        state = best.state
        weeks += 1
        fulfillment_sum += best.fulfillment_after
        if best.low_fulfillment_rise:
            low_rise_weeks += 1
        if state.weekly_summary is not None:
            profits.append(state.weekly_summary.profit)
        a = config.alerts
        if (
            state.current_week == a.dual_top_week
            and state.exposure >= a.dual_top_threshold
            and state.reputation >= a.dual_top_threshold
        ):
            dual_top = True
        decisions.append(
            DecisionSnapshot(
                week=state.current_week,
                plan_id=best.plan.plan_id,
                rationale=best.plan.rationale,
                score=best.score,
                actions=[action_to_dict(x) for x in best.plan.actions],
                failed_actions=list(best.failed_actions),
                candidates=[(ev.plan.plan_id, ev.score) for ev in evals],
                cash=state.cash,
                profit=best.profit,
                fulfillment=best.fulfillment_after,
                exposure=state.exposure,
                reputation=state.reputation,
            )
        )

    result = game_result(state)
    reason = state.game_over_reason if state.phase == "ended" else None
    return RunSummary(
        scenario_id=blueprint.scenario_id,
        scenario_name=blueprint.name,
        seed=seed,
        weeks_played=weeks,
        final_phase=state.phase,
        game_over_reason=reason,
        is_win=bool(result and result.is_win),
        is_bankrupt=reason == "bankrupt",
        final_cash=state.cash,
        cumulative_profit=state.cumulative_profit,
        total_investment=state.total_investment,
        roi=state.cumulative_profit / state.total_investment * 100 if state.total_investment > 0 else 0.0,
        avg_weekly_profit=sum(profits) / len(profits) if profits else 0.0,
        avg_fulfillment=fulfillment_sum / weeks if weeks > 0 else 0.0,
        final_exposure=state.exposure,
        final_reputation=state.reputation,
        cognition_level=state.cognition.level,
        dual_top_by_week20=dual_top,
        low_fulfillment_exposure_rise_weeks=low_rise_weeks,
        findings=findings,
        decisions=decisions,
    )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


def scenario_seeds(config: AutomationConfig) -> List[Tuple[str, int]]:
    ids = config.scenario_ids or list(SCENARIOS)
    jobs = []
    for sid in ids:
        if sid not in SCENARIOS:
            raise KeyError(f"unknown scenario: {sid}")
        for i in range(config.seeds_per_scenario):
            seed = config.base_seed + i * 9973
            jobs.append((sid, seed + 31 * len(sid)))
    return jobs


def _run_job(args: Tuple[str, int, AutomationConfig]) -> RunSummary:
    sid, seed, config = args
    return run_single_simulation(SCENARIOS[sid], seed, config)


def run_batch(
    config: AutomationConfig,
    on_run: Optional[Callable[[RunSummary, int, int], None]] = None,
) -> List[RunSummary]:
    """Every (scenario, seed) pair, ordered by scenario then seed regardless of worker count.

    `on_run(run, index, total)` fires as each run completes, in job order.
    """

    jobs = [(sid, seed, config) for sid, seed in scenario_seeds(config)]
    runs: List[RunSummary] = []

    def collect(run: RunSummary) -> None:
        runs.append(run)
        if on_run is not None:
            on_run(run, len(runs), len(jobs))

    if config.workers <= 1 or len(jobs) <= 1:
        for j in jobs:
            collect(_run_job(j))
        return runs
    with Pool(min(config.workers, cpu_count(), len(jobs))) as pool:
        for run in pool.imap(_run_job, jobs):
            collect(run)
    return runs
