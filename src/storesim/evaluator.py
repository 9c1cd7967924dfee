from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional

from storesim.actions import NextWeek, dispatch
from storesim.findings import AutomationFinding, Category, FindingCode, Severity, finding
from storesim.invariants import check_week
from storesim.models import GameState
from storesim.planner import CandidatePlan
from storesim.policy import InvariantPolicy, ScoringPolicy
from storesim.query import stats, supply_demand


@dataclass
class PlanEvaluation:
    plan: CandidatePlan
    score: float
    state: GameState  # state after the simulated week (or the pre-advance state on failure)
    failed_actions: List[str] = field(default_factory=list)
    findings: List[AutomationFinding] = field(default_factory=list)
    low_fulfillment_rise: bool = False
    profit: float = 0.0
    fulfillment_before: float = 1.0
    fulfillment_after: float = 1.0
    advanced: bool = True


def score_state(state: GameState, profit: float, fulfillment: float, failed: int, critical: int, policy: ScoringPolicy) -> float:
    g = state.growth
    score = (
        profit * policy.profit
        + state.cash * policy.cash
        + fulfillment * policy.fulfillment
        + state.reputation * policy.reputation
        + state.exposure * policy.exposure
        + g.launch_progress * policy.launch_progress
        + g.trust_confidence * policy.trust_confidence
        + state.cumulative_profit * policy.cumulative_profit
    )
    if profit < 0:
        score += profit * policy.loss_extra
    score -= failed * policy.failed_action_penalty
    if state.phase == "ended" and state.game_over_reason == "bankrupt":
        score -= policy.terminal_bonus
    if state.phase == "ended" and state.game_over_reason == "win":
        score += policy.terminal_bonus
    score -= critical * policy.critical_finding_penalty
    return score


def evaluate_plan(
    state: GameState,
    plan: CandidatePlan,
    rng: random.Random,
    scoring: Optional[ScoringPolicy] = None,
    invariants: Optional[InvariantPolicy] = None,
) -> PlanEvaluation:
    """Apply a plan's actions, simulate one week, check invariants and score the outcome.

    The input state is never mutated. Rejected actions are recorded as
    "<type>: <error>" and penalised; a week that cannot be advanced scores
    as the worst possible outcome.
    """

    scoring = scoring or ScoringPolicy()
    sd_before = supply_demand(state)
    f_before = sd_before.fulfillment_rate if sd_before is not None else 1.0

    cur = state
    failed: List[str] = []
    for action in plan.actions:
        result = dispatch(cur, action, rng)
        if result.changed:
            cur = result.state
        else:
            failed.append(f"{action.type}: {result.error}")

    error: Optional[str] = None
    try:
        result = dispatch(cur, NextWeek(), rng)
        if not result.changed:
            error = result.error
    except (ArithmeticError, ValueError, KeyError, TypeError) as e:
        error = f"{type(e).__name__}: {e}"
    if error is not None:
        f = finding(
            Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.NEXT_WEEK_FAILED,
            suspected_module="engine", week=state.current_week + 1, error=error,
        )
        return PlanEvaluation(
            plan=plan,
            score=scoring.next_week_failed_score,
            state=cur,
            failed_actions=failed,
            findings=[f],
            fulfillment_before=f_before,
            fulfillment_after=f_before,
            advanced=False,
        )

    nxt = result.state
    sd_after = supply_demand(nxt)
    after = stats(nxt, sd_after) if sd_after is not None else stats(nxt)
    f_after = sd_after.fulfillment_rate if sd_after is not None else 1.0
    found, low_rise = check_week(cur, nxt, after, sd_after, invariants)
    critical = sum(1 for x in found if x.severity == Severity.CRITICAL)
    return PlanEvaluation(
        plan=plan,
        score=score_state(nxt, after.profit, f_after, len(failed), critical, scoring),
        state=nxt,
        failed_actions=failed,
        findings=found,
        low_fulfillment_rise=low_rise,
        profit=after.profit,
        fulfillment_before=f_before,
        fulfillment_after=f_after,
    )
