from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from storesim.findings import AutomationFinding, Category, FindingCode, Severity, finding
from storesim.policy import AlertPolicy
from storesim.presets import SCENARIOS
from storesim.runner import RunSummary


def _avg(values: Iterable[float]) -> float:
    xs = list(values)
    return sum(xs) / len(xs) if xs else 0.0


@dataclass
class ScenarioStats:
    scenario_id: str
    name: str
    description: str
    runs: int
    wins: int
    win_rate: float
    bankrupt_rate: float
    avg_roi: float
    avg_weekly_profit: float
    avg_fulfillment: float


@dataclass
class AggregateSummary:
    total_runs: int = 0
    wins: int = 0
    win_rate: float = 0.0
    bankrupt_rate: float = 0.0
    time_limit_rate: float = 0.0
    avg_roi: float = 0.0
    avg_weekly_profit: float = 0.0
    avg_fulfillment: float = 0.0
    avg_final_cash: float = 0.0
    avg_weeks_played: float = 0.0
    dual_top_rate: float = 0.0
    low_fulfillment_exposure_rise_rate: float = 0.0
    critical_engine_findings: int = 0
    findings_by_code: Dict[str, int] = field(default_factory=dict)
    findings_by_severity: Dict[str, int] = field(default_factory=dict)
    scenarios: List[ScenarioStats] = field(default_factory=list)


def _scenario_stats(scenario_id: str, runs: List[RunSummary]) -> ScenarioStats:
    bp = SCENARIOS.get(scenario_id)
    wins = sum(1 for r in runs if r.is_win)
    return ScenarioStats(
        scenario_id=scenario_id,
        name=bp.name if bp else runs[0].scenario_name,
        description=bp.description if bp else "",
        runs=len(runs),
        wins=wins,
        win_rate=wins / len(runs),
        bankrupt_rate=sum(1 for r in runs if r.is_bankrupt) / len(runs),
        avg_roi=_avg(r.roi for r in runs),
        avg_weekly_profit=_avg(r.avg_weekly_profit for r in runs),
        avg_fulfillment=_avg(r.avg_fulfillment for r in runs),
    )


def _severity_counts(findings: List[AutomationFinding]) -> Dict[str, int]:
    counts = {s.value: 0 for s in Severity}
    for f in findings:
        counts[f.severity.value] += 1
    return counts


def build_aggregate_summary(runs: List[RunSummary]) -> AggregateSummary:
    n = len(runs)
    if n == 0:
        return AggregateSummary(findings_by_severity=_severity_counts([]))
    all_findings = [f for r in runs for f in r.findings]
    by_scenario: Dict[str, List[RunSummary]] = {}
    for r in runs:
        by_scenario.setdefault(r.scenario_id, []).append(r)

    wins = sum(1 for r in runs if r.is_win)
    return AggregateSummary(
        total_runs=n,
        wins=wins,
        win_rate=wins / n,
        bankrupt_rate=sum(1 for r in runs if r.is_bankrupt) / n,
        time_limit_rate=sum(1 for r in runs if r.game_over_reason == "time_limit") / n,
        avg_roi=_avg(r.roi for r in runs),
        avg_weekly_profit=_avg(r.avg_weekly_profit for r in runs),
        avg_fulfillment=_avg(r.avg_fulfillment for r in runs),
        avg_final_cash=_avg(r.final_cash for r in runs),
        avg_weeks_played=_avg(r.weeks_played for r in runs),
        dual_top_rate=sum(1 for r in runs if r.dual_top_by_week20) / n,
        low_fulfillment_exposure_rise_rate=_avg(
            r.low_fulfillment_exposure_rise_weeks / max(1, r.weeks_played) for r in runs
        ),
        critical_engine_findings=sum(
            1 for f in all_findings if f.severity == Severity.CRITICAL and f.category == Category.ENGINE_BUG
        ),
        findings_by_code=dict(Counter(f.code.value for f in all_findings)),
        findings_by_severity=_severity_counts(all_findings),
        scenarios=[_scenario_stats(sid, rs) for sid, rs in by_scenario.items()],
    )


def build_balance_alerts(
    runs: List[RunSummary],
    agg: AggregateSummary,
    policy: Optional[AlertPolicy] = None,
) -> List[AutomationFinding]:
    """Batch-level alerts over the aggregate. An empty batch raises none."""

    policy = policy or AlertPolicy()
    if agg.total_runs == 0:
        return []
    out: List[AutomationFinding] = []

    if agg.win_rate < policy.min_win_rate:
        out.append(finding(Severity.CRITICAL, Category.BALANCE, FindingCode.WIN_RATE_TOO_LOW, rate=agg.win_rate))
    elif agg.win_rate > policy.max_win_rate:
        out.append(finding(Severity.CRITICAL, Category.BALANCE, FindingCode.WIN_RATE_TOO_HIGH, rate=agg.win_rate))

    if agg.bankrupt_rate > policy.max_bankrupt_rate:
        out.append(finding(Severity.WARNING, Category.BALANCE, FindingCode.BANKRUPT_RATE_HIGH, rate=agg.bankrupt_rate))
    if agg.dual_top_rate > policy.max_dual_top_rate:
        out.append(finding(Severity.WARNING, Category.BALANCE, FindingCode.DUAL_TOP_TOO_FAST, rate=agg.dual_top_rate))
    if agg.low_fulfillment_exposure_rise_rate > policy.max_low_fulfillment_rise_rate:
        out.append(finding(
            Severity.WARNING, Category.BALANCE, FindingCode.DELIVERY_RANK_PENALTY_WEAK,
            suspected_module="delivery", rate=agg.low_fulfillment_exposure_rise_rate,
        ))
    if agg.critical_engine_findings > 0:
        out.append(finding(
            Severity.CRITICAL, Category.ENGINE_BUG, FindingCode.CRITICAL_ENGINE_FINDINGS,
            count=agg.critical_engine_findings,
        ))

    risky = [r for r in runs if r.scenario_id == policy.risk_scenario]
    if risky:
        rate = sum(1 for r in risky if r.is_win) / len(risky)
        if rate > policy.max_risk_win_rate:
            out.append(finding(Severity.WARNING, Category.BALANCE, FindingCode.RISK_SCENARIO_TOO_SAFE, rate=rate))
    return out


def has_critical(alerts: List[AutomationFinding]) -> bool:
    return any(a.severity == Severity.CRITICAL for a in alerts)
