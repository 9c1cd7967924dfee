from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from storesim.aggregate import AggregateSummary
from storesim.findings import AutomationFinding, Severity
from storesim.policy import AutomationConfig
from storesim.runner import RunSummary


def format_money(x: float) -> str:
    return f"{x:,.2f}"


def format_yuan(x: float) -> str:
    return f"¥{round(x):,}"


def format_percent(x: float) -> str:
    return f"{x * 100:.1f}%"


@dataclass
class AutomationReport:
    generated_at: str
    config: Dict[str, Any]
    aggregate: AggregateSummary
    balance_alerts: List[AutomationFinding] = field(default_factory=list)
    runs: List[RunSummary] = field(default_factory=list)

    @classmethod
    def build(cls, config: AutomationConfig, aggregate: AggregateSummary, alerts: List[AutomationFinding], runs: List[RunSummary]) -> AutomationReport:
        return cls(
            generated_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            config=config.to_dict(),
            aggregate=aggregate,
            balance_alerts=list(alerts),
            runs=list(runs),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "config": dict(self.config),
            "aggregate": asdict(self.aggregate),
            "balance_alerts": [a.to_dict() for a in self.balance_alerts],
            "runs": [r.to_dict() for r in self.runs],
        }


def render_markdown(report: AutomationReport) -> str:
    agg = report.aggregate
    cfg = report.config
    lines: List[str] = [
        "# 自动化平衡测试报告",
        "",
        f"- 生成时间: {report.generated_at}",
        f"- 模式: {cfg.get('mode')}",
        f"- 场景数: {len(agg.scenarios)}",
        f"- 每场景种子数: {cfg.get('seeds_per_scenario')}",
        f"- 最大周数: {cfg.get('max_weeks')}",
        "",
        "## 总体指标",
        "",
        f"- 总运行数: {agg.total_runs}",
        f"- 胜率: {format_percent(agg.win_rate)}",
        f"- 破产率: {format_percent(agg.bankrupt_rate)}",
        f"- 到期结束率: {format_percent(agg.time_limit_rate)}",
        f"- 平均 ROI: {agg.avg_roi:.1f}%",
        f"- 平均周利润: {format_yuan(agg.avg_weekly_profit)}",
        f"- 平均满足率: {format_percent(agg.avg_fulfillment)}",
        f"- 平均期末现金: {format_yuan(agg.avg_final_cash)}",
        f"- 第20周双高占比: {format_percent(agg.dual_top_rate)}",
        f"- 低履约曝光上涨周占比: {format_percent(agg.low_fulfillment_exposure_rise_rate)}",
        f"- 关键引擎异常: {agg.critical_engine_findings}",
        "",
        "## 高优先级告警",
        "",
    ]
    if report.balance_alerts:
        for a in report.balance_alerts:
            lines.append(f"- [{a.severity.value}] {a.code.value}: {a.message}")
    else:
        lines.append("- 无")

    lines += ["", "## 场景结果", ""]
    for s in agg.scenarios:
        lines += [
            f"### {s.name}",
            "",
            f"- 描述: {s.description}",
            f"- 胜率: {format_percent(s.win_rate)} ({s.wins}/{s.runs})",
            f"- 破产率: {format_percent(s.bankrupt_rate)}",
            f"- 平均 ROI: {s.avg_roi:.1f}%",
            f"- 平均周利润: {format_yuan(s.avg_weekly_profit)}",
            f"- 平均满足率: {format_percent(s.avg_fulfillment)}",
            "",
        ]

    lines += ["## 异常统计", ""]
    if agg.findings_by_code:
        for code, n in sorted(agg.findings_by_code.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"- {code}: {n}")
    else:
        lines.append("- 无")
    lines.append("")
    return "\n".join(lines)


def print_run_line(run: RunSummary, index: int, total: int) -> None:
    outcome = run.game_over_reason or run.final_phase
    print(
        f"[{index}/{total}] {run.scenario_id} seed={run.seed} weeks={run.weeks_played} "
        f"result={outcome} cash={format_money(run.final_cash)} roi={run.roi:.1f}% fulfillment={format_percent(run.avg_fulfillment)}"
    )


def print_headline(report: AutomationReport) -> None:
    agg = report.aggregate
    critical = sum(1 for a in report.balance_alerts if a.severity == Severity.CRITICAL)
    print(
        f"winRate={format_percent(agg.win_rate)} bankruptRate={format_percent(agg.bankrupt_rate)} "
        f"criticalFindings={agg.critical_engine_findings} criticalAlerts={critical}"
    )
