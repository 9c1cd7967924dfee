from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class Category(str, Enum):
    ENGINE_BUG = "engine_bug"
    BALANCE = "balance"
    OPERATION = "operation"


class FindingCode(str, Enum):
    # per-week invariants
    NEXT_WEEK_FAILED = "NEXT_WEEK_FAILED"
    NON_FINITE_NUMBER = "NON_FINITE_NUMBER"
    EXPOSURE_OUT_OF_RANGE = "EXPOSURE_OUT_OF_RANGE"
    REPUTATION_OUT_OF_RANGE = "REPUTATION_OUT_OF_RANGE"
    GROWTH_SYSTEM_OUT_OF_RANGE = "GROWTH_SYSTEM_OUT_OF_RANGE"
    DELIVERY_EXPOSURE_SUM_MISMATCH = "DELIVERY_EXPOSURE_SUM_MISMATCH"
    SUMMARY_WEEK_MISMATCH = "SUMMARY_WEEK_MISMATCH"
    SUMMARY_CASH_MISMATCH = "SUMMARY_CASH_MISMATCH"
    TOTAL_SALES_MISMATCH = "TOTAL_SALES_MISMATCH"
    TOTAL_REVENUE_MISMATCH = "TOTAL_REVENUE_MISMATCH"
    SALES_EXCEED_DEMAND = "SALES_EXCEED_DEMAND"
    LOW_FULFILLMENT_BUT_EXPOSURE_RISE = "LOW_FULFILLMENT_BUT_EXPOSURE_RISE"
    IDLE_EXPOSURE_SPIKE = "IDLE_EXPOSURE_SPIKE"
    NEGATIVE_CASH_NOT_ENDED = "NEGATIVE_CASH_NOT_ENDED"
    # batch balance alerts
    WIN_RATE_TOO_LOW = "WIN_RATE_TOO_LOW"
    WIN_RATE_TOO_HIGH = "WIN_RATE_TOO_HIGH"
    BANKRUPT_RATE_HIGH = "BANKRUPT_RATE_HIGH"
    DUAL_TOP_TOO_FAST = "DUAL_TOP_TOO_FAST"
    DELIVERY_RANK_PENALTY_WEAK = "DELIVERY_RANK_PENALTY_WEAK"
    CRITICAL_ENGINE_FINDINGS = "CRITICAL_ENGINE_FINDINGS"
    RISK_SCENARIO_TOO_SAFE = "RISK_SCENARIO_TOO_SAFE"


# message templates are rendered with str.format(**payload)
MESSAGES: Dict[FindingCode, str] = {
    FindingCode.NEXT_WEEK_FAILED: "next_week 执行失败: {error}",
    FindingCode.NON_FINITE_NUMBER: "{label} 出现非有限数值: {value}",
    FindingCode.EXPOSURE_OUT_OF_RANGE: "exposure 越界: {value}",
    FindingCode.REPUTATION_OUT_OF_RANGE: "reputation 越界: {value}",
    FindingCode.GROWTH_SYSTEM_OUT_OF_RANGE: "{label} 越界: {value} (期望 {min}-{max})",
    FindingCode.DELIVERY_EXPOSURE_SUM_MISMATCH: "delivery.total_platform_exposure 与平台曝光和不一致，差值 {gap:.2f}",
    FindingCode.SUMMARY_WEEK_MISMATCH: "weekly_summary.week={summary_week} 与 current_week={current_week} 不一致",
    FindingCode.SUMMARY_CASH_MISMATCH: "weekly_summary.cash_remaining={summary_cash} 与 state.cash={cash} 不一致",
    FindingCode.TOTAL_SALES_MISMATCH: "total_sales 不一致: 明细和={detail}, 汇总={total}",
    FindingCode.TOTAL_REVENUE_MISMATCH: "total_revenue 不一致: 明细和={detail}, 汇总={total}",
    FindingCode.SALES_EXCEED_DEMAND: "销量超过需求: sales={sales}, demand={demand}",
    FindingCode.LOW_FULFILLMENT_BUT_EXPOSURE_RISE: "低履约周仍出现明显平台曝光正增长，平台分发惩罚可能偏弱。",
    FindingCode.IDLE_EXPOSURE_SPIKE: "长期不操作时曝光仍大幅上涨 (Δ{delta:.2f})，可能存在自动增长偏置。",
    FindingCode.NEGATIVE_CASH_NOT_ENDED: "现金低于破产线但游戏未结束: cash={cash}",
    FindingCode.WIN_RATE_TOO_LOW: "总体胜率仅 {rate:.1%}，难度偏高。",
    FindingCode.WIN_RATE_TOO_HIGH: "总体胜率达 {rate:.1%}，难度偏低。",
    FindingCode.BANKRUPT_RATE_HIGH: "破产率 {rate:.1%} 过高，可能存在开局挫败感。",
    FindingCode.DUAL_TOP_TOO_FAST: "第20周曝光/口碑双高占比 {rate:.1%}，成长可能过快。",
    FindingCode.DELIVERY_RANK_PENALTY_WEAK: "低履约周平台曝光仍上涨占比 {rate:.1%}，排序惩罚可能偏弱。",
    FindingCode.CRITICAL_ENGINE_FINDINGS: "检测到 {count} 条关键引擎异常，需优先修复。",
    FindingCode.RISK_SCENARIO_TOO_SAFE: "高风险压力场景胜率 {rate:.1%}，风险惩罚可能不足。",
}


@dataclass(frozen=True)
class AutomationFinding:
    """One observed fact about a simulated week (or a batch of runs).

    The payload holds the numbers behind the finding; the human message is
    rendered from it on demand, so the payload stays the source of truth.
    """

    severity: Severity
    category: Category
    code: FindingCode
    payload: Dict[str, Any] = field(default_factory=dict)
    suspected_module: Optional[str] = None
    week: Optional[int] = None

    @property
    def message(self) -> str:
        return MESSAGES[self.code].format(**self.payload)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "severity": self.severity.value,
            "category": self.category.value,
            "code": self.code.value,
            "message": self.message,
            "payload": dict(self.payload),
        }
        if self.suspected_module is not None:
            d["suspected_module"] = self.suspected_module
        if self.week is not None:
            d["week"] = self.week
        return d


def finding(
    severity: Severity,
    category: Category,
    code: FindingCode,
    suspected_module: Optional[str] = None,
    week: Optional[int] = None,
    **payload: Any,
) -> AutomationFinding:
    return AutomationFinding(severity, category, code, payload, suspected_module, week)
