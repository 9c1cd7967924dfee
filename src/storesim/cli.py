from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import List, Optional

from storesim.aggregate import build_aggregate_summary, build_balance_alerts, has_critical
from storesim.policy import DEFAULT_BASE_SEED, DEFAULT_OUT_DIR, AutomationConfig
from storesim.presets import SCENARIOS
from storesim.protocol import AgentSession, serve
from storesim.reporting import AutomationReport, print_headline, print_run_line
from storesim.runner import RunSummary, run_batch
from storesim.storage import write_report

EXIT_OK = 0
EXIT_CRITICAL = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storesim", description="门店经营模拟：自动化平衡测试 / agent 协议")
    parser.add_argument("--mode", choices=["quick", "full"], default="quick", help="quick=40周×3种子, full=52周×8种子")
    parser.add_argument("--weeks", type=int, default=None, help="每局最大周数（覆盖模式默认值）")
    parser.add_argument("--seeds", type=int, default=None, help="每个场景的种子数（覆盖模式默认值）")
    parser.add_argument("--seed", type=int, default=DEFAULT_BASE_SEED, help="基础随机种子")
    parser.add_argument("--out", type=str, default=DEFAULT_OUT_DIR, help="报告输出目录")
    parser.add_argument("--workers", type=int, default=1, help="并行进程数")
    parser.add_argument("--scenario", action="append", default=None, choices=sorted(SCENARIOS), help="只跑指定场景，可重复")

    sub = parser.add_subparsers(dest="command")
    agent = sub.add_parser("agent", help="按行读写 JSON 的 agent 模式")
    agent.add_argument("--seed", type=int, default=None, dest="agent_seed", help="游戏随机种子")
    return parser


def config_from_args(args: argparse.Namespace) -> AutomationConfig:
    return AutomationConfig.for_mode(
        args.mode,
        max_weeks=args.weeks,
        seeds_per_scenario=args.seeds,
        base_seed=args.seed,
        out_dir=Path(args.out),
        workers=max(1, args.workers),
        scenario_ids=args.scenario,
    )


def run_automation(config: AutomationConfig) -> int:
    """Run the batch, write report.json/report.md, return the process exit code."""

    scenario_count = len(config.scenario_ids or SCENARIOS)
    print(f"mode={config.mode} scenarios={scenario_count} seeds={config.seeds_per_scenario} weeks={config.max_weeks}")
    t0 = time.time()
    runs: List[RunSummary] = run_batch(config, on_run=print_run_line)

    agg = build_aggregate_summary(runs)
    alerts = build_balance_alerts(runs, agg, config.alerts)
    report = AutomationReport.build(config, agg, alerts, runs)
    json_path, md_path = write_report(report, config.out_dir)

    print(f"report(json): {json_path}")
    print(f"report(md):   {md_path}")
    print_headline(report)
    print(f"done in {time.time() - t0:.1f}s")
    return EXIT_CRITICAL if has_critical(alerts) else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "agent":
        return serve(AgentSession(args.agent_seed))
    return run_automation(config_from_args(args))
