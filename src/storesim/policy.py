from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_BASE_SEED = 20260213
DEFAULT_OUT_DIR = "output/automation-smart"


@dataclass(frozen=True)
class ScoringPolicy:
    """Weights of the one-week plan score. Terminal outcomes dominate everything else."""

    profit: float = 9.0
    cash: float = 0.04
    fulfillment: float = 2200.0
    reputation: float = 75.0
    exposure: float = 45.0
    launch_progress: float = 24.0
    trust_confidence: float = 800.0
    cumulative_profit: float = 0.6
    loss_extra: float = 8.0  # applied again on negative profit
    failed_action_penalty: float = 700.0
    critical_finding_penalty: float = 1200.0
    terminal_bonus: float = 1e9
    next_week_failed_score: float = -1e12


@dataclass(frozen=True)
class PlannerPolicy:
    # pricing
    top_products: int = 4
    min_cost_markup: float = 1.3
    min_price: float = 3.0
    max_reference_markup: float = 1.35
    min_price_step: float = 0.8
    margin_raise: float = 1.06
    margin_overpriced: float = 1.15  # × reference
    margin_cut: float = 0.98
    stimulus_cut: float = 0.94
    stimulus_reference: float = 0.96
    balanced_raise: float = 1.05
    balanced_overpriced: float = 1.03
    balanced_cut: float = 0.97
    # staffing
    low_fulfillment_extra_chef: float = 0.78
    marketer_exposure_below: float = 38.0
    cleaner_cleanliness_below: float = 55.0
    manager_min_staff: int = 4
    manager_reputation_below: float = 60.0
    max_task_changes: int = 5
    # restock
    aggressive_below: float = 0.8
    conservative_above: float = 0.97
    # marketing
    social_exposure_below: float = 35.0
    social_min_cash: float = 2500.0
    ingredient_reputation_below: float = 45.0
    ingredient_min_cash: float = 1200.0
    training_reputation_below: float = 40.0
    training_min_cash: float = 1500.0
    consult_below_level: int = 2
    consult_min_cash: float = 3000.0
    consult_every_weeks: int = 3
    stop_marketing_profit_below: float = -3500.0
    stop_marketing_cash_below: float = 8000.0
    max_marketing_actions: int = 3
    # delivery
    first_platform_level: int = 2
    first_platform_cash: float = 12000.0
    second_platform_level: int = 3
    second_platform_cash: float = 22000.0
    leave_after_weeks: int = 10
    leave_exposure_below: float = 2.0
    promo_off_fulfillment_below: float = 0.75
    basic_exposure_below: float = 8.0
    basic_min_cash: float = 10000.0
    advanced_exposure_below: float = 18.0
    advanced_min_profit: float = 1800.0
    advanced_min_cash: float = 22000.0
    promo_off_profit_below: float = -2500.0
    promo_off_cash_below: float = 7000.0
    max_delivery_actions: int = 4
    # boss and staff care
    dinner_min_cash: float = 15000.0
    investigate_min_cash: float = 6000.0
    retention_method: str = "bonus"
    team_meal_morale_below: float = 55.0
    team_meal_min_cash: float = 8000.0


@dataclass(frozen=True)
class InvariantPolicy:
    low_fulfillment: float = 0.65
    weight_gain: float = 0.8
    idle_weeks: int = 3
    idle_exposure_rise: float = 3.5
    bankrupt_line: float = -5000.0
    growth_tolerance: float = 1e-6
    platform_sum_tolerance: float = 0.8
    summary_cash_tolerance: float = 0.5
    sales_tolerance: float = 0.5
    revenue_tolerance: float = 1.0


@dataclass(frozen=True)
class AlertPolicy:
    min_win_rate: float = 0.15
    max_win_rate: float = 0.75
    max_bankrupt_rate: float = 0.5
    max_dual_top_rate: float = 0.2
    max_low_fulfillment_rise_rate: float = 0.1
    risk_scenario: str = "risk_high_cost"
    max_risk_win_rate: float = 0.35
    dual_top_week: int = 20
    dual_top_threshold: float = 95.0


@dataclass
class AutomationConfig:
    mode: str = "quick"  # quick|full
    max_weeks: int = 40
    seeds_per_scenario: int = 3
    base_seed: int = DEFAULT_BASE_SEED
    out_dir: Path = field(default_factory=lambda: Path(DEFAULT_OUT_DIR))
    workers: int = 1
    scenario_ids: Optional[list] = None  # None = every preset
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)
    planner: PlannerPolicy = field(default_factory=PlannerPolicy)
    invariants: InvariantPolicy = field(default_factory=InvariantPolicy)
    alerts: AlertPolicy = field(default_factory=AlertPolicy)

    @classmethod
    def for_mode(cls, mode: str, **overrides) -> AutomationConfig:
        mode = "full" if str(mode).lower() == "full" else "quick"
        weeks, seeds = (52, 8) if mode == "full" else (40, 3)
        cfg = cls(mode=mode, max_weeks=weeks, seeds_per_scenario=seeds)
        for k, v in overrides.items():
            if v is not None:
                setattr(cfg, k, v)
        return cfg

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "max_weeks": self.max_weeks,
            "seeds_per_scenario": self.seeds_per_scenario,
            "base_seed": self.base_seed,
            "workers": self.workers,
        }
