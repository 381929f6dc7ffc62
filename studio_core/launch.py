"""
studio_core.launch
Release guardrails, launch scoring, post-launch sales and run-terminal rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .balance import GameConfig
from .state import GameState, clamp, floor_int, round2


def is_release_available(state: GameState, config: GameConfig) -> bool:
    if state.run.status != "active":
        return False
    if state.project.released:
        return False

    req = config.release_guardrails
    return (
        state.project.completion >= req.min_completion
        and state.project.quality >= req.min_quality
        and state.run.week >= req.min_week
        and state.resources.cash >= req.min_cash
    )


@dataclass(frozen=True)
class LaunchResult:
    product_strength: float
    outcome: str
    week_sales: int
    refunds: int
    delta: float


def product_strength(
    *,
    completion: float,
    scope_target: float,
    quality: float,
    bug_backlog: int,
    morale: float,
    config: GameConfig,
) -> float:
    w = config.launch.product_strength
    completion_ratio = clamp(completion / scope_target, 0, w.completion_ratio_cap) if scope_target > 0 else 0
    bug_quality_term = max(0, w.bug_quality_base - min(w.bug_quality_base, bug_backlog * w.bug_penalty_factor))
    return (
        completion_ratio * w.completion_weight
        + quality * w.quality_weight
        + bug_quality_term
        + morale * w.morale_weight
    )


def classify_launch(strength: float, hype: float, config: GameConfig) -> str:
    o = config.launch.outcomes
    delta = strength - hype
    if delta >= o.miracle_delta_threshold:
        return "miracle"
    if delta <= o.scam_delta_threshold:
        return "scam"
    if strength >= o.hidden_gem_product_strength_threshold and hype < o.hidden_gem_hype_ceiling:
        return "hiddenGem"
    return "mixedFair"


def run_launch_check(
    *,
    completion: float,
    scope_target: float,
    quality: float,
    bug_backlog: int,
    morale: float,
    hype: float,
    config: GameConfig,
) -> LaunchResult:
    """Score the product against hype and price the launch week."""
    launch = config.launch
    strength = product_strength(
        completion=completion,
        scope_target=scope_target,
        quality=quality,
        bug_backlog=bug_backlog,
        morale=morale,
        config=config,
    )
    outcome = classify_launch(strength, hype, config)

    multiplier = launch.sales_multiplier.get(outcome, 1.0)
    refund_penalty = launch.base_sales * launch.refund_penalty_rate_scam if outcome == "scam" else 0
    week_sales = max(0, floor_int(launch.base_sales * multiplier - refund_penalty))

    return LaunchResult(
        product_strength=round2(strength),
        outcome=outcome,
        week_sales=week_sales,
        refunds=floor_int(refund_penalty),
        delta=round2(strength - hype),
    )


def post_launch_week_sales(outcome: Optional[str], week_index: int, config: GameConfig) -> int:
    """Sales for post-launch week `week_index` (1-based) of a locked-in outcome.

    hiddenGem grows for growth_weeks, then decays; everything else decays from
    week 1. All curves are floored at floor_multiplier * base_sales.
    """
    launch = config.launch
    curves = launch.weekly_post_launch_sales
    curve = curves.get(outcome or "", curves["mixedFair"])
    base = launch.base_sales
    floor_value = base * curve.floor_multiplier

    if outcome == "hiddenGem":
        if week_index <= curve.growth_weeks:
            growth = 1 + curve.growth_per_week * (week_index - 1)
            return floor_int(max(floor_value, base * curve.base_multiplier * growth))

        grown = base * curve.base_multiplier * (1 + curve.growth_per_week * (curve.growth_weeks - 1))
        decayed = grown * curve.decay_after_growth ** (week_index - curve.growth_weeks)
        return floor_int(max(floor_value, decayed))

    decayed = base * curve.base_multiplier * curve.decay ** max(0, week_index - 1)
    return floor_int(max(floor_value, decayed))


@dataclass(frozen=True)
class TerminalCheck:
    is_terminal: bool
    type: Optional[str] = None  # insolvency | mutiny | delisting | success
    message: Optional[str] = None

    @property
    def status(self) -> Optional[str]:
        if not self.is_terminal:
            return None
        return "won" if self.type == "success" else "failed"


NOT_TERMINAL = TerminalCheck(is_terminal=False)


def evaluate_terminal_states(
    *,
    cash_negative_streak: int,
    morale_below20_streak: int,
    released: bool,
    product_strength: float,
    post_launch_non_negative_cash_streak: int,
    config: GameConfig,
) -> TerminalCheck:
    """First matching rule wins, in this order."""
    t = config.terminal
    if cash_negative_streak >= t.insolvency_weeks:
        return TerminalCheck(
            True,
            "insolvency",
            f"Cash remained below zero for {t.insolvency_weeks} consecutive weeks.",
        )

    if morale_below20_streak >= t.mutiny_weeks:
        return TerminalCheck(
            True,
            "mutiny",
            f"Morale stayed below {t.morale_floor:g} for {t.mutiny_weeks} consecutive weeks.",
        )

    if released and product_strength < t.delisting_strength:
        return TerminalCheck(
            True,
            "delisting",
            "Product strength dropped below platform minimum visibility threshold.",
        )

    if released and post_launch_non_negative_cash_streak >= t.required_post_launch_weeks:
        return TerminalCheck(
            True,
            "success",
            "Studio remained solvent through post-launch stabilization window.",
        )

    return NOT_TERMINAL
