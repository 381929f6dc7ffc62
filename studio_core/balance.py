"""
studio_core.balance
Balance specifications (formula constants, ranges, guardrails).

Kept in core so balancing lives in one place. The engine never reads these
as globals: a GameConfig value is passed into every formula explicitly.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple


@dataclass(frozen=True)
class DeveloperSpec:
    id: str
    name: str
    base_cp: float
    salary: int


@dataclass(frozen=True)
class StartingValues:
    cash: int = 220_000
    morale: float = 70
    tech_debt: float = 8
    bug_backlog: int = 4
    hype: float = 10
    reputation: float = 20
    quality: float = 30
    completion: float = 0
    scope_target: float = 120


@dataclass(frozen=True)
class Economy:
    office_rent_per_week: int = 4_000
    marketing_extra_spend_per_cp: float = 0


@dataclass(frozen=True)
class Ranges:
    morale_min: float = 0
    morale_max: float = 100
    debt_min: float = 0
    debt_max: float = 100
    quality_min: float = 0
    quality_max: float = 100
    hype_min: float = 0
    hype_max: float = 200
    reputation_min: float = 0
    reputation_max: float = 100


@dataclass(frozen=True)
class CapacityFormula:
    morale_base: float = 0.6
    morale_per_point: float = 0.006
    debt_weight: float = 0.75
    debt_floor: float = 0.25


@dataclass(frozen=True)
class MoraleFormula:
    base_decay_per_week: float = 2
    clean_build_bonus: float = 1
    failed_build_penalty: float = 5
    crunch_streak_penalty_per_week: float = 2


@dataclass(frozen=True)
class DebtFormula:
    feature_rush_threshold: float = 0.8
    feature_rush_multiplier: float = 25
    qa_share_floor: float = 0.1
    qa_penalty_multiplier: float = 20
    complexity_ratio_threshold: float = 6
    complexity_flat_gain: float = 1.5
    refactor_base_efficiency: float = 0.35


@dataclass(frozen=True)
class BugFormula:
    generation_base: float = 0.08
    generation_debt_divisor: float = 250
    fix_per_qa_cp: float = 0.55
    feature_bug_pressure_cap: float = 0.3
    feature_bug_pressure_divisor: float = 200


@dataclass(frozen=True)
class QualityFormula:
    qa_contribution: float = 0.2
    feature_contribution: float = 0.03
    high_debt_decay_threshold: float = 35
    high_debt_decay_value: float = 1


@dataclass(frozen=True)
class HypeFormula:
    cp_to_hype: float = 1.2
    no_marketing_decay: float = 3


@dataclass(frozen=True)
class StabilityFormula:
    debt_penalty: float = 0.9
    bug_penalty: float = 0.6
    bug_penalty_cap: float = 40
    qa_share_bonus_factor: float = 20
    clean_threshold: float = 70
    warning_threshold: float = 40
    ghost_task_scope: float = 1.5


@dataclass(frozen=True)
class ProductStrengthWeights:
    completion_weight: float = 60
    quality_weight: float = 0.3
    morale_weight: float = 0.1
    bug_quality_base: float = 20
    bug_penalty_factor: float = 0.4
    completion_ratio_cap: float = 1.2


@dataclass(frozen=True)
class LaunchOutcomeThresholds:
    miracle_delta_threshold: float = 15
    scam_delta_threshold: float = -15
    hidden_gem_product_strength_threshold: float = 70
    hidden_gem_hype_ceiling: float = 55


@dataclass(frozen=True)
class PostLaunchCurve:
    """Weekly sales shape after launch.

    growth_per_week/growth_weeks/decay_after_growth only matter for hiddenGem.
    """

    base_multiplier: float
    decay: float = 0.85
    floor_multiplier: float = 0.1
    growth_per_week: float = 0.0
    growth_weeks: int = 0
    decay_after_growth: float = 1.0


def _default_sales_multiplier() -> Dict[str, float]:
    return {"miracle": 2.2, "mixedFair": 1.0, "hiddenGem": 0.8, "scam": 0.5}


def _default_post_launch() -> Dict[str, PostLaunchCurve]:
    return {
        "miracle": PostLaunchCurve(base_multiplier=1.1, decay=0.88, floor_multiplier=0.2),
        "mixedFair": PostLaunchCurve(base_multiplier=0.8, decay=0.85, floor_multiplier=0.15),
        "hiddenGem": PostLaunchCurve(
            base_multiplier=0.65,
            growth_per_week=0.1,
            growth_weeks=4,
            decay_after_growth=0.9,
            floor_multiplier=0.2,
        ),
        "scam": PostLaunchCurve(base_multiplier=0.45, decay=0.75, floor_multiplier=0.1),
    }


@dataclass(frozen=True)
class LaunchFormula:
    base_sales: int = 30_000
    product_strength: ProductStrengthWeights = field(default_factory=ProductStrengthWeights)
    outcomes: LaunchOutcomeThresholds = field(default_factory=LaunchOutcomeThresholds)
    sales_multiplier: Dict[str, float] = field(default_factory=_default_sales_multiplier)
    refund_penalty_rate_scam: float = 0.25
    weekly_post_launch_sales: Dict[str, PostLaunchCurve] = field(default_factory=_default_post_launch)


@dataclass(frozen=True)
class EventTrigger:
    base_chance: float = 0.15
    debt_divisor: float = 200
    morale_offset_baseline: float = 50
    morale_divisor: float = 250
    min_chance: float = 0.05
    max_chance: float = 0.65


@dataclass(frozen=True)
class ReleaseGuardrails:
    min_completion: float = 100
    min_quality: float = 35
    min_week: int = 8
    min_cash: int = 0


@dataclass(frozen=True)
class GhostTaskRange:
    min: int
    max: int


@dataclass(frozen=True)
class TerminalRules:
    insolvency_weeks: int = 2
    morale_floor: float = 20
    mutiny_weeks: int = 4
    delisting_strength: float = 10
    required_post_launch_weeks: int = 8


@dataclass(frozen=True)
class ReleaseReadiness:
    min_completion: float = 120
    max_bug_backlog: int = 25


def _default_team() -> Tuple[DeveloperSpec, ...]:
    return (
        DeveloperSpec(id="dev-1", name="Dev A", base_cp=8, salary=6_000),
        DeveloperSpec(id="dev-2", name="Dev B", base_cp=8, salary=6_000),
        DeveloperSpec(id="dev-3", name="Dev C", base_cp=8, salary=6_000),
    )


def _default_allocations() -> Dict[str, int]:
    return {"feature": 8, "refactor": 6, "marketing": 4, "qa": 6}


@dataclass(frozen=True)
class GameConfig:
    schema_version: int = 1
    log_limit: int = 200
    starting: StartingValues = field(default_factory=StartingValues)
    team: Tuple[DeveloperSpec, ...] = field(default_factory=_default_team)
    starting_allocations: Dict[str, int] = field(default_factory=_default_allocations)
    economy: Economy = field(default_factory=Economy)
    ranges: Ranges = field(default_factory=Ranges)
    capacity: CapacityFormula = field(default_factory=CapacityFormula)
    morale: MoraleFormula = field(default_factory=MoraleFormula)
    debt: DebtFormula = field(default_factory=DebtFormula)
    bugs: BugFormula = field(default_factory=BugFormula)
    quality: QualityFormula = field(default_factory=QualityFormula)
    hype: HypeFormula = field(default_factory=HypeFormula)
    stability: StabilityFormula = field(default_factory=StabilityFormula)
    launch: LaunchFormula = field(default_factory=LaunchFormula)
    events: EventTrigger = field(default_factory=EventTrigger)
    release_guardrails: ReleaseGuardrails = field(default_factory=ReleaseGuardrails)
    ghost_tasks: Dict[str, GhostTaskRange] = field(
        default_factory=lambda: {"warning": GhostTaskRange(1, 3), "failed": GhostTaskRange(4, 8)}
    )
    terminal: TerminalRules = field(default_factory=TerminalRules)
    release_readiness: ReleaseReadiness = field(default_factory=ReleaseReadiness)


DEFAULT_GAME_CONFIG = GameConfig()


def with_overrides(config: Any, overrides: Mapping[str, Any]) -> Any:
    """Return a copy of a balance dataclass with nested overrides applied.

    Nested dataclasses are merged key-wise; plain values (and dicts of
    curves/ranges given as mappings) are converted to the field's type where
    the current value tells us how. Unknown keys raise ValueError so typos
    in override files fail loudly at load time.
    """
    if not dataclasses.is_dataclass(config):
        raise ValueError(f"cannot override non-dataclass value {config!r}")

    known = {f.name for f in dataclasses.fields(config)}
    changes: Dict[str, Any] = {}
    for key, value in dict(overrides).items():
        if key not in known:
            raise ValueError(f"unknown {type(config).__name__} key: {key}")
        current = getattr(config, key)
        if dataclasses.is_dataclass(current) and isinstance(value, Mapping):
            changes[key] = with_overrides(current, value)
        elif isinstance(current, dict) and isinstance(value, Mapping):
            merged = dict(current)
            for sub_key, sub_value in value.items():
                existing = merged.get(sub_key)
                if dataclasses.is_dataclass(existing) and isinstance(sub_value, Mapping):
                    merged[sub_key] = with_overrides(existing, sub_value)
                elif key == "ghost_tasks" and isinstance(sub_value, Mapping):
                    merged[sub_key] = GhostTaskRange(int(sub_value["min"]), int(sub_value["max"]))
                elif key == "weekly_post_launch_sales" and isinstance(sub_value, Mapping):
                    merged[sub_key] = PostLaunchCurve(**dict(sub_value))
                else:
                    merged[sub_key] = sub_value
            changes[key] = merged
        elif key == "team" and isinstance(value, (list, tuple)):
            changes[key] = tuple(
                v if isinstance(v, DeveloperSpec) else DeveloperSpec(**dict(v)) for v in value
            )
        else:
            changes[key] = value
    return dataclasses.replace(config, **changes)
