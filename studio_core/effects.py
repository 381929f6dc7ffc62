"""
studio_core.effects
Economy / physics rules for one week:
- capacity (team CP scaled by morale, debt and the management card)
- friction event roll + materialized effect
- production: completion, debt, bugs, quality, scope
- milestones, hype, stability score -> build outcome, morale, cash

Every function is pure given its inputs; the only side effect is advancing
the RNG passed in. Formulas read pre-update values unless a parameter says
otherwise.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from studio_content.schemas import EffectDelta, FocusCard, FrictionEvent, ManagementCard, Milestone

from .allocation import normalize_integer_allocations
from .balance import GameConfig
from .rng import XorShiftRng
from .state import Allocations, GameState, clamp, floor_int, round2

logger = logging.getLogger(__name__)


# -------------------------
# Capacity
# -------------------------


@dataclass(frozen=True)
class Capacity:
    cp_base: int
    cp_effective: int
    morale_multiplier: float
    debt_multiplier: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cp_base": self.cp_base,
            "cp_effective": self.cp_effective,
            "morale_multiplier": self.morale_multiplier,
            "debt_multiplier": self.debt_multiplier,
        }


def team_cp_base(state: GameState, cp_base_multiplier: float = 1.0) -> int:
    base = 0.0
    for dev in state.team.members:
        availability = dev.availability_multiplier
        if availability is None or not math.isfinite(availability):
            availability = 1.0
        base += dev.base_cp * availability
    return floor_int(base * cp_base_multiplier)


def compute_capacity(state: GameState, management: ManagementCard, config: GameConfig) -> Capacity:
    f = config.capacity
    cp_base = team_cp_base(state, management.cp_base_multiplier)
    morale_multiplier = f.morale_base + f.morale_per_point * state.resources.morale
    debt_multiplier = max(f.debt_floor, 1 - (f.debt_weight * state.entropy.tech_debt) / 100)
    cp_effective = floor_int(cp_base * morale_multiplier * debt_multiplier * management.cp_effective_multiplier)
    return Capacity(
        cp_base=cp_base,
        cp_effective=max(0, cp_effective),
        morale_multiplier=round2(morale_multiplier),
        debt_multiplier=round2(debt_multiplier),
    )


def compute_entropy_index(tech_debt: float, bug_backlog: float) -> float:
    return round2(0.7 * tech_debt + min(30, bug_backlog * 0.8))


# -------------------------
# Friction events
# -------------------------


@dataclass(frozen=True)
class EventRoll:
    chance: float
    roll: float
    event: Optional[FrictionEvent]


@dataclass(frozen=True)
class EventEffect:
    """Event deltas after the decision branch (if any) is folded in."""

    cp_feature_delta: float = 0.0
    cp_total_delta: float = 0.0
    debt_delta: float = 0.0
    bug_delta: float = 0.0
    quality_delta: float = 0.0
    morale_delta: float = 0.0
    hype_delta: float = 0.0
    scope_delta: float = 0.0
    decision: Optional[str] = None
    message: Optional[str] = None


NO_EVENT = EventEffect()


def event_trigger_chance(state: GameState, config: GameConfig) -> float:
    t = config.events
    return clamp(
        t.base_chance
        + state.entropy.tech_debt / t.debt_divisor
        + (t.morale_offset_baseline - state.resources.morale) / t.morale_divisor,
        t.min_chance,
        t.max_chance,
    )


def roll_event(
    state: GameState,
    rng: XorShiftRng,
    events: Sequence[FrictionEvent],
    config: GameConfig,
) -> EventRoll:
    """One float draw decides whether anything fires; a weighted pick decides what."""
    chance = event_trigger_chance(state, config)
    roll = rng.next_float()
    if roll >= chance:
        return EventRoll(chance=chance, roll=roll, event=None)

    event = rng.pick_weighted(list(events), lambda e: e.weight)
    logger.debug("friction event fired: %s (roll=%.4f chance=%.4f)", event.id if event else None, roll, chance)
    return EventRoll(chance=chance, roll=roll, event=event)


def materialize_event_effect(scope_creep_policy: str, event: Optional[FrictionEvent]) -> EventEffect:
    if event is None:
        return NO_EVENT

    base = event.effect
    values = {
        "cp_feature_delta": base.cp_feature_delta,
        "cp_total_delta": base.cp_total_delta,
        "debt_delta": base.debt_delta,
        "bug_delta": base.bug_delta,
        "quality_delta": base.quality_delta,
        "morale_delta": base.morale_delta,
        "hype_delta": base.hype_delta,
        "scope_delta": base.scope_delta,
    }
    message: Optional[str] = base.message or None
    decision: Optional[str] = None

    if event.requires_decision:
        decision = "accept" if scope_creep_policy == "accept" else "reject"
        branch = event.branch(decision) or EffectDelta()
        # capacity deltas are not branch-specific
        for key in ("debt_delta", "bug_delta", "quality_delta", "morale_delta", "hype_delta", "scope_delta"):
            values[key] += getattr(branch, key)
        message = branch.message or message

    return EventEffect(decision=decision, message=message, **values)


def apply_event_to_allocation(
    allocations: Allocations,
    cp_effective: int,
    effect: EventEffect,
) -> Tuple[int, Allocations]:
    """Shift capacity and the feature lane, then re-fit lanes to the new capacity."""
    adjusted_cp = max(0, cp_effective + effect.cp_total_delta)
    adjusted = {
        "feature": max(0, allocations.feature + effect.cp_feature_delta),
        "refactor": allocations.refactor,
        "marketing": allocations.marketing,
        "qa": allocations.qa,
    }
    return floor_int(adjusted_cp), normalize_integer_allocations(adjusted, adjusted_cp)


# -------------------------
# Production: completion, debt, bugs, quality, scope
# -------------------------


@dataclass(frozen=True)
class Production:
    feature_share: float
    qa_share: float
    complexity_ratio: float
    bug_pressure: float
    feature_points: int
    completion: float
    debt_gain: float
    debt_reduction: float
    tech_debt: float
    bugs_generated: int
    bugs_fixed: int
    bug_backlog: int
    quality_gain: float
    quality_decay: float
    quality: float
    scope_target: float


def debt_gain_for(
    feature_share: float,
    qa_share: float,
    complexity_ratio: float,
    focus: FocusCard,
    management: ManagementCard,
    config: GameConfig,
) -> float:
    d = config.debt
    gain = 0.0
    if feature_share > d.feature_rush_threshold:
        gain += (feature_share - d.feature_rush_threshold) * d.feature_rush_multiplier
    if qa_share < d.qa_share_floor:
        gain += (d.qa_share_floor - qa_share) * d.qa_penalty_multiplier
    if complexity_ratio > d.complexity_ratio_threshold:
        gain += d.complexity_flat_gain
    gain *= management.debt_gain_multiplier
    gain += focus.debt_delta
    return gain


def resolve_production(
    state: GameState,
    allocations: Allocations,
    cp_effective: int,
    focus: FocusCard,
    management: ManagementCard,
    effect: EventEffect,
    config: GameConfig,
) -> Production:
    ranges = config.ranges
    divisor = max(cp_effective, 1)
    feature, refactor, qa = allocations.feature, allocations.refactor, allocations.qa

    feature_share = feature / divisor
    qa_share = qa / divisor
    complexity_ratio = (state.project.scope_target - state.project.completion) / divisor

    b = config.bugs
    bug_pressure = min(b.feature_bug_pressure_cap, state.entropy.bug_backlog / b.feature_bug_pressure_divisor)
    feature_points = floor_int(feature * focus.multipliers.feature * (1 - bug_pressure))
    completion = min(state.project.scope_target, state.project.completion + feature_points)

    debt_reduction = (
        refactor * config.debt.refactor_base_efficiency * focus.multipliers.refactor * (1 + qa_share)
    )
    debt_gain = debt_gain_for(feature_share, qa_share, complexity_ratio, focus, management, config)
    tech_debt = clamp(
        state.entropy.tech_debt + debt_gain - debt_reduction + effect.debt_delta,
        ranges.debt_min,
        ranges.debt_max,
    )

    bugs_generated = math.ceil(feature * (b.generation_base + state.entropy.tech_debt / b.generation_debt_divisor))
    bugs_fixed = floor_int(qa * b.fix_per_qa_cp * focus.multipliers.qa)
    bug_backlog = int(max(0, state.entropy.bug_backlog + bugs_generated - bugs_fixed + effect.bug_delta))

    q = config.quality
    quality_gain = (
        floor_int(qa * q.qa_contribution * focus.multipliers.qa + feature * q.feature_contribution)
        * focus.multipliers.quality
    )
    quality_decay = q.high_debt_decay_value if tech_debt > q.high_debt_decay_threshold else 0
    quality = clamp(
        state.project.quality + quality_gain - quality_decay + effect.quality_delta,
        ranges.quality_min,
        ranges.quality_max,
    )

    return Production(
        feature_share=feature_share,
        qa_share=qa_share,
        complexity_ratio=complexity_ratio,
        bug_pressure=bug_pressure,
        feature_points=feature_points,
        completion=completion,
        debt_gain=debt_gain,
        debt_reduction=debt_reduction,
        tech_debt=tech_debt,
        bugs_generated=bugs_generated,
        bugs_fixed=bugs_fixed,
        bug_backlog=bug_backlog,
        quality_gain=quality_gain,
        quality_decay=quality_decay,
        quality=quality,
        scope_target=state.project.scope_target + effect.scope_delta,
    )


# -------------------------
# Milestones
# -------------------------


@dataclass(frozen=True)
class MilestoneResult:
    milestones_reached: Tuple[str, ...]
    newly_reached: Tuple[str, ...]
    morale_bonus: float
    hype_bonus: float


def resolve_milestones(
    already_reached: Sequence[str],
    completion: float,
    bug_backlog: int,
    milestones: Sequence[Milestone],
) -> MilestoneResult:
    reached: List[str] = list(already_reached)
    newly: List[str] = []
    morale_bonus = 0.0
    hype_bonus = 0.0

    for m in milestones:
        if m.id in reached:
            continue
        if completion < m.threshold_completion:
            continue
        if m.max_bug_backlog is not None and bug_backlog > m.max_bug_backlog:
            continue
        reached.append(m.id)
        newly.append(m.id)
        morale_bonus += m.reward_morale
        hype_bonus += m.reward_hype

    return MilestoneResult(
        milestones_reached=tuple(reached),
        newly_reached=tuple(newly),
        morale_bonus=morale_bonus,
        hype_bonus=hype_bonus,
    )


# -------------------------
# Hype
# -------------------------


def resolve_hype(
    hype: float,
    marketing: int,
    focus: FocusCard,
    milestone_hype: float,
    effect: EventEffect,
    config: GameConfig,
) -> float:
    h = config.hype
    gain = floor_int(marketing * h.cp_to_hype * focus.multipliers.marketing) + milestone_hype
    decay = h.no_marketing_decay if marketing == 0 else 0
    return clamp(hype + gain - decay + effect.hype_delta, config.ranges.hype_min, config.ranges.hype_max)


# -------------------------
# Build
# -------------------------


@dataclass(frozen=True)
class BuildOutcome:
    stability_score: float
    result: str  # clean | warning | failed
    ghost_tasks: int


def stability_score(tech_debt: float, bug_backlog: int, qa_share: float, config: GameConfig) -> float:
    s = config.stability
    return (
        100
        - s.debt_penalty * tech_debt
        - min(s.bug_penalty_cap, s.bug_penalty * bug_backlog)
        + s.qa_share_bonus_factor * qa_share
    )


def resolve_build(score: float, rng: XorShiftRng, config: GameConfig) -> BuildOutcome:
    """Classify the build; warning/failed builds draw a ghost-task count."""
    s = config.stability
    if score >= s.clean_threshold:
        return BuildOutcome(stability_score=score, result="clean", ghost_tasks=0)

    if score >= s.warning_threshold:
        r = config.ghost_tasks["warning"]
        return BuildOutcome(stability_score=score, result="warning", ghost_tasks=rng.next_int(r.min, r.max))

    r = config.ghost_tasks["failed"]
    return BuildOutcome(stability_score=score, result="failed", ghost_tasks=rng.next_int(r.min, r.max))


# -------------------------
# Morale / cash
# -------------------------


@dataclass(frozen=True)
class MoraleResult:
    morale: float
    crunch_streak: int
    crunch_penalty: float


def resolve_morale(
    state: GameState,
    focus: FocusCard,
    management: ManagementCard,
    milestone_morale: float,
    effect: EventEffect,
    build_result: str,
    config: GameConfig,
) -> MoraleResult:
    m = config.morale
    crunch_streak = state.resources.crunch_streak + 1 if management.crunch else 0
    crunch_penalty = max(0, crunch_streak - 1) * m.crunch_streak_penalty_per_week if management.crunch else 0

    morale = state.resources.morale
    morale -= m.base_decay_per_week
    morale += milestone_morale
    morale += management.morale_delta
    morale += focus.morale_delta
    morale += effect.morale_delta
    morale -= crunch_penalty

    if build_result == "clean":
        morale += m.clean_build_bonus
    if build_result == "failed":
        morale -= m.failed_build_penalty

    return MoraleResult(
        morale=clamp(morale, config.ranges.morale_min, config.ranges.morale_max),
        crunch_streak=crunch_streak,
        crunch_penalty=crunch_penalty,
    )


def resolve_cash(
    cash: int,
    weekly_burn: int,
    marketing: int,
    management: ManagementCard,
    week_sales: int,
    config: GameConfig,
) -> int:
    marketing_spend = marketing * config.economy.marketing_extra_spend_per_cp
    return floor_int(cash - weekly_burn - marketing_spend + management.cash_delta + week_sales)


def next_streak(current: int, condition: bool) -> int:
    return current + 1 if condition else 0
