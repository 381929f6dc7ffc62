"""studio_engine.pipeline

Core week flow (headless).

Responsibilities:
- preview a plan (projected deltas, no RNG, no history)
- resolve one week: sanitize -> event -> production -> milestones -> hype
  -> build -> morale -> launch/sales -> cash -> terminal -> cooldowns
- append an immutable snapshot to history and lines to the narrative log

This layer is UI-agnostic. It never mutates the input state.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from studio_core.allocation import normalize_integer_allocations
from studio_core.effects import (
    NO_EVENT,
    Capacity,
    apply_event_to_allocation,
    compute_entropy_index,
    materialize_event_effect,
    next_streak,
    resolve_build,
    resolve_cash,
    resolve_hype,
    resolve_milestones,
    resolve_morale,
    resolve_production,
    roll_event,
    stability_score,
)
from studio_core.launch import (
    evaluate_terminal_states,
    is_release_available,
    post_launch_week_sales,
    run_launch_check,
)
from studio_core.rng import rng_from_state
from studio_core.state import (
    Allocations,
    Counters,
    Entropy,
    GameState,
    Market,
    Plan,
    Project,
    Resources,
    Run,
    RunResult,
    Team,
    clamp,
    clone_state,
    freeze_snapshot,
    round2,
    runway_weeks_for,
    utc_now_iso,
    weekly_burn_for,
)

from .config import EngineConfig
from .logging import append_log_entries, week_log_entries
from .planning import PlanOverride, sanitize_plan

logger = logging.getLogger(__name__)


def _tracked(state_cash: int, morale: float, tech_debt: float, bug_backlog: int,
             completion: float, scope_target: float, quality: float, hype: float) -> Dict[str, Any]:
    return {
        "cash": state_cash,
        "morale": morale,
        "tech_debt": tech_debt,
        "bug_backlog": bug_backlog,
        "completion": completion,
        "scope_target": scope_target,
        "quality": quality,
        "hype": hype,
    }


def _tracked_from_state(state: GameState) -> Dict[str, Any]:
    return _tracked(
        state.resources.cash,
        state.resources.morale,
        state.entropy.tech_debt,
        state.entropy.bug_backlog,
        state.project.completion,
        state.project.scope_target,
        state.project.quality,
        state.market.hype,
    )


def _deltas(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "cash": after["cash"] - before["cash"],
        "morale": round2(after["morale"] - before["morale"]),
        "tech_debt": round2(after["tech_debt"] - before["tech_debt"]),
        "bug_backlog": after["bug_backlog"] - before["bug_backlog"],
        "completion": round2(after["completion"] - before["completion"]),
        "scope_target": round2(after["scope_target"] - before["scope_target"]),
        "quality": round2(after["quality"] - before["quality"]),
        "hype": round2(after["hype"] - before["hype"]),
    }


def _decrement_cooldowns(cooldowns: Dict[str, int]) -> Dict[str, int]:
    return {k: max(0, int(v) - 1) for k, v in cooldowns.items()}


# -------------------------
# Preview
# -------------------------


@dataclass(frozen=True)
class WeekPreview:
    plan: Plan
    derived_capacity: Capacity
    allocations: Allocations
    projected: Dict[str, float]
    release_available: bool


def preview_week(state: GameState, config: EngineConfig, plan_override: PlanOverride = None) -> WeekPreview:
    """Projected deltas for a plan, ignoring events, milestones and builds.

    Draws nothing from the RNG and leaves history untouched.
    """
    game = config.game
    sanitized = sanitize_plan(state, config, plan_override)
    capacity = sanitized.derived_capacity
    allocations = normalize_integer_allocations(sanitized.plan.allocations, capacity.cp_effective)

    prod = resolve_production(
        state, allocations, capacity.cp_effective, sanitized.focus, sanitized.management, NO_EVENT, game
    )
    morale = clamp(
        state.resources.morale
        - game.morale.base_decay_per_week
        + sanitized.management.morale_delta
        + sanitized.focus.morale_delta,
        game.ranges.morale_min,
        game.ranges.morale_max,
    )
    hype = resolve_hype(state.market.hype, allocations.marketing, sanitized.focus, 0, NO_EVENT, game)

    return WeekPreview(
        plan=sanitized.plan,
        derived_capacity=capacity,
        allocations=allocations,
        projected={
            "completion_delta": prod.completion - state.project.completion,
            "debt_delta": round2(prod.tech_debt - state.entropy.tech_debt),
            "bug_delta": prod.bug_backlog - state.entropy.bug_backlog,
            "quality_delta": prod.quality - state.project.quality,
            "morale_delta": round2(morale - state.resources.morale),
            "hype_delta": hype - state.market.hype,
        },
        release_available=is_release_available(state, game),
    )


# -------------------------
# Resolve
# -------------------------


def resolve_week(
    state: GameState,
    config: EngineConfig,
    plan_override: PlanOverride = None,
    *,
    now_iso: Optional[str] = None,
) -> GameState:
    """Advance one week and return the new state.

    Finished runs (failed/won) come back as an unchanged deep copy.
    `now_iso` only feeds meta.updated_at_iso; no formula reads the clock.
    """
    if state.run.is_terminal:
        return clone_state(state)

    game = config.game
    week = state.run.week
    before = _tracked_from_state(state)

    # 1) plan + capacity
    sanitized = sanitize_plan(state, config, plan_override)
    plan, focus, management = sanitized.plan, sanitized.focus, sanitized.management
    capacity = sanitized.derived_capacity

    cp_effective = capacity.cp_effective
    allocations = normalize_integer_allocations(plan.allocations, cp_effective)
    if allocations.total() <= 0 and cp_effective > 0:
        allocations = Allocations(feature=cp_effective)

    # 2) friction event (adjusts capacity and lanes before any formula runs)
    rng = rng_from_state(state.meta.rng_state)
    event_roll = roll_event(state, rng, config.catalog.events, game)
    event = event_roll.event
    effect = materialize_event_effect(plan.scope_creep_policy, event)
    cp_effective, allocations = apply_event_to_allocation(allocations, cp_effective, effect)

    # 3) production: completion, debt, bugs, quality, scope
    prod = resolve_production(state, allocations, cp_effective, focus, management, effect, game)

    # 4) milestones, hype
    milestones = resolve_milestones(
        state.project.milestones_reached, prod.completion, prod.bug_backlog, config.catalog.milestones
    )
    hype = resolve_hype(state.market.hype, allocations.marketing, focus, milestones.hype_bonus, effect, game)

    # 5) build outcome (second RNG use) + ghost tasks
    score = stability_score(prod.tech_debt, prod.bug_backlog, prod.qa_share, game)
    build = resolve_build(score, rng, game)
    scope_target = prod.scope_target + build.ghost_tasks * game.stability.ghost_task_scope

    # 6) morale
    morale_result = resolve_morale(state, focus, management, milestones.morale_bonus, effect, build.result, game)
    morale = morale_result.morale

    # 7) launch / post-launch sales
    weekly_burn = weekly_burn_for(state.team.members, game)
    week_sales = 0
    lifetime_sales = state.market.lifetime_sales
    refunds = state.market.refunds
    product_strength = state.market.product_strength
    launch_outcome = state.market.launch_outcome
    status = state.run.status
    launch_week = state.run.launch_week
    post_launch_weeks = state.run.post_launch_weeks

    release_requested = plan.release_requested
    release_available_before = is_release_available(state, game)
    release_attempted = release_requested and state.run.status == "active"
    release_executed = release_attempted and release_available_before

    if state.run.status == "released":
        post_launch_weeks = state.run.post_launch_weeks + 1
        week_sales = post_launch_week_sales(launch_outcome, post_launch_weeks, game)

    if release_executed:
        launch = run_launch_check(
            completion=prod.completion,
            scope_target=scope_target,
            quality=prod.quality,
            bug_backlog=prod.bug_backlog,
            morale=morale,
            hype=hype,
            config=game,
        )
        week_sales = launch.week_sales
        refunds += launch.refunds
        product_strength = launch.product_strength
        launch_outcome = launch.outcome
        status = "released"
        launch_week = week
        post_launch_weeks = 1
        logger.info(
            "Week %s launch: outcome=%s strength=%.2f delta=%.2f sales=%s",
            week, launch.outcome, launch.product_strength, launch.delta, launch.week_sales,
        )

    lifetime_sales += week_sales

    # 8) cash + streaks
    cash = resolve_cash(state.resources.cash, weekly_burn, allocations.marketing, management, week_sales, game)
    cash_negative_streak = next_streak(state.resources.cash_negative_streak, cash < 0)
    morale_below20_streak = next_streak(state.resources.morale_below20_streak, morale < game.terminal.morale_floor)
    if status == "released":
        post_launch_streak = next_streak(state.run.post_launch_non_negative_cash_streak, cash >= 0)
    else:
        post_launch_streak = 0

    # 9) terminal
    terminal = evaluate_terminal_states(
        cash_negative_streak=cash_negative_streak,
        morale_below20_streak=morale_below20_streak,
        released=status == "released",
        product_strength=product_strength,
        post_launch_non_negative_cash_streak=post_launch_streak,
        config=game,
    )
    if terminal.is_terminal:
        status = terminal.status
        logger.info("Run %s ended in week %s: %s", state.meta.save_id, week, terminal.type)

    # 10) cooldowns, logs, snapshot
    next_cooldowns = _decrement_cooldowns(state.plan.cooldowns)
    if management.cooldown_key:
        next_cooldowns[management.cooldown_key] = management.cooldown_weeks

    tech_debt = round2(prod.tech_debt)
    scope_target = round2(scope_target)
    readiness = game.release_readiness

    after = _tracked(cash, morale, tech_debt, prod.bug_backlog, prod.completion, scope_target, prod.quality, hype)

    new_logs = week_log_entries(
        week=week,
        event_id=event.id if event else None,
        event_name=event.name if event else None,
        event_message=effect.message,
        decision=effect.decision,
        newly_reached=milestones.newly_reached,
        release_attempted=release_attempted,
        release_executed=release_executed,
        launch_outcome=launch_outcome,
        terminal=terminal,
    )

    snapshot: Dict[str, Any] = {
        "week": week,
        "plan": {
            "focus_card_id": focus.id,
            "management_card_id": management.id,
            "scope_creep_policy": plan.scope_creep_policy,
            "release_requested": release_requested,
            "allocations": allocations.to_dict(),
        },
        "derived_capacity": {
            "cp_base": capacity.cp_base,
            "cp_effective": cp_effective,
            "morale_multiplier": capacity.morale_multiplier,
            "debt_multiplier": capacity.debt_multiplier,
        },
        "event": (
            {
                "id": event.id,
                "name": event.name,
                "chance": round2(event_roll.chance),
                "roll": round2(event_roll.roll),
                "decision": effect.decision,
                "message": effect.message,
            }
            if event
            else None
        ),
        "build": {
            "stability_score": round2(build.stability_score),
            "result": build.result,
            "ghost_tasks": build.ghost_tasks,
        },
        "milestones": list(milestones.newly_reached),
        "release": {
            "attempted": release_attempted,
            "executed": release_executed,
            "available_before_week": release_available_before,
            "outcome": launch_outcome if release_executed else None,
            "product_strength": product_strength if release_executed else None,
        },
        "sales": {
            "week_sales": week_sales,
            "lifetime_sales": lifetime_sales,
            "refunds": refunds,
        },
        "before": before,
        "after": after,
        "deltas": _deltas(before, after),
        "terminal": {"type": terminal.type, "message": terminal.message},
    }

    finished = status in ("failed", "won")

    return GameState(
        meta=dataclasses.replace(
            state.meta,
            rng_state=rng.get_state(),
            updated_at_iso=now_iso or utc_now_iso(),
        ),
        run=Run(
            week=week if finished else week + 1,
            phase="planning",
            status=status,
            result=RunResult(type=terminal.type, message=terminal.message) if terminal.is_terminal else state.run.result,
            post_launch_weeks=post_launch_weeks,
            post_launch_non_negative_cash_streak=post_launch_streak,
            launch_week=launch_week,
        ),
        resources=Resources(
            cash=cash,
            morale=morale,
            weekly_burn=weekly_burn,
            runway_weeks=runway_weeks_for(cash, weekly_burn),
            morale_below20_streak=morale_below20_streak,
            cash_negative_streak=cash_negative_streak,
            crunch_streak=morale_result.crunch_streak,
        ),
        team=Team(
            members=tuple(dataclasses.replace(m, availability_multiplier=1.0) for m in state.team.members),
            cp_base=capacity.cp_base,
            cp_effective=cp_effective,
        ),
        project=Project(
            scope_target=scope_target,
            completion=prod.completion,
            quality=prod.quality,
            milestones_reached=milestones.milestones_reached,
            release_ready=(
                prod.completion >= readiness.min_completion and prod.bug_backlog <= readiness.max_bug_backlog
            ),
            released=state.project.released or release_executed,
        ),
        entropy=Entropy(
            tech_debt=tech_debt,
            bug_backlog=prod.bug_backlog,
            entropy_index=compute_entropy_index(tech_debt, prod.bug_backlog),
            latest_stability_score=round2(build.stability_score),
            latest_build_result=build.result,
            latest_ghost_tasks=build.ghost_tasks,
        ),
        market=Market(
            hype=hype,
            reputation=state.market.reputation,
            product_strength=product_strength,
            launch_outcome=launch_outcome,
            week_sales=week_sales,
            lifetime_sales=lifetime_sales,
            refunds=refunds,
        ),
        plan=Plan(
            focus_card_id=focus.id,
            management_card_id=management.id,
            scope_creep_policy=plan.scope_creep_policy,
            allocations=allocations,
            cooldowns=next_cooldowns,
            release_requested=False,
        ),
        counters=Counters(
            total_weeks_simulated=state.counters.total_weeks_simulated + 1,
            total_feature_points_done=state.counters.total_feature_points_done + prod.feature_points,
            total_debt_reduced=state.counters.total_debt_reduced + max(0, round2(prod.debt_reduction)),
            total_bugs_fixed=state.counters.total_bugs_fixed + prod.bugs_fixed,
            total_ghost_tasks=state.counters.total_ghost_tasks + build.ghost_tasks,
            total_milestones=state.counters.total_milestones + len(milestones.newly_reached),
            total_events_triggered=state.counters.total_events_triggered + (1 if event else 0),
        ),
        history=state.history + (freeze_snapshot(snapshot),),
        logs=append_log_entries(state.logs, new_logs, game.log_limit),
    )
