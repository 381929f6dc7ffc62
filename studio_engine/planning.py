"""studio_engine.planning

Plan sanitizer: repairs a player-submitted plan instead of rejecting it.

- focus card: falls back to the first selectable card if it repeats a
  no-repeat card or misses its completion requirement
- management card: falls back if it is cooling down
- scope-creep policy: anything but "accept"/"reject" becomes "reject"
- allocations: re-fit to the capacity of the (possibly fallen-back) management card
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Union

from studio_content.schemas import ALLOWED_DECISIONS, FocusCard, ManagementCard
from studio_core.allocation import normalize_integer_allocations, sum_allocations
from studio_core.effects import Capacity, compute_capacity
from studio_core.state import GameState, Plan

from .config import EngineConfig

logger = logging.getLogger(__name__)

PlanOverride = Union[Plan, Mapping[str, Any], None]


@dataclass(frozen=True)
class SanitizedPlan:
    plan: Plan
    derived_capacity: Capacity
    focus: FocusCard
    management: ManagementCard


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def last_week_focus_card_id(state: GameState) -> Optional[str]:
    if not state.history:
        return None
    plan = state.history[-1].get("plan") or {}
    return plan.get("focus_card_id")


def is_focus_card_selectable(state: GameState, card_id: Optional[str], config: EngineConfig) -> bool:
    card = config.catalog.focus_card(card_id)
    if card is None:
        return False
    if card.cannot_repeat_consecutively and last_week_focus_card_id(state) == card.id:
        return False
    if card.min_completion is not None and state.project.completion < card.min_completion:
        return False
    return True


def is_management_card_selectable(state: GameState, card_id: Optional[str], config: EngineConfig) -> bool:
    card = config.catalog.management_card(card_id)
    if card is None:
        return False
    key = card.cooldown_key
    if key is None:
        return True
    return state.plan.cooldowns.get(key, 0) <= 0


def first_selectable_focus_card(state: GameState, config: EngineConfig) -> FocusCard:
    cards = config.catalog.focus_cards
    return next((c for c in cards if is_focus_card_selectable(state, c.id, config)), cards[0])


def first_selectable_management_card(state: GameState, config: EngineConfig) -> ManagementCard:
    cards = config.catalog.management_cards
    return next((c for c in cards if is_management_card_selectable(state, c.id, config)), cards[0])


def get_card_availability(state: GameState, config: EngineConfig) -> Dict[str, Dict[str, bool]]:
    return {
        "focus": {c.id: is_focus_card_selectable(state, c.id, config) for c in config.catalog.focus_cards},
        "management": {
            c.id: is_management_card_selectable(state, c.id, config) for c in config.catalog.management_cards
        },
    }


def merge_plan(stored: Plan, override: PlanOverride) -> Dict[str, Any]:
    """Overlay a (partial) override on the stored plan.

    allocations and cooldowns are merged key-wise, everything else is replaced.
    """
    merged: Dict[str, Any] = asdict(stored)
    if override is None:
        return merged

    patch = asdict(override) if isinstance(override, Plan) else dict(override)
    allocations = dict(merged["allocations"])
    allocations.update(dict(patch.pop("allocations", None) or {}))
    cooldowns = dict(merged["cooldowns"])
    cooldowns.update(dict(patch.pop("cooldowns", None) or {}))

    merged.update(patch)
    merged["allocations"] = allocations
    merged["cooldowns"] = cooldowns
    return merged


def sanitize_plan(state: GameState, config: EngineConfig, plan_override: PlanOverride = None) -> SanitizedPlan:
    merged = merge_plan(state.plan, plan_override)

    focus_id = merged.get("focus_card_id")
    if not is_focus_card_selectable(state, focus_id, config):
        fallback = first_selectable_focus_card(state, config)
        logger.debug("focus card %r not selectable, falling back to %s", focus_id, fallback.id)
        focus_id = fallback.id

    management_id = merged.get("management_card_id")
    if not is_management_card_selectable(state, management_id, config):
        fallback_m = first_selectable_management_card(state, config)
        logger.debug("management card %r not selectable, falling back to %s", management_id, fallback_m.id)
        management_id = fallback_m.id

    policy = merged.get("scope_creep_policy")
    if policy not in ALLOWED_DECISIONS:
        policy = "reject"

    focus = config.catalog.focus_card(focus_id)
    management = config.catalog.management_card(management_id)
    capacity = compute_capacity(state, management, config.game)

    raw_allocations = merged.get("allocations")
    allocations = normalize_integer_allocations(
        raw_allocations if isinstance(raw_allocations, Mapping) else {},
        capacity.cp_effective,
    )

    cooldowns = merged.get("cooldowns") if isinstance(merged.get("cooldowns"), Mapping) else {}

    plan = Plan(
        focus_card_id=focus.id,
        management_card_id=management.id,
        scope_creep_policy=policy,
        allocations=allocations,
        cooldowns={str(k): _as_int(v) for k, v in cooldowns.items()},
        release_requested=merged.get("release_requested") is True,
    )
    return SanitizedPlan(plan=plan, derived_capacity=capacity, focus=focus, management=management)


def can_advance_week(state: GameState, config: EngineConfig, plan_override: PlanOverride = None) -> bool:
    """False for finished runs, and for an idle plan while there is capacity to spend."""
    if state.run.is_terminal:
        return False
    sanitized = sanitize_plan(state, config, plan_override)
    return sanitized.derived_capacity.cp_effective == 0 or sum_allocations(sanitized.plan.allocations) > 0

