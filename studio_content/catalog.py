"""studio_content.catalog

Built-in card, milestone and friction-event catalogs.

Order matters: sanitizer fallbacks pick the first selectable entry, and
milestones are evaluated in catalog order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .schemas import (
    EffectDelta,
    FocusCard,
    FocusMultipliers,
    FrictionEvent,
    ManagementCard,
    Milestone,
    focus_card_from_mapping,
    friction_event_from_mapping,
    management_card_from_mapping,
    milestone_from_mapping,
    validate_events,
    validate_focus_cards,
    validate_management_cards,
    validate_milestones,
)


@dataclass(frozen=True)
class Catalog:
    focus_cards: Tuple[FocusCard, ...]
    management_cards: Tuple[ManagementCard, ...]
    milestones: Tuple[Milestone, ...]
    events: Tuple[FrictionEvent, ...]

    def focus_card(self, card_id: Optional[str]) -> Optional[FocusCard]:
        return next((c for c in self.focus_cards if c.id == card_id), None)

    def management_card(self, card_id: Optional[str]) -> Optional[ManagementCard]:
        return next((c for c in self.management_cards if c.id == card_id), None)

    def event(self, event_id: Optional[str]) -> Optional[FrictionEvent]:
        return next((e for e in self.events if e.id == event_id), None)

    def cooldown_keys(self) -> Tuple[str, ...]:
        return tuple(c.cooldown_key for c in self.management_cards if c.cooldown_key)


FOCUS_CARDS: Tuple[FocusCard, ...] = (
    FocusCard(
        id="featureSprint",
        name="Feature Sprint",
        description="Push output now and borrow against future velocity.",
        multipliers=FocusMultipliers(feature=1.25, refactor=1, quality=1, marketing=1, qa=0.9),
        debt_delta=1,
    ),
    FocusCard(
        id="cleanupWeek",
        name="Cleanup Week",
        description="Trade output for debt relief and team breathing room.",
        multipliers=FocusMultipliers(feature=0, refactor=1.8, quality=1, marketing=1, qa=1),
        morale_delta=2,
        cannot_repeat_consecutively=True,
    ),
    FocusCard(
        id="polishing",
        name="Polishing",
        description="Raise quality and perceived fit-and-finish at lower throughput.",
        multipliers=FocusMultipliers(feature=0.65, refactor=1, quality=2, marketing=1.1, qa=1),
        min_completion=40,
    ),
)

MANAGEMENT_CARDS: Tuple[ManagementCard, ...] = (
    ManagementCard(
        id="sustainablePace",
        name="Sustainable Pace",
        description="Default cadence with no extraordinary modifier.",
    ),
    ManagementCard(
        id="crunch",
        name="Crunch",
        description="Temporary output boost with strong morale and debt penalties.",
        cp_base_multiplier=1.5,
        debt_gain_multiplier=1.2,
        morale_delta=-8,
        cooldown_weeks=2,
        crunch=True,
    ),
    ManagementCard(
        id="teamBuilding",
        name="Team Building",
        description="Spend cash for morale recovery while sacrificing short-term throughput.",
        cp_effective_multiplier=0.9,
        morale_delta=10,
        cash_delta=-8_000,
        cooldown_weeks=3,
    ),
)

MILESTONES: Tuple[Milestone, ...] = (
    Milestone(id="prototype", name="Prototype", threshold_completion=25, reward_morale=5, reward_hype=4),
    Milestone(id="verticalSlice", name="Vertical Slice", threshold_completion=60, reward_morale=6, reward_hype=6),
    Milestone(id="contentComplete", name="Content Complete", threshold_completion=95, reward_morale=7, reward_hype=8),
    Milestone(id="shipReady", name="Ship Ready", threshold_completion=120, max_bug_backlog=25),
)

FRICTION_EVENTS: Tuple[FrictionEvent, ...] = (
    FrictionEvent(
        id="mergeConflict",
        name="Merge Conflict",
        weight=30,
        effect=EffectDelta(cp_feature_delta=-2, debt_delta=1, message="Integration collision consumed feature momentum."),
    ),
    FrictionEvent(
        id="sickDay",
        name="Sick Day",
        weight=25,
        effect=EffectDelta(cp_total_delta=-2, message="One developer had reduced availability this week."),
    ),
    FrictionEvent(
        id="toolchainOutage",
        name="Toolchain Outage",
        weight=10,
        effect=EffectDelta(cp_total_delta=-3, message="Build and CI tooling outage reduced total throughput."),
    ),
    FrictionEvent(
        id="criticalBugEscalation",
        name="Critical Bug Escalation",
        weight=20,
        effect=EffectDelta(bug_delta=8, quality_delta=-2, message="Production-critical issue consumed QA focus."),
    ),
    FrictionEvent(
        id="scopeCreepRequest",
        name="Scope Creep Request",
        weight=15,
        requires_decision=True,
        accept=EffectDelta(scope_delta=6, hype_delta=5, message="You accepted additional scope and raised expectations."),
        reject=EffectDelta(morale_delta=-2, hype_delta=-1, message="You rejected request and protected schedule confidence."),
    ),
)

DEFAULT_CATALOG = Catalog(
    focus_cards=FOCUS_CARDS,
    management_cards=MANAGEMENT_CARDS,
    milestones=MILESTONES,
    events=FRICTION_EVENTS,
)


def validate_catalog(catalog: Catalog) -> None:
    validate_focus_cards(catalog.focus_cards)
    validate_management_cards(catalog.management_cards)
    validate_milestones(catalog.milestones)
    validate_events(catalog.events)


def catalog_from_mapping(data: Mapping[str, Any], base: Catalog = DEFAULT_CATALOG) -> Catalog:
    """Build a catalog from a JSON mapping; sections that are absent keep `base`."""

    def _section(key: str, parse, fallback):
        raw = data.get(key)
        if raw is None:
            return fallback
        if not isinstance(raw, list):
            raise ValueError(f"catalog section {key} must be a list")
        return tuple(parse(obj) for obj in raw if isinstance(obj, Mapping))

    catalog = Catalog(
        focus_cards=_section("focus_cards", focus_card_from_mapping, base.focus_cards),
        management_cards=_section("management_cards", management_card_from_mapping, base.management_cards),
        milestones=_section("milestones", milestone_from_mapping, base.milestones),
        events=_section("events", friction_event_from_mapping, base.events),
    )
    validate_catalog(catalog)
    return catalog


def catalog_to_dict(catalog: Catalog) -> Dict[str, List[Dict[str, Any]]]:
    """JSON-ready form accepted back by catalog_from_mapping()."""
    return {
        "focus_cards": [c.to_dict() for c in catalog.focus_cards],
        "management_cards": [c.to_dict() for c in catalog.management_cards],
        "milestones": [m.to_dict() for m in catalog.milestones],
        "events": [e.to_dict() for e in catalog.events],
    }
