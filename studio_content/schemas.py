"""studio_content.schemas

Contracts for the static catalogs the engine reads but never mutates:
- FocusCard / ManagementCard: the two cards a player picks each week.
- Milestone: one-time completion rewards.
- FrictionEvent: weighted weekly disruptions, optionally with an accept/reject branch.

Catalogs can come from the built-in defaults (studio_content.catalog) or from a
JSON override file; parsing here is forgiving (defaults for missing numbers),
validation is strict (raises ValueError).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

ALLOWED_DECISIONS = ("accept", "reject")


def _as_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return float(default)


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return int(default)


def _optional_float(x: Any) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


# =========================
# Cards
# =========================


@dataclass(frozen=True)
class FocusMultipliers:
    feature: float = 1.0
    refactor: float = 1.0
    quality: float = 1.0
    marketing: float = 1.0
    qa: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "feature": self.feature,
            "refactor": self.refactor,
            "quality": self.quality,
            "marketing": self.marketing,
            "qa": self.qa,
        }


@dataclass(frozen=True)
class FocusCard:
    """Weekly focus: throughput/quality multipliers plus selection constraints."""

    id: str
    name: str
    description: str = ""
    multipliers: FocusMultipliers = field(default_factory=FocusMultipliers)
    debt_delta: float = 0.0
    morale_delta: float = 0.0
    cannot_repeat_consecutively: bool = False
    min_completion: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        constraints: Dict[str, Any] = {}
        if self.cannot_repeat_consecutively:
            constraints["cannot_repeat_consecutively"] = True
        if self.min_completion is not None:
            constraints["min_completion"] = self.min_completion
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "multipliers": self.multipliers.to_dict(),
            "flat_deltas": {"debt": self.debt_delta, "morale": self.morale_delta},
            "constraints": constraints,
        }


@dataclass(frozen=True)
class ManagementCard:
    """Weekly management stance: capacity/debt multipliers, flat deltas, cooldown."""

    id: str
    name: str
    description: str = ""
    cp_base_multiplier: float = 1.0
    cp_effective_multiplier: float = 1.0
    debt_gain_multiplier: float = 1.0
    morale_delta: float = 0.0
    cash_delta: int = 0
    cooldown_weeks: int = 0
    crunch: bool = False

    @property
    def cooldown_key(self) -> Optional[str]:
        return self.id if self.cooldown_weeks > 0 else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "multipliers": {
                "cp_base": self.cp_base_multiplier,
                "cp_effective": self.cp_effective_multiplier,
                "debt_gain": self.debt_gain_multiplier,
            },
            "flat_deltas": {"morale": self.morale_delta, "cash": self.cash_delta},
            "cooldown_weeks": self.cooldown_weeks,
            "crunch": self.crunch,
        }


# =========================
# Milestones
# =========================


@dataclass(frozen=True)
class Milestone:
    id: str
    name: str
    threshold_completion: float
    reward_morale: float = 0.0
    reward_hype: float = 0.0
    max_bug_backlog: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "threshold_completion": self.threshold_completion,
            "reward": {"morale": self.reward_morale, "hype": self.reward_hype},
        }
        if self.max_bug_backlog is not None:
            out["conditions"] = {"max_bug_backlog": self.max_bug_backlog}
        return out


# =========================
# Friction events
# =========================


@dataclass(frozen=True)
class EffectDelta:
    """Flat numeric deltas an event (or one of its decision branches) applies."""

    cp_feature_delta: float = 0.0
    cp_total_delta: float = 0.0
    debt_delta: float = 0.0
    bug_delta: float = 0.0
    quality_delta: float = 0.0
    morale_delta: float = 0.0
    hype_delta: float = 0.0
    scope_delta: float = 0.0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cp_feature_delta": self.cp_feature_delta,
            "cp_total_delta": self.cp_total_delta,
            "debt_delta": self.debt_delta,
            "bug_delta": self.bug_delta,
            "quality_delta": self.quality_delta,
            "morale_delta": self.morale_delta,
            "hype_delta": self.hype_delta,
            "scope_delta": self.scope_delta,
            "message": self.message,
        }


@dataclass(frozen=True)
class FrictionEvent:
    id: str
    name: str
    weight: float
    effect: EffectDelta = field(default_factory=EffectDelta)
    requires_decision: bool = False
    accept: Optional[EffectDelta] = None
    reject: Optional[EffectDelta] = None

    def branch(self, decision: str) -> Optional[EffectDelta]:
        return self.accept if decision == "accept" else self.reject

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "weight": self.weight,
            "effect": self.effect.to_dict(),
            "requires_decision": self.requires_decision,
        }
        if self.accept is not None:
            out["accept"] = self.accept.to_dict()
        if self.reject is not None:
            out["reject"] = self.reject.to_dict()
        return out


# =========================
# Parsing (JSON mappings -> records)
# =========================


def focus_card_from_mapping(obj: Mapping[str, Any]) -> FocusCard:
    mult = dict(obj.get("multipliers") or {})
    flat = dict(obj.get("flat_deltas") or {})
    cons = dict(obj.get("constraints") or {})
    return FocusCard(
        id=str(obj.get("id") or "").strip(),
        name=str(obj.get("name") or obj.get("id") or "").strip(),
        description=str(obj.get("description") or "").strip(),
        multipliers=FocusMultipliers(
            feature=_as_float(mult.get("feature"), 1.0),
            refactor=_as_float(mult.get("refactor"), 1.0),
            quality=_as_float(mult.get("quality"), 1.0),
            marketing=_as_float(mult.get("marketing"), 1.0),
            qa=_as_float(mult.get("qa"), 1.0),
        ),
        debt_delta=_as_float(flat.get("debt"), 0.0),
        morale_delta=_as_float(flat.get("morale"), 0.0),
        cannot_repeat_consecutively=bool(cons.get("cannot_repeat_consecutively", False)),
        min_completion=_optional_float(cons.get("min_completion")),
    )


def management_card_from_mapping(obj: Mapping[str, Any]) -> ManagementCard:
    mult = dict(obj.get("multipliers") or {})
    flat = dict(obj.get("flat_deltas") or {})
    return ManagementCard(
        id=str(obj.get("id") or "").strip(),
        name=str(obj.get("name") or obj.get("id") or "").strip(),
        description=str(obj.get("description") or "").strip(),
        cp_base_multiplier=_as_float(mult.get("cp_base"), 1.0),
        cp_effective_multiplier=_as_float(mult.get("cp_effective"), 1.0),
        debt_gain_multiplier=_as_float(mult.get("debt_gain"), 1.0),
        morale_delta=_as_float(flat.get("morale"), 0.0),
        cash_delta=_as_int(flat.get("cash"), 0),
        cooldown_weeks=max(0, _as_int(obj.get("cooldown_weeks"), 0)),
        crunch=bool(obj.get("crunch", False)),
    )


def milestone_from_mapping(obj: Mapping[str, Any]) -> Milestone:
    reward = dict(obj.get("reward") or {})
    cond = dict(obj.get("conditions") or {})
    max_bugs = cond.get("max_bug_backlog")
    return Milestone(
        id=str(obj.get("id") or "").strip(),
        name=str(obj.get("name") or obj.get("id") or "").strip(),
        threshold_completion=_as_float(obj.get("threshold_completion"), 0.0),
        reward_morale=_as_float(reward.get("morale"), 0.0),
        reward_hype=_as_float(reward.get("hype"), 0.0),
        max_bug_backlog=None if max_bugs is None else _as_int(max_bugs, 0),
    )


def effect_from_mapping(obj: Optional[Mapping[str, Any]]) -> EffectDelta:
    d = dict(obj or {})
    return EffectDelta(
        cp_feature_delta=_as_float(d.get("cp_feature_delta"), 0.0),
        cp_total_delta=_as_float(d.get("cp_total_delta"), 0.0),
        debt_delta=_as_float(d.get("debt_delta"), 0.0),
        bug_delta=_as_float(d.get("bug_delta"), 0.0),
        quality_delta=_as_float(d.get("quality_delta"), 0.0),
        morale_delta=_as_float(d.get("morale_delta"), 0.0),
        hype_delta=_as_float(d.get("hype_delta"), 0.0),
        scope_delta=_as_float(d.get("scope_delta"), 0.0),
        message=str(d.get("message") or "").strip(),
    )


def friction_event_from_mapping(obj: Mapping[str, Any]) -> FrictionEvent:
    accept = obj.get("accept")
    reject = obj.get("reject")
    return FrictionEvent(
        id=str(obj.get("id") or "").strip(),
        name=str(obj.get("name") or obj.get("id") or "").strip(),
        weight=_as_float(obj.get("weight"), 0.0),
        effect=effect_from_mapping(obj.get("effect")),
        requires_decision=bool(obj.get("requires_decision", False)),
        accept=None if accept is None else effect_from_mapping(accept),
        reject=None if reject is None else effect_from_mapping(reject),
    )


# =========================
# Validation
# =========================


def _check_ids(kind: str, ids: List[str]) -> None:
    if not ids:
        raise ValueError(f"{kind} catalog must not be empty")
    if any(not i for i in ids):
        raise ValueError(f"{kind} entries must have an id")
    if len(set(ids)) != len(ids):
        raise ValueError(f"{kind} ids must be unique")


def validate_focus_cards(cards: Tuple[FocusCard, ...]) -> None:
    _check_ids("focus card", [c.id for c in cards])
    for c in cards:
        m = c.multipliers
        if min(m.feature, m.refactor, m.quality, m.marketing, m.qa) < 0:
            raise ValueError(f"focus card {c.id}: multipliers must be >= 0")


def validate_management_cards(cards: Tuple[ManagementCard, ...]) -> None:
    _check_ids("management card", [c.id for c in cards])
    for c in cards:
        if min(c.cp_base_multiplier, c.cp_effective_multiplier, c.debt_gain_multiplier) < 0:
            raise ValueError(f"management card {c.id}: multipliers must be >= 0")
        if c.cooldown_weeks < 0:
            raise ValueError(f"management card {c.id}: cooldown_weeks must be >= 0")


def validate_milestones(milestones: Tuple[Milestone, ...]) -> None:
    _check_ids("milestone", [m.id for m in milestones])
    for m in milestones:
        if m.threshold_completion < 0:
            raise ValueError(f"milestone {m.id}: threshold_completion must be >= 0")
        if m.max_bug_backlog is not None and m.max_bug_backlog < 0:
            raise ValueError(f"milestone {m.id}: max_bug_backlog must be >= 0")


def validate_events(events: Tuple[FrictionEvent, ...]) -> None:
    _check_ids("friction event", [e.id for e in events])
    for e in events:
        if e.weight < 0:
            raise ValueError(f"friction event {e.id}: weight must be >= 0")
        if e.requires_decision and (e.accept is None or e.reject is None):
            raise ValueError(f"friction event {e.id}: decision events need accept and reject branches")
