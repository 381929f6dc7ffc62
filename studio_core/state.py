"""
studio_core.state
Core domain data models (UI/storage independent).

GameState is a value: every section is a frozen dataclass and the week
resolver builds a new GameState from the previous one instead of mutating it.
"""

from __future__ import annotations

import copy
import math
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .balance import GameConfig
from .rng import normalize_seed

RUN_STATUSES = ("active", "released", "failed", "won")
TERMINAL_STATUSES = ("failed", "won")
LAUNCH_OUTCOMES = ("miracle", "mixedFair", "hiddenGem", "scam")
BUILD_RESULTS = ("none", "clean", "warning", "failed")

REQUIRED_SECTIONS = ("meta", "run", "resources", "project", "entropy", "market", "plan")


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def floor_int(x: float) -> int:
    if x is None or not math.isfinite(x):
        return 0
    return math.floor(x)


def round2(x: float) -> float:
    """Round half up to 2 decimals (not banker's rounding)."""
    return math.floor(x * 100 + 0.5) / 100


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Meta:
    schema_version: int
    save_id: str
    created_at_iso: str
    updated_at_iso: str
    seed: int
    rng_state: int


@dataclass(frozen=True)
class RunResult:
    type: str
    message: str


@dataclass(frozen=True)
class Run:
    week: int = 1
    phase: str = "planning"
    status: str = "active"  # active | released | failed | won
    result: Optional[RunResult] = None
    post_launch_weeks: int = 0
    post_launch_non_negative_cash_streak: int = 0
    launch_week: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class Resources:
    cash: int
    morale: float
    weekly_burn: int
    runway_weeks: Optional[int]  # None == infinite (zero burn)
    morale_below20_streak: int = 0
    cash_negative_streak: int = 0
    crunch_streak: int = 0


@dataclass(frozen=True)
class Developer:
    id: str
    name: str
    base_cp: float
    salary: int
    availability_multiplier: float = 1.0


@dataclass(frozen=True)
class Team:
    members: Tuple[Developer, ...]
    cp_base: int = 0
    cp_effective: int = 0


@dataclass(frozen=True)
class Project:
    scope_target: float
    completion: float
    quality: float
    milestones_reached: Tuple[str, ...] = ()
    release_ready: bool = False
    released: bool = False


@dataclass(frozen=True)
class Entropy:
    tech_debt: float
    bug_backlog: int
    entropy_index: float = 0.0
    latest_stability_score: float = 0.0
    latest_build_result: str = "none"
    latest_ghost_tasks: int = 0


@dataclass(frozen=True)
class Market:
    hype: float
    reputation: float
    product_strength: float = 0.0
    launch_outcome: Optional[str] = None
    week_sales: int = 0
    lifetime_sales: int = 0
    refunds: int = 0


@dataclass(frozen=True)
class Allocations:
    feature: int = 0
    refactor: int = 0
    marketing: int = 0
    qa: int = 0

    def total(self) -> int:
        return (
            floor_int(self.feature)
            + floor_int(self.refactor)
            + floor_int(self.marketing)
            + floor_int(self.qa)
        )

    def to_dict(self) -> Dict[str, int]:
        return {"feature": self.feature, "refactor": self.refactor, "marketing": self.marketing, "qa": self.qa}


@dataclass(frozen=True)
class Plan:
    focus_card_id: str
    management_card_id: str
    scope_creep_policy: str = "reject"
    allocations: Allocations = field(default_factory=Allocations)
    cooldowns: Dict[str, int] = field(default_factory=dict)
    release_requested: bool = False


@dataclass(frozen=True)
class Counters:
    total_weeks_simulated: int = 0
    total_feature_points_done: int = 0
    total_debt_reduced: float = 0.0
    total_bugs_fixed: int = 0
    total_ghost_tasks: int = 0
    total_milestones: int = 0
    total_events_triggered: int = 0


@dataclass(frozen=True)
class LogEntry:
    week: int
    type: str  # system | event | milestone | launch | warning | success | failure
    message: str
    event_id: Optional[str] = None
    decision: Optional[str] = None
    created_at_iso: Optional[str] = None


@dataclass(frozen=True)
class GameState:
    """Whole run state.

    history holds one read-only snapshot mapping per resolved week; it is
    append-only and unbounded. Later states share the same snapshot objects. logs is the short narrative feed (trimmed).
    """

    meta: Meta
    run: Run
    resources: Resources
    team: Team
    project: Project
    entropy: Entropy
    market: Market
    plan: Plan
    counters: Counters = field(default_factory=Counters)
    history: Tuple[Mapping[str, Any], ...] = ()
    logs: Tuple[LogEntry, ...] = ()


# -------------------------
# Mapping bridges (persistence / export)
# -------------------------


def _jsonable(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def state_to_dict(state: GameState) -> Dict[str, Any]:
    """JSON-serializable mapping of the whole state (tuples become lists)."""
    data = asdict(replace(state, history=()))
    data["history"] = list(state.history)
    return _jsonable(data)


def freeze_snapshot(value: Any) -> Any:
    """Read-only copy of a JSON-style value: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze_snapshot(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_snapshot(v) for v in value)
    return value


def thaw_snapshot(value: Any) -> Any:
    return _jsonable(value)


def clone_state(state: GameState) -> GameState:
    """Deep copy; frozen history snapshots are shared rather than copied."""
    return replace(copy.deepcopy(replace(state, history=())), history=state.history)


def _int(v: Any, default: int = 0) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError, OverflowError):
        return default


def _float(v: Any, default: float = 0.0) -> float:
    try:
        return float(v) if v is not None else default
    except (TypeError, ValueError, OverflowError):
        return default


def _opt_int(v: Any) -> Optional[int]:
    return None if v is None else _int(v)


def _opt_str(v: Any) -> Optional[str]:
    return None if v is None else str(v)


def _section(d: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = d.get(key)
    return dict(value) if isinstance(value, Mapping) else {}


def allocations_from_mapping(d: Mapping[str, Any]) -> Allocations:
    return Allocations(
        feature=_int(d.get("feature")),
        refactor=_int(d.get("refactor")),
        marketing=_int(d.get("marketing")),
        qa=_int(d.get("qa")),
    )


def state_from_mapping(d: Mapping[str, Any]) -> GameState:
    """Bridge helper: rebuild a GameState from a mapping produced by state_to_dict()."""
    meta = _section(d, "meta")
    run = _section(d, "run")
    res = _section(d, "resources")
    team = _section(d, "team")
    project = _section(d, "project")
    entropy = _section(d, "entropy")
    market = _section(d, "market")
    plan = _section(d, "plan")
    counters = _section(d, "counters")

    result = run.get("result")
    members = team.get("members") if isinstance(team.get("members"), list) else []
    cooldowns = plan.get("cooldowns") if isinstance(plan.get("cooldowns"), Mapping) else {}
    history = d.get("history") if isinstance(d.get("history"), list) else []
    milestones_reached = (
        project.get("milestones_reached") if isinstance(project.get("milestones_reached"), list) else []
    )
    logs = d.get("logs") if isinstance(d.get("logs"), list) else []

    return GameState(
        meta=Meta(
            schema_version=_int(meta.get("schema_version"), 1),
            save_id=str(meta.get("save_id") or ""),
            created_at_iso=str(meta.get("created_at_iso") or ""),
            updated_at_iso=str(meta.get("updated_at_iso") or ""),
            seed=normalize_seed(meta.get("seed")),
            rng_state=normalize_seed(meta.get("rng_state", meta.get("seed"))),
        ),
        run=Run(
            week=max(1, _int(run.get("week"), 1)),
            phase=str(run.get("phase") or "planning"),
            status=str(run.get("status")) if run.get("status") in RUN_STATUSES else "active",
            result=(
                RunResult(type=str(result.get("type") or ""), message=str(result.get("message") or ""))
                if isinstance(result, Mapping)
                else None
            ),
            post_launch_weeks=_int(run.get("post_launch_weeks")),
            post_launch_non_negative_cash_streak=_int(run.get("post_launch_non_negative_cash_streak")),
            launch_week=_opt_int(run.get("launch_week")),
        ),
        resources=Resources(
            cash=_int(res.get("cash")),
            morale=_float(res.get("morale")),
            weekly_burn=_int(res.get("weekly_burn")),
            runway_weeks=_opt_int(res.get("runway_weeks")),
            morale_below20_streak=_int(res.get("morale_below20_streak")),
            cash_negative_streak=_int(res.get("cash_negative_streak")),
            crunch_streak=_int(res.get("crunch_streak")),
        ),
        team=Team(
            members=tuple(
                Developer(
                    id=str(m.get("id") or ""),
                    name=str(m.get("name") or ""),
                    base_cp=_float(m.get("base_cp")),
                    salary=_int(m.get("salary")),
                    availability_multiplier=_float(m.get("availability_multiplier"), 1.0),
                )
                for m in members
                if isinstance(m, Mapping)
            ),
            cp_base=_int(team.get("cp_base")),
            cp_effective=_int(team.get("cp_effective")),
        ),
        project=Project(
            scope_target=_float(project.get("scope_target")),
            completion=_float(project.get("completion")),
            quality=_float(project.get("quality")),
            milestones_reached=tuple(str(x) for x in milestones_reached),
            release_ready=bool(project.get("release_ready", False)),
            released=bool(project.get("released", False)),
        ),
        entropy=Entropy(
            tech_debt=_float(entropy.get("tech_debt")),
            bug_backlog=max(0, _int(entropy.get("bug_backlog"))),
            entropy_index=_float(entropy.get("entropy_index")),
            latest_stability_score=_float(entropy.get("latest_stability_score")),
            latest_build_result=(
                str(entropy.get("latest_build_result")) if entropy.get("latest_build_result") in BUILD_RESULTS else "none"
            ),
            latest_ghost_tasks=_int(entropy.get("latest_ghost_tasks")),
        ),
        market=Market(
            hype=_float(market.get("hype")),
            reputation=_float(market.get("reputation")),
            product_strength=_float(market.get("product_strength")),
            launch_outcome=(
                str(market.get("launch_outcome")) if market.get("launch_outcome") in LAUNCH_OUTCOMES else None
            ),
            week_sales=_int(market.get("week_sales")),
            lifetime_sales=_int(market.get("lifetime_sales")),
            refunds=_int(market.get("refunds")),
        ),
        plan=Plan(
            focus_card_id=str(plan.get("focus_card_id") or ""),
            management_card_id=str(plan.get("management_card_id") or ""),
            scope_creep_policy=str(plan.get("scope_creep_policy") or "reject"),
            allocations=allocations_from_mapping(_section(plan, "allocations")),
            cooldowns={str(k): _int(v) for k, v in cooldowns.items()},
            release_requested=bool(plan.get("release_requested", False)),
        ),
        counters=Counters(
            total_weeks_simulated=_int(counters.get("total_weeks_simulated")),
            total_feature_points_done=_int(counters.get("total_feature_points_done")),
            total_debt_reduced=_float(counters.get("total_debt_reduced")),
            total_bugs_fixed=_int(counters.get("total_bugs_fixed")),
            total_ghost_tasks=_int(counters.get("total_ghost_tasks")),
            total_milestones=_int(counters.get("total_milestones")),
            total_events_triggered=_int(counters.get("total_events_triggered")),
        ),
        history=tuple(freeze_snapshot(h) for h in history if isinstance(h, Mapping)),
        logs=tuple(
            LogEntry(
                week=_int(e.get("week"), 1),
                type=str(e.get("type") or "system"),
                message=str(e.get("message") or ""),
                event_id=_opt_str(e.get("event_id")),
                decision=_opt_str(e.get("decision")),
                created_at_iso=_opt_str(e.get("created_at_iso")),
            )
            for e in logs
            if isinstance(e, Mapping)
        ),
    )


def has_minimal_state_shape(payload: Any) -> bool:
    """The seven object sections plus an array history."""
    if not isinstance(payload, Mapping):
        return False
    if not all(isinstance(payload.get(k), Mapping) for k in REQUIRED_SECTIONS):
        return False
    return isinstance(payload.get("history"), list)


# -------------------------
# New run
# -------------------------


def weekly_burn_for(members: Tuple[Developer, ...], config: GameConfig) -> int:
    return int(config.economy.office_rent_per_week + sum(m.salary for m in members))


def runway_weeks_for(cash: int, weekly_burn: int) -> Optional[int]:
    burn = max(0, floor_int(weekly_burn))
    if burn == 0:
        return None
    return max(0, math.floor(cash / burn))


def create_initial_state(
    config: GameConfig,
    seed: Any,
    *,
    focus_card_id: str,
    management_card_id: str,
    cooldown_keys: Tuple[str, ...] = (),
    now_iso: Optional[str] = None,
    save_id: Optional[str] = None,
) -> GameState:
    """Baseline start state for a new run.

    Card ids are passed in by the caller (first catalog entries by default,
    see studio_engine.config) so core stays catalog-agnostic.
    """
    resolved_seed = normalize_seed(seed)
    now = now_iso or utc_now_iso()
    start = config.starting

    members = tuple(
        Developer(id=d.id, name=d.name, base_cp=d.base_cp, salary=d.salary, availability_multiplier=1.0)
        for d in config.team
    )
    burn = weekly_burn_for(members, config)

    return GameState(
        meta=Meta(
            schema_version=config.schema_version,
            save_id=save_id or f"save-{resolved_seed}",
            created_at_iso=now,
            updated_at_iso=now,
            seed=resolved_seed,
            rng_state=resolved_seed,
        ),
        run=Run(),
        resources=Resources(
            cash=int(start.cash),
            morale=start.morale,
            weekly_burn=burn,
            runway_weeks=runway_weeks_for(int(start.cash), burn),
        ),
        team=Team(members=members),
        project=Project(
            scope_target=start.scope_target,
            completion=start.completion,
            quality=start.quality,
        ),
        entropy=Entropy(
            tech_debt=start.tech_debt,
            bug_backlog=int(start.bug_backlog),
        ),
        market=Market(hype=start.hype, reputation=start.reputation),
        plan=Plan(
            focus_card_id=focus_card_id,
            management_card_id=management_card_id,
            scope_creep_policy="reject",
            allocations=allocations_from_mapping(config.starting_allocations),
            cooldowns={k: 0 for k in cooldown_keys},
            release_requested=False,
        ),
        counters=Counters(),
        history=(),
        logs=(LogEntry(week=1, type="system", message="New run initialized.", created_at_iso=now),),
    )
