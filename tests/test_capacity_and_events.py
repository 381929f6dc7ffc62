from dataclasses import replace

import pytest

from studio_core.effects import (
    NO_EVENT,
    apply_event_to_allocation,
    compute_capacity,
    compute_entropy_index,
    event_trigger_chance,
    materialize_event_effect,
    roll_event,
)
from studio_core.rng import XorShiftRng
from studio_core.state import Allocations

from conftest import tweak


def test_starting_capacity(fresh_state, config) -> None:
    cap = compute_capacity(fresh_state, config.catalog.management_card("sustainablePace"), config.game)
    assert (cap.cp_base, cap.cp_effective) == (24, 23)
    assert cap.morale_multiplier == 1.02
    assert cap.debt_multiplier == 0.94


def test_management_cards_scale_capacity(fresh_state, config) -> None:
    crunch = compute_capacity(fresh_state, config.catalog.management_card("crunch"), config.game)
    assert (crunch.cp_base, crunch.cp_effective) == (36, 34)
    team_building = compute_capacity(fresh_state, config.catalog.management_card("teamBuilding"), config.game)
    assert (team_building.cp_base, team_building.cp_effective) == (24, 20)


def test_debt_multiplier_has_a_floor(fresh_state, config) -> None:
    state = tweak(fresh_state, entropy={"tech_debt": 100}, resources={"morale": 0})
    cap = compute_capacity(state, config.catalog.management_card("sustainablePace"), config.game)
    assert cap.debt_multiplier == 0.25
    assert cap.cp_effective == 3


def test_unavailable_developers_reduce_base_cp(fresh_state, config) -> None:
    first, *rest = fresh_state.team.members
    members = (replace(first, availability_multiplier=0.5), *rest)
    state = tweak(fresh_state, team={"members": members})
    cap = compute_capacity(state, config.catalog.management_card("sustainablePace"), config.game)
    assert cap.cp_base == 20


def test_entropy_index_caps_bug_term() -> None:
    assert compute_entropy_index(10, 5) == 11.0
    assert compute_entropy_index(0, 1000) == 30.0


def test_trigger_chance_formula_and_clamps(fresh_state, config) -> None:
    assert event_trigger_chance(fresh_state, config.game) == pytest.approx(0.11)
    calm = tweak(fresh_state, entropy={"tech_debt": 0}, resources={"morale": 100})
    assert event_trigger_chance(calm, config.game) == 0.05
    chaos = tweak(fresh_state, entropy={"tech_debt": 100}, resources={"morale": 0})
    assert event_trigger_chance(chaos, config.game) == 0.65


def test_seed_one_fires_merge_conflict_in_week_one(fresh_state, config) -> None:
    rng = XorShiftRng(fresh_state.meta.rng_state)
    roll = roll_event(fresh_state, rng, config.catalog.events, config.game)
    assert roll.event is not None and roll.event.id == "mergeConflict"
    assert roll.roll < roll.chance
    # trigger roll + weighted pick
    assert rng.get_state() == 67634689


def test_no_event_consumes_exactly_one_draw(fresh_state, quiet_config) -> None:
    rng = XorShiftRng(fresh_state.meta.rng_state)
    roll = roll_event(fresh_state, rng, quiet_config.catalog.events, quiet_config.game)
    assert roll.event is None
    assert rng.get_state() == 270369


def test_scope_creep_branches(config) -> None:
    event = config.catalog.event("scopeCreepRequest")
    accepted = materialize_event_effect("accept", event)
    assert accepted.decision == "accept"
    assert (accepted.scope_delta, accepted.hype_delta, accepted.morale_delta) == (6, 5, 0)
    assert accepted.message.startswith("You accepted")

    rejected = materialize_event_effect("reject", event)
    assert rejected.decision == "reject"
    assert (rejected.scope_delta, rejected.hype_delta, rejected.morale_delta) == (0, -1, -2)


def test_events_without_decision_keep_base_message(config) -> None:
    effect = materialize_event_effect("accept", config.catalog.event("criticalBugEscalation"))
    assert effect.decision is None
    assert (effect.bug_delta, effect.quality_delta) == (8, -2)
    assert effect.message == "Production-critical issue consumed QA focus."
    assert materialize_event_effect("accept", None) is NO_EVENT


def test_event_adjusts_capacity_then_refits_lanes(config) -> None:
    lanes = Allocations(feature=7, refactor=6, marketing=4, qa=6)

    sick = materialize_event_effect("reject", config.catalog.event("sickDay"))
    cp, alloc = apply_event_to_allocation(lanes, 23, sick)
    assert cp == 21
    assert alloc.total() == 21

    merge = materialize_event_effect("reject", config.catalog.event("mergeConflict"))
    cp, alloc = apply_event_to_allocation(lanes, 23, merge)
    assert cp == 23
    assert alloc == Allocations(feature=5, refactor=6, marketing=4, qa=6)


def test_capacity_delta_never_goes_negative(config) -> None:
    outage = materialize_event_effect("reject", config.catalog.event("toolchainOutage"))
    cp, alloc = apply_event_to_allocation(Allocations(feature=2), 2, outage)
    assert cp == 0
    assert alloc == Allocations()
