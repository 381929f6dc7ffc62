import pytest

from studio_core.effects import (
    NO_EVENT,
    EventEffect,
    resolve_build,
    resolve_cash,
    resolve_hype,
    resolve_milestones,
    resolve_morale,
    resolve_production,
    stability_score,
)
from studio_core.rng import XorShiftRng
from studio_core.state import Allocations

from conftest import tweak

START_LANES = Allocations(feature=7, refactor=6, marketing=4, qa=6)


@pytest.fixture
def cards(config):
    catalog = config.catalog
    return {
        "sprint": catalog.focus_card("featureSprint"),
        "cleanup": catalog.focus_card("cleanupWeek"),
        "polish": catalog.focus_card("polishing"),
        "steady": catalog.management_card("sustainablePace"),
        "crunch": catalog.management_card("crunch"),
        "team": catalog.management_card("teamBuilding"),
    }


def test_first_week_production(fresh_state, config, cards) -> None:
    prod = resolve_production(fresh_state, START_LANES, 23, cards["sprint"], cards["steady"], NO_EVENT, config.game)
    assert prod.feature_points == 8
    assert prod.completion == 8
    assert prod.debt_gain == 1
    assert prod.tech_debt == pytest.approx(6.352174, abs=1e-6)
    assert (prod.bugs_generated, prod.bugs_fixed, prod.bug_backlog) == (1, 2, 3)
    assert prod.quality == 31
    assert prod.scope_target == 120


def test_completion_never_passes_scope(fresh_state, config, cards) -> None:
    state = tweak(fresh_state, project={"completion": 118})
    prod = resolve_production(state, Allocations(feature=40), 40, cards["sprint"], cards["steady"], NO_EVENT, config.game)
    assert prod.completion == 120


def test_feature_rush_and_missing_qa_add_debt(fresh_state, config, cards) -> None:
    prod = resolve_production(fresh_state, Allocations(feature=23), 23, cards["sprint"], cards["steady"], NO_EVENT, config.game)
    # (1 - 0.8) * 25 + (0.1 - 0) * 20 + focus 1
    assert prod.debt_gain == pytest.approx(8.0)

    crunched = resolve_production(fresh_state, Allocations(feature=23), 23, cards["sprint"], cards["crunch"], NO_EVENT, config.game)
    assert crunched.debt_gain == pytest.approx(7.0 * 1.2 + 1)


def test_event_deltas_flow_into_production(fresh_state, config, cards) -> None:
    effect = EventEffect(bug_delta=8, quality_delta=-2, scope_delta=6)
    prod = resolve_production(fresh_state, START_LANES, 23, cards["sprint"], cards["steady"], effect, config.game)
    assert prod.bug_backlog == 11
    assert prod.quality == 29
    assert prod.scope_target == 126


def test_ranges_are_clamped(fresh_state, config, cards) -> None:
    state = tweak(fresh_state, entropy={"tech_debt": 0, "bug_backlog": 0}, project={"quality": 99.5})
    prod = resolve_production(state, Allocations(refactor=30, qa=30), 60, cards["cleanup"], cards["steady"], NO_EVENT, config.game)
    assert prod.tech_debt == 0
    assert prod.bug_backlog == 0
    assert prod.quality == 100


def test_milestones_unlock_once_and_respect_bug_cap(config) -> None:
    milestones = config.catalog.milestones
    first = resolve_milestones((), 30, 0, milestones)
    assert first.newly_reached == ("prototype",)
    assert (first.morale_bonus, first.hype_bonus) == (5, 4)

    later = resolve_milestones(first.milestones_reached, 130, 30, milestones)
    assert later.newly_reached == ("verticalSlice", "contentComplete")
    assert "shipReady" not in later.milestones_reached
    assert set(first.milestones_reached) <= set(later.milestones_reached)

    shipped = resolve_milestones(later.milestones_reached, 130, 25, milestones)
    assert shipped.newly_reached == ("shipReady",)
    assert (shipped.morale_bonus, shipped.hype_bonus) == (0, 0)


def test_hype_gain_and_decay(config, cards) -> None:
    assert resolve_hype(10, 4, cards["sprint"], 0, NO_EVENT, config.game) == 14
    assert resolve_hype(10, 0, cards["sprint"], 0, NO_EVENT, config.game) == 7
    assert resolve_hype(1, 0, cards["sprint"], 0, NO_EVENT, config.game) == 0
    assert resolve_hype(199, 10, cards["sprint"], 4, NO_EVENT, config.game) == 200


def test_build_outcomes(config) -> None:
    game = config.game
    assert stability_score(0, 0, 1, game) == 120

    rng = XorShiftRng(5)
    clean = resolve_build(120, rng, game)
    assert (clean.result, clean.ghost_tasks) == ("clean", 0)
    assert rng.get_state() == 5

    warning = resolve_build(50, rng, game)
    assert warning.result == "warning"
    assert 1 <= warning.ghost_tasks <= 3

    failed = resolve_build(10, rng, game)
    assert failed.result == "failed"
    assert 4 <= failed.ghost_tasks <= 8


def test_morale_with_clean_and_failed_builds(fresh_state, config, cards) -> None:
    clean = resolve_morale(fresh_state, cards["sprint"], cards["steady"], 0, NO_EVENT, "clean", config.game)
    assert clean.morale == 69
    failed = resolve_morale(fresh_state, cards["sprint"], cards["steady"], 5, NO_EVENT, "failed", config.game)
    assert failed.morale == 68


def test_crunch_streak_penalty(fresh_state, config, cards) -> None:
    state = tweak(fresh_state, resources={"crunch_streak": 1})
    result = resolve_morale(state, cards["sprint"], cards["crunch"], 0, NO_EVENT, "warning", config.game)
    assert result.crunch_streak == 2
    assert result.crunch_penalty == 2
    assert result.morale == 70 - 2 - 8 - 2

    reset = resolve_morale(state, cards["sprint"], cards["steady"], 0, NO_EVENT, "warning", config.game)
    assert (reset.crunch_streak, reset.crunch_penalty) == (0, 0)


def test_cash_flow(config, cards) -> None:
    assert resolve_cash(220_000, 22_000, 4, cards["steady"], 0, config.game) == 198_000
    assert resolve_cash(220_000, 22_000, 0, cards["team"], 30_000, config.game) == 220_000
