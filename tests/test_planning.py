from dataclasses import replace

from studio_core.state import Allocations
from studio_engine.planning import can_advance_week, get_card_availability, merge_plan, sanitize_plan

from conftest import tweak


def _after_week_with_focus(state, focus_id):
    snapshot = {"week": 1, "plan": {"focus_card_id": focus_id, "management_card_id": "sustainablePace"}}
    return replace(tweak(state, run={"week": 2}), history=(snapshot,))


def test_default_plan_is_fitted_to_capacity(fresh_state, config) -> None:
    sanitized = sanitize_plan(fresh_state, config)
    assert sanitized.plan.focus_card_id == "featureSprint"
    assert sanitized.plan.management_card_id == "sustainablePace"
    assert sanitized.derived_capacity.cp_effective == 23
    assert sanitized.plan.allocations == Allocations(feature=7, refactor=6, marketing=4, qa=6)


def test_repeat_restricted_focus_falls_back(fresh_state, config) -> None:
    state = _after_week_with_focus(fresh_state, "cleanupWeek")
    sanitized = sanitize_plan(state, config, {"focus_card_id": "cleanupWeek"})
    assert sanitized.plan.focus_card_id == "featureSprint"

    other = _after_week_with_focus(fresh_state, "featureSprint")
    assert sanitize_plan(other, config, {"focus_card_id": "cleanupWeek"}).plan.focus_card_id == "cleanupWeek"


def test_completion_gated_focus_falls_back(fresh_state, config) -> None:
    assert sanitize_plan(fresh_state, config, {"focus_card_id": "polishing"}).plan.focus_card_id == "featureSprint"
    progressed = tweak(fresh_state, project={"completion": 40})
    assert sanitize_plan(progressed, config, {"focus_card_id": "polishing"}).plan.focus_card_id == "polishing"


def test_unknown_cards_fall_back(fresh_state, config) -> None:
    sanitized = sanitize_plan(fresh_state, config, {"focus_card_id": "nope", "management_card_id": "nope"})
    assert sanitized.focus.id == "featureSprint"
    assert sanitized.management.id == "sustainablePace"


def test_cooling_down_management_card_falls_back(fresh_state, config) -> None:
    state = tweak(fresh_state, plan={"cooldowns": {"crunch": 1, "teamBuilding": 0}})
    assert sanitize_plan(state, config, {"management_card_id": "crunch"}).management.id == "sustainablePace"
    assert sanitize_plan(state, config, {"management_card_id": "teamBuilding"}).management.id == "teamBuilding"


def test_capacity_follows_the_fallback_card(fresh_state, config) -> None:
    state = tweak(fresh_state, plan={"cooldowns": {"crunch": 2}})
    sanitized = sanitize_plan(state, config, {"management_card_id": "crunch", "allocations": {"feature": 40}})
    assert sanitized.derived_capacity.cp_effective == 23
    assert sanitized.plan.allocations.total() == 23


def test_policy_and_release_flag_are_coerced(fresh_state, config) -> None:
    sanitized = sanitize_plan(fresh_state, config, {"scope_creep_policy": "maybe", "release_requested": "yes"})
    assert sanitized.plan.scope_creep_policy == "reject"
    assert sanitized.plan.release_requested is False

    accepted = sanitize_plan(fresh_state, config, {"scope_creep_policy": "accept", "release_requested": True})
    assert accepted.plan.scope_creep_policy == "accept"
    assert accepted.plan.release_requested is True


def test_partial_allocations_merge_with_stored_plan(fresh_state) -> None:
    merged = merge_plan(fresh_state.plan, {"allocations": {"qa": 1}})
    assert merged["allocations"] == {"feature": 8, "refactor": 6, "marketing": 4, "qa": 1}
    assert merged["focus_card_id"] == "featureSprint"


def test_card_availability(fresh_state, config) -> None:
    availability = get_card_availability(fresh_state, config)
    assert availability["focus"] == {"featureSprint": True, "cleanupWeek": True, "polishing": False}
    assert availability["management"] == {"sustainablePace": True, "crunch": True, "teamBuilding": True}


def test_idle_plan_cannot_advance(fresh_state, config) -> None:
    idle = {"allocations": {"feature": 0, "refactor": 0, "marketing": 0, "qa": 0}}
    assert can_advance_week(fresh_state, config, idle) is False
    assert can_advance_week(fresh_state, config) is True


def test_finished_runs_cannot_advance(fresh_state, config) -> None:
    assert can_advance_week(tweak(fresh_state, run={"status": "failed"}), config) is False
    assert can_advance_week(tweak(fresh_state, run={"status": "won"}), config) is False
