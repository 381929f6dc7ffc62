import json

import pytest

from studio_content.catalog import DEFAULT_CATALOG, catalog_from_mapping, catalog_to_dict, validate_catalog
from studio_content.schemas import focus_card_from_mapping, friction_event_from_mapping
from studio_core.balance import DEFAULT_GAME_CONFIG, GhostTaskRange, with_overrides
from studio_core.rng import stable_int_seed
from studio_engine.config import DEFAULT_ENGINE_CONFIG, engine_config_from_mapping, load_engine_config, new_game

from conftest import NOW


def test_defaults_carry_the_starting_balance() -> None:
    game = DEFAULT_GAME_CONFIG
    assert game.starting.cash == 220_000
    assert game.starting.scope_target == 120
    assert game.launch.base_sales == 30_000
    assert game.terminal.required_post_launch_weeks == 8
    assert game.ghost_tasks["failed"] == GhostTaskRange(4, 8)


def test_nested_overrides_leave_the_original_alone() -> None:
    tuned = with_overrides(
        DEFAULT_GAME_CONFIG,
        {
            "starting": {"cash": 1_000},
            "launch": {"sales_multiplier": {"miracle": 3.0}},
            "ghost_tasks": {"warning": {"min": 2, "max": 2}},
        },
    )
    assert tuned.starting.cash == 1_000
    assert tuned.starting.morale == DEFAULT_GAME_CONFIG.starting.morale
    assert tuned.launch.sales_multiplier["miracle"] == 3.0
    assert tuned.launch.sales_multiplier["scam"] == 0.5
    assert tuned.ghost_tasks["warning"] == GhostTaskRange(2, 2)
    assert DEFAULT_GAME_CONFIG.starting.cash == 220_000


def test_unknown_override_keys_fail_loudly() -> None:
    with pytest.raises(ValueError):
        with_overrides(DEFAULT_GAME_CONFIG, {"startng": {"cash": 1}})
    with pytest.raises(ValueError):
        with_overrides(DEFAULT_GAME_CONFIG, {"starting": {"money": 1}})


def test_catalog_validation_rejects_duplicates() -> None:
    validate_catalog(DEFAULT_CATALOG)
    with pytest.raises(ValueError):
        catalog_from_mapping({"focus_cards": [{"id": "a", "name": "A"}, {"id": "a", "name": "B"}]})


def test_decision_events_need_both_branches() -> None:
    with pytest.raises(ValueError):
        catalog_from_mapping({"events": [{"id": "x", "name": "X", "weight": 1, "requires_decision": True}]})


def test_catalog_sections_can_be_replaced() -> None:
    catalog = catalog_from_mapping(
        {"events": [{"id": "quiet", "name": "Quiet", "weight": 1, "effect": {"morale_delta": 1}}]}
    )
    assert [e.id for e in catalog.events] == ["quiet"]
    assert catalog.focus_cards == DEFAULT_CATALOG.focus_cards


def test_card_parsing_defaults() -> None:
    card = focus_card_from_mapping({"id": "f", "name": "F", "multipliers": {"feature": 2}})
    assert card.multipliers.feature == 2
    assert card.multipliers.qa == 1
    assert card.min_completion is None

    event = friction_event_from_mapping({"id": "e", "name": "E", "weight": "3"})
    assert event.weight == 3
    assert event.requires_decision is False


def test_engine_config_from_json_file(tmp_path) -> None:
    path = tmp_path / "overrides.json"
    path.write_text(json.dumps({"balance": {"starting": {"cash": 5_000}}}), encoding="utf-8")
    config = load_engine_config(path)
    assert config.game.starting.cash == 5_000
    assert config.catalog == DEFAULT_CATALOG
    assert load_engine_config() is DEFAULT_ENGINE_CONFIG


def test_engine_config_rejects_bad_sections(tmp_path) -> None:
    with pytest.raises(ValueError):
        engine_config_from_mapping({"balance": [1, 2]})
    path = tmp_path / "list.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_engine_config(path)


def test_new_game_uses_config_and_seed(config) -> None:
    state = new_game(config, 42, now_iso=NOW)
    assert state.meta.seed == state.meta.rng_state == 42
    assert state.meta.created_at_iso == NOW
    assert state.resources.weekly_burn == 22_000
    assert state.resources.runway_weeks == 10
    assert state.plan.cooldowns == {"crunch": 0, "teamBuilding": 0}
    assert [e.type for e in state.logs] == ["system"]

    assert new_game(config, "42", now_iso=NOW).meta.seed == 42
    assert new_game(config, "night shift", now_iso=NOW).meta.seed == stable_int_seed("night shift")

    rich = engine_config_from_mapping({"balance": {"starting": {"cash": 1_000_000}}})
    assert new_game(rich, 1, now_iso=NOW).resources.cash == 1_000_000


def test_catalog_dump_loads_back_unchanged() -> None:
    dumped = json.loads(json.dumps(catalog_to_dict(DEFAULT_CATALOG)))
    assert catalog_from_mapping(dumped) == DEFAULT_CATALOG
