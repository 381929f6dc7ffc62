"""Pytest setup: shared engine configs and starting states."""
from __future__ import annotations

from dataclasses import replace

import pytest

from studio_core.state import GameState
from studio_engine.config import DEFAULT_ENGINE_CONFIG, EngineConfig, engine_config_from_mapping, new_game

NOW = "2000-01-01T00:00:00.000Z"


def tweak(state: GameState, **sections) -> GameState:
    """Replace fields inside state sections: tweak(s, resources={"cash": 5})."""
    changes = {name: replace(getattr(state, name), **values) for name, values in sections.items()}
    return replace(state, **changes)


@pytest.fixture
def config() -> EngineConfig:
    return DEFAULT_ENGINE_CONFIG


@pytest.fixture
def quiet_config() -> EngineConfig:
    """Friction events can never fire (the trigger roll still consumes one draw)."""
    return engine_config_from_mapping({"balance": {"events": {"base_chance": 0, "min_chance": 0, "max_chance": 0}}})


@pytest.fixture
def fresh_state(config) -> GameState:
    return new_game(config, 1, now_iso=NOW)
