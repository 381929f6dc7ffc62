"""studio_engine.config

Engine configuration passed in by the caller.

EngineConfig bundles the balance constants and the static catalogs into one
immutable value; every engine entry point takes it explicitly.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from studio_content.catalog import DEFAULT_CATALOG, Catalog, catalog_from_mapping, validate_catalog
from studio_core.balance import DEFAULT_GAME_CONFIG, GameConfig, with_overrides
from studio_core.rng import stable_int_seed
from studio_core.state import GameState, create_initial_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    game: GameConfig = field(default_factory=lambda: DEFAULT_GAME_CONFIG)
    catalog: Catalog = field(default_factory=lambda: DEFAULT_CATALOG)


DEFAULT_ENGINE_CONFIG = EngineConfig()


def engine_config_from_mapping(data: Mapping[str, Any], base: EngineConfig = DEFAULT_ENGINE_CONFIG) -> EngineConfig:
    """Build a config from {"balance": {...overrides}, "catalog": {...sections}}."""
    balance = data.get("balance") or {}
    catalog = data.get("catalog")
    if not isinstance(balance, Mapping):
        raise ValueError("config.balance must be an object")
    if catalog is not None and not isinstance(catalog, Mapping):
        raise ValueError("config.catalog must be an object")

    game = with_overrides(base.game, balance) if balance else base.game
    cat = catalog_from_mapping(catalog, base=base.catalog) if catalog else base.catalog
    validate_catalog(cat)
    return EngineConfig(game=game, catalog=cat)


def load_engine_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load an optional JSON override file. No path means the built-in defaults."""
    if path is None:
        return DEFAULT_ENGINE_CONFIG
    p = Path(path)
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError(f"{p}: config root must be an object")
    logger.info("Loaded engine config overrides from %s", p)
    return engine_config_from_mapping(data)


def resolve_seed(seed: Any) -> Any:
    """Seed phrases (non-numeric strings) hash to a stable 32-bit seed."""
    if isinstance(seed, str):
        try:
            float(seed)
        except ValueError:
            return stable_int_seed(seed)
    return seed


def new_game(config: EngineConfig, seed: Any, *, now_iso: Optional[str] = None) -> GameState:
    """Fresh run with the first catalog cards preselected."""
    catalog = config.catalog
    return create_initial_state(
        config.game,
        resolve_seed(seed),
        focus_card_id=catalog.focus_cards[0].id,
        management_card_id=catalog.management_cards[0].id,
        cooldown_keys=catalog.cooldown_keys(),
        now_iso=now_iso,
    )
