"""studio_engine.sim_runner

Headless runner for quick sanity checks.

This keeps tests deterministic and CI-friendly: a scripted policy plays the
weeks, no UI and no clock (timestamps are pinned).

Run:
  python -m studio_engine.sim_runner --weeks 20 --seed 42 [--config overrides.json] [--out run.json]
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from studio_content.catalog import catalog_to_dict
from studio_core.launch import is_release_available
from studio_core.state import GameState, thaw_snapshot

from .config import DEFAULT_ENGINE_CONFIG, EngineConfig, load_engine_config, new_game
from .logging import dumps_run_export, make_run_export
from .pipeline import resolve_week
from .planning import sanitize_plan

logger = logging.getLogger(__name__)

SIM_TIMESTAMP = "2000-01-01T00:00:00.000Z"

Policy = Callable[[GameState, EngineConfig], Dict[str, Any]]


def scripted_policy(state: GameState, config: EngineConfig) -> Dict[str, Any]:
    """Balanced lanes; lean on QA when bugs pile up, refactor when debt does.

    Requests the release as soon as the guardrails pass.
    """
    cp = sanitize_plan(state, config).derived_capacity.cp_effective
    weights = {"feature": 4, "refactor": 2, "marketing": 2, "qa": 2}
    if state.entropy.bug_backlog > 20:
        weights["qa"] += 2
    if state.entropy.tech_debt > 40:
        weights["refactor"] += 2
    if state.run.status == "released":
        weights["feature"] = 1

    total = sum(weights.values())
    allocations = {lane: cp * w / total for lane, w in weights.items()}

    return {
        "allocations": allocations,
        "scope_creep_policy": "reject",
        "release_requested": is_release_available(state, config.game),
    }


def run_headless_sim(
    weeks: int = 20,
    seed: Any = 42,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    policy: Optional[Policy] = None,
) -> Dict[str, Any]:
    """Run a deterministic simulation and return summary."""
    policy = policy or scripted_policy
    initial = new_game(config, seed, now_iso=SIM_TIMESTAMP)
    state = initial
    logs: List[Dict[str, Any]] = []

    for _ in range(weeks):
        if state.run.is_terminal:
            break
        state = resolve_week(state, config, policy(state, config), now_iso=SIM_TIMESTAMP)
        logs.append(thaw_snapshot(state.history[-1]))

    return {
        "weeks": len(logs),
        "initial": initial,
        "final": state,
        "logs": logs,
    }


def summarize(final: GameState) -> Dict[str, Any]:
    return {
        "week": final.run.week,
        "status": final.run.status,
        "result": final.run.result.type if final.run.result else None,
        "cash": final.resources.cash,
        "morale": final.resources.morale,
        "completion": final.project.completion,
        "scope_target": final.project.scope_target,
        "quality": final.project.quality,
        "tech_debt": final.entropy.tech_debt,
        "bug_backlog": final.entropy.bug_backlog,
        "hype": final.market.hype,
        "launch_outcome": final.market.launch_outcome,
        "lifetime_sales": final.market.lifetime_sales,
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a scripted headless studio simulation.")
    parser.add_argument("--weeks", type=int, default=20, help="Maximum number of weeks to resolve")
    parser.add_argument("--seed", type=str, default="42", help="Run seed (integer or seed phrase)")
    parser.add_argument("--config", type=str, default=None, help="Optional JSON balance/catalog override file")
    parser.add_argument("--out", type=str, default=None, help="Write a full run export to this file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_engine_config(args.config)
    except (OSError, ValueError) as exc:
        logger.error("Could not load config %s: %s", args.config, exc)
        return 1

    result = run_headless_sim(weeks=args.weeks, seed=args.seed, config=config)
    final = result["final"]

    if args.out:
        export = make_run_export(
            seed=result["initial"].meta.seed,
            config={
                "weeks": args.weeks,
                "config_path": args.config,
                "catalog": catalog_to_dict(config.catalog),
            },
            initial_state=result["initial"],
            final_state=final,
        )
        Path(args.out).write_text(dumps_run_export(export), encoding="utf-8")
        logger.info("Wrote run export to %s", args.out)

    for key, value in summarize(final).items():
        print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
